"""Scan aggregation across content providers."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .errors import OperationCancelledError, raise_if_cancelled
from .models import Finding, ScanResult

if TYPE_CHECKING:
    from .policy import SafetyPolicy
    from .providers.base import Provider

logger = logging.getLogger(__name__)


class ScanService:
    """Runs providers one after another and collects their findings."""

    async def scan(
        self,
        providers: Iterable[Provider],
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> ScanResult:
        """Scan with every provider and total the findings.

        A provider that fails is reported as a policy warning and skipped;
        the remaining providers still run.

        Args:
            providers: Providers to run, in order.
            policy: Safety policy the providers register allow-lists into.
            cancel: Shared cancellation signal, checked before each provider.

        Returns:
            Scan result with per-category and per-drive byte totals.

        Raises:
            OperationCancelledError: If cancellation was requested.

        """
        findings: list[Finding] = []

        for provider in providers:
            raise_if_cancelled(cancel)
            try:
                provider_findings = await asyncio.to_thread(provider.scan, policy, cancel)
            except OperationCancelledError:
                raise
            except Exception as e:
                logger.warning("Provider %s failed: %s", provider.id, e, exc_info=True)
                policy.report_warning(f"{provider.id} scan failed: {e}")
                continue

            logger.debug("Provider %s found %d items", provider.id, len(provider_findings))
            findings.extend(provider_findings)

        result = ScanResult.from_findings(findings)
        logger.info("Scan complete: %d findings, %d bytes", len(result.findings), result.total_bytes)
        return result
