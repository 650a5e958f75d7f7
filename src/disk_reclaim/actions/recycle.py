"""Move files and empty directories to the trash."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from send2trash import send2trash

from ..errors import raise_if_cancelled
from ..models import CleanupActions, CleanupOutcome, Finding, OutcomeCategory
from . import failures

if TYPE_CHECKING:
    from ..policy import SafetyPolicy

logger = logging.getLogger(__name__)


class RecycleFileAction:
    """Send a finding's path to the trash so it can still be restored."""

    id: str = CleanupActions.RECYCLE_FILE
    supports_batch: bool = False

    def __init__(self, send: Callable[[str], None] = send2trash) -> None:
        self._send = send

    async def execute(
        self,
        finding: Finding,
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> CleanupOutcome:
        raise_if_cancelled(cancel)
        return await asyncio.to_thread(self._recycle, finding)

    async def execute_batch(
        self,
        findings: Sequence[Finding],
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> list[CleanupOutcome]:
        results: list[CleanupOutcome] = []
        for finding in findings:
            if cancel is not None and cancel.is_set():
                break
            results.append(await asyncio.to_thread(self._recycle, finding))
        return results

    def _recycle(self, finding: Finding) -> CleanupOutcome:
        path = finding.path
        if not path or not path.strip():
            return failures.missing_path(finding)

        if not os.path.lexists(path):
            return failures.not_found(finding)

        if os.path.isdir(path) and not os.path.islink(path):
            try:
                with os.scandir(path) as entries:
                    if any(True for _ in entries):
                        return failures.directory_not_empty(finding)
            except OSError as e:
                return CleanupOutcome.skipped(
                    finding,
                    f"Unable to verify directory: {e}",
                    OutcomeCategory.SKIPPED_OTHER,
                )

        try:
            self._send(path)
        except OSError as e:
            logger.error("Error sending %s to trash: %s", path, e)
            return failures.classify_os_error(finding, e)

        logger.info("Sent to trash: %s", path)
        return CleanupOutcome.deleted(finding, "Sent to trash.")
