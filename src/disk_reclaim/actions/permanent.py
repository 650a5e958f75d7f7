"""Permanently delete files and empty directories."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..errors import raise_if_cancelled
from ..models import CleanupActions, CleanupOutcome, Finding
from . import failures

if TYPE_CHECKING:
    from ..policy import SafetyPolicy

logger = logging.getLogger(__name__)


def _delete(finding: Finding) -> CleanupOutcome:
    path = finding.path
    if not path or not path.strip():
        return failures.missing_path(finding)

    try:
        if os.path.isdir(path) and not os.path.islink(path):
            # Never recursive: a directory that gained children is left alone.
            os.rmdir(path)
        elif os.path.lexists(path):
            os.remove(path)
        else:
            return failures.not_found(finding)
    except OSError as e:
        logger.error("Error deleting %s: %s", path, e)
        return failures.classify_os_error(finding, e)

    logger.info("Deleted: %s", path)
    return CleanupOutcome.deleted(finding, "Permanently deleted.")


class PermanentDeleteAction:
    """Delete without going through the trash. Supports batches."""

    id: str = CleanupActions.PERMANENT_DELETE_FILE
    supports_batch: bool = True

    async def execute(
        self,
        finding: Finding,
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> CleanupOutcome:
        raise_if_cancelled(cancel)
        return await asyncio.to_thread(_delete, finding)

    async def execute_batch(
        self,
        findings: Sequence[Finding],
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> list[CleanupOutcome]:
        def run() -> list[CleanupOutcome]:
            # Stops at a set cancel event; the result then covers only the items that ran.
            results: list[CleanupOutcome] = []
            for finding in findings:
                if cancel is not None and cancel.is_set():
                    break
                results.append(_delete(finding))
            return results

        if not findings:
            return []
        raise_if_cancelled(cancel)
        return await asyncio.to_thread(run)
