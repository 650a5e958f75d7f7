"""Empty the trash of one drive."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..errors import raise_if_cancelled
from ..models import CleanupActions, CleanupOutcome, Finding, OutcomeCategory

if TYPE_CHECKING:
    from ..policy import SafetyPolicy
    from ..trash import TrashService

logger = logging.getLogger(__name__)


class EmptyTrashAction:
    """Empty the trash for the finding's drive root. Irreversible."""

    id: str = CleanupActions.EMPTY_RECYCLE_BIN
    supports_batch: bool = False

    def __init__(self, trash: TrashService) -> None:
        self.trash = trash

    async def execute(
        self,
        finding: Finding,
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> CleanupOutcome:
        raise_if_cancelled(cancel)
        try:
            emptied = await asyncio.to_thread(self.trash.empty, finding.drive_root)
        except OSError as e:
            logger.error("Error emptying trash on %s: %s", finding.drive_root, e)
            return CleanupOutcome.skipped(finding, str(e), OutcomeCategory.SKIPPED_OTHER)

        if not emptied:
            return CleanupOutcome.skipped(finding, "Unable to empty the trash.", OutcomeCategory.SKIPPED_OTHER)

        logger.info("Emptied trash on %s", finding.drive_root)
        return CleanupOutcome.deleted(finding, "Recycle Bin emptied.")

    async def execute_batch(
        self,
        findings: Sequence[Finding],
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> list[CleanupOutcome]:
        return [
            CleanupOutcome.skipped(
                finding,
                "Batch recycle bin cleanup is not supported.",
                OutcomeCategory.SKIPPED_OTHER,
            )
            for finding in findings
        ]
