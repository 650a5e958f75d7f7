"""Recycle bin provider: one abstract finding per drive whose trash holds items."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ..errors import raise_if_cancelled
from ..models import Categories, Category, CleanupActions, Finding
from ..trash import TrashService, default_trash
from .base import ProviderIds, new_finding

if TYPE_CHECKING:
    from ..config import ReclaimConfig
    from ..policy import SafetyPolicy

logger = logging.getLogger(__name__)


class RecycleBinProvider:
    """Reports non-empty trashes as empty-trash findings."""

    MODULE_ENABLED: bool = True
    USES_TRASH: bool = True
    id: str = ProviderIds.RECYCLE_BIN
    category: Category = Categories.RECYCLE_BIN

    def __init__(self, config: ReclaimConfig, trash: TrashService | None = None) -> None:
        self.config = config
        self._trash = trash

    @property
    def trash(self) -> TrashService:
        if self._trash is None:
            self._trash = default_trash()
        return self._trash

    def scan(self, policy: SafetyPolicy, cancel: threading.Event | None = None) -> list[Finding]:
        findings: list[Finding] = []

        for root in self.trash.drive_roots():
            raise_if_cancelled(cancel)
            try:
                info = self.trash.query(root)
            except OSError as e:
                policy.report_warning(f"Skip recycle bin query: {root} ({e})")
                continue

            if info.item_count == 0 and info.size_bytes == 0:
                continue

            policy.add_allowlist(self.id, root)
            findings.append(
                new_finding(
                    self,
                    root,
                    size_bytes=info.size_bytes,
                    last_write_utc=None,
                    reason=f"Recycle Bin on {root} holds {info.item_count} items.",
                    action=CleanupActions.EMPTY_RECYCLE_BIN,
                    drive_root=root,
                )
            )
            logger.debug("Trash on %s: %d items, %d bytes", root, info.item_count, info.size_bytes)

        return findings
