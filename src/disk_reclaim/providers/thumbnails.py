"""Thumbnail and icon cache provider."""

from __future__ import annotations

import fnmatch
import os
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .. import rules
from ..models import Categories, Category, Finding
from .base import Entry, ProviderIds, aged_entries, cache_home, enumerate_entries, new_finding

if TYPE_CHECKING:
    from ..config import ReclaimConfig
    from ..policy import SafetyPolicy

_WINDOWS_PATTERNS = ("thumbcache*.db", "iconcache*.db")


def default_thumbnail_root() -> str | None:
    if os.name == "nt":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if not local_app_data:
            return None
        return os.path.join(local_app_data, "Microsoft", "Windows", "Explorer")
    return os.path.join(cache_home(), "thumbnails")


class ThumbnailCacheProvider:
    """Thumbnail databases (Explorer) or freedesktop thumbnail images."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.THUMBNAIL_CACHE
    category: Category = Categories.THUMBNAIL_CACHE

    def __init__(self, config: ReclaimConfig, root: str | None = None) -> None:
        self.config = config
        self.root = root if root is not None else default_thumbnail_root()

    def _entries(self, root: str, policy: SafetyPolicy, cancel: threading.Event | None) -> list[Entry]:
        if os.name != "nt":
            return list(enumerate_entries(root, policy, cancel))

        entries: list[Entry] = []
        try:
            with os.scandir(root) as it:
                for child in it:
                    name = child.name.casefold()
                    if child.is_file(follow_symlinks=False) and any(
                        fnmatch.fnmatchcase(name, pattern) for pattern in _WINDOWS_PATTERNS
                    ):
                        entries.append(Entry(child.path, False))
        except OSError as e:
            policy.report_warning(f"Skip thumbnail cache listing: {root} ({e})")
        return entries

    def scan(self, policy: SafetyPolicy, cancel: threading.Event | None = None) -> list[Finding]:
        root = self.root
        if not root or not os.path.isdir(root):
            return []

        policy.add_allowlist(self.id, root)
        utc_now = datetime.now(UTC)
        retention_days = rules.get_retention_days(self.category.id, policy)

        findings: list[Finding] = []
        for entry, last_write, size in aged_entries(self, self._entries(root, policy, cancel), policy, utc_now, cancel):
            if entry.is_directory:
                continue
            findings.append(
                new_finding(
                    self,
                    entry.path,
                    size_bytes=size,
                    last_write_utc=last_write,
                    reason=f"Thumbnail/icon cache file older than {retention_days} days.",
                    requires_app_closed=os.name == "nt",
                )
            )
        return findings
