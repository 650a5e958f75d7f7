"""Provider protocol and helpers shared by the built-in providers."""

from __future__ import annotations

import logging
import os
import stat
import threading
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .. import rules
from ..errors import raise_if_cancelled
from ..models import Category, CleanupActions, Finding

if TYPE_CHECKING:
    from ..policy import SafetyPolicy

logger = logging.getLogger(__name__)

_FILE_ATTRIBUTE_REPARSE_POINT = 0x0400


class ProviderIds:
    USER_TEMP = "provider.user-temp"
    SYSTEM_TEMP = "provider.system-temp"
    THUMBNAIL_CACHE = "provider.thumbnail-cache"
    CRASH_REPORTS = "provider.wer-reports"
    RECYCLE_BIN = "provider.recycle-bin"
    WINDOWS_UPDATE_CACHE = "provider.windows-update-cache"
    DIRECTX_SHADER_CACHE = "provider.directx-shader-cache"
    BROWSER_CACHE = "provider.browser-cache"


def windows_dir() -> str:
    return os.environ.get("SystemRoot") or os.environ.get("windir") or "C:\\Windows"


def cache_home() -> str:
    """``$XDG_CACHE_HOME``, or ``~/.cache`` when unset."""
    return os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")


@runtime_checkable
class Provider(Protocol):
    """Interface for content discoverers.

    A provider must register every root it wants findings under with
    ``policy.add_allowlist`` before it emits them. A component that is not
    installed yields an empty list; genuine I/O errors may be raised.
    """

    MODULE_ENABLED: bool
    id: str
    category: Category

    def scan(self, policy: SafetyPolicy, cancel: threading.Event | None = None) -> list[Finding]:
        """Scan and return findings.

        Args:
            policy: Policy to register allow-list roots and warnings into.
            cancel: Shared cancellation signal.

        Returns:
            Findings for this provider's category.

        """
        ...


@dataclass(frozen=True)
class Entry:
    """A file, or an empty directory, found below a scan root."""

    path: str
    is_directory: bool


def _is_reparse(entry: os.DirEntry[str]) -> bool:
    if entry.is_symlink():
        return True
    attributes = getattr(entry.stat(follow_symlinks=False), "st_file_attributes", 0)
    return bool(attributes & _FILE_ATTRIBUTE_REPARSE_POINT)


def enumerate_entries(
    root: str,
    policy: SafetyPolicy,
    cancel: threading.Event | None = None,
) -> Iterator[Entry]:
    """Yield files and empty sub-directories below ``root``.

    Symlinked and reparse-point directories are skipped entirely: never
    descended into and never yielded. Listing failures are reported as
    policy warnings and the subtree is skipped. The root itself is never
    yielded.
    """
    stack = [root]

    while stack:
        raise_if_cancelled(cancel)
        current = stack.pop()

        try:
            with os.scandir(current) as it:
                children = list(it)
        except OSError as e:
            policy.report_warning(f"Skip directory list: {current} ({e})")
            continue

        for child in children:
            try:
                reparse = _is_reparse(child)
                is_dir = child.is_dir()
            except OSError as e:
                policy.report_warning(f"Skip reparse check: {child.path} ({e})")
                continue

            if reparse and is_dir:
                continue
            if is_dir:
                stack.append(child.path)
            else:
                yield Entry(child.path, False)

        if not children and current != root:
            yield Entry(current, True)


def read_entry(entry: Entry, policy: SafetyPolicy) -> tuple[datetime, int] | None:
    """Return (last write UTC, size) for an entry, or None after reporting a warning."""
    try:
        st = os.lstat(entry.path)
    except OSError as e:
        policy.report_warning(f"Skip entry: {entry.path} ({e})")
        return None

    size = 0 if entry.is_directory or stat.S_ISDIR(st.st_mode) else st.st_size
    return datetime.fromtimestamp(st.st_mtime, UTC), size


def aged_entries(
    provider: Provider,
    entries: Iterable[Entry],
    policy: SafetyPolicy,
    utc_now: datetime,
    cancel: threading.Event | None = None,
) -> Iterator[tuple[Entry, datetime, int]]:
    """Filter entries down to allowed paths old enough for the provider's category."""
    for entry in entries:
        raise_if_cancelled(cancel)
        if not rules.is_allowed_path(provider.id, entry.path, policy):
            continue

        info = read_entry(entry, policy)
        if info is None:
            continue

        last_write, size = info
        if not rules.is_old_enough(provider.category.id, last_write, policy, utc_now):
            continue

        yield entry, last_write, size


def new_finding(
    provider: Provider,
    path: str,
    *,
    size_bytes: int,
    last_write_utc: datetime | None,
    reason: str,
    requires_admin: bool = False,
    requires_app_closed: bool = False,
    action: str = CleanupActions.RECYCLE_FILE,
    drive_root: str | None = None,
) -> Finding:
    return Finding(
        id=f"{provider.id}:{uuid.uuid4().hex}",
        category_id=provider.category.id,
        provider_id=provider.id,
        drive_root=drive_root if drive_root is not None else rules.drive_root_of(path),
        path=path,
        size_bytes=size_bytes,
        last_write_utc=last_write_utc,
        confidence="High",
        reason=reason,
        requires_admin=requires_admin,
        requires_app_closed=requires_app_closed,
        recommended_action=action,
    )
