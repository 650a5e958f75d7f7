"""Safety policy: retention settings, guards, protected paths and per-scan allow-lists."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable, Mapping
from datetime import timedelta
from pathlib import Path

from .models import Categories

DEFAULT_RETENTION_DAYS = 7

# Windows locations that are protected on every host. Wildcards stand for one
# path segment (see rules.is_protected_path).
STATIC_PROTECTED_PREFIXES: tuple[str, ...] = (
    "C:\\Windows\\System32\\",
    "C:\\Windows\\WinSxS\\",
    "C:\\Program Files\\",
    "C:\\Program Files (x86)\\",
    "C:\\Users\\*\\Documents\\",
    "C:\\Users\\*\\Desktop\\",
)

_POSIX_SYSTEM_PREFIXES: tuple[str, ...] = ("/bin/", "/boot/", "/etc/", "/lib/", "/sbin/", "/usr/")


def _with_separator(path: str, sep: str = os.sep) -> str:
    return path if path.endswith(sep) else path + sep


def _windows_prefixes(environ: Mapping[str, str]) -> set[str]:
    prefixes: set[str] = set()
    windows_dir = environ.get("SystemRoot") or environ.get("windir")
    if windows_dir:
        prefixes.add(_with_separator(os.path.join(windows_dir, "System32")))
        prefixes.add(_with_separator(os.path.join(windows_dir, "WinSxS")))
    for name in ("ProgramFiles", "ProgramFiles(x86)"):
        value = environ.get(name)
        if value:
            prefixes.add(_with_separator(value))
    return prefixes


def resolve_environment_prefixes(environ: Mapping[str, str] | None = None) -> set[str]:
    """Resolve protected prefixes from the current environment.

    Covers the system directories of the running platform and the user's
    Documents and Desktop folders, including the same folders of every other
    profile next to the current one.
    """
    environ = os.environ if environ is None else environ
    prefixes: set[str] = set()

    if os.name == "nt":
        prefixes |= _windows_prefixes(environ)
        profile = environ.get("USERPROFILE")
    else:
        prefixes.update(_POSIX_SYSTEM_PREFIXES)
        profile = environ.get("HOME")

    if profile:
        profiles_root = os.path.dirname(os.path.normpath(profile))
        if profiles_root:
            prefixes.add(_with_separator(os.path.join(profiles_root, "*", "Documents")))
            prefixes.add(_with_separator(os.path.join(profiles_root, "*", "Desktop")))
        prefixes.add(_with_separator(os.path.join(profile, "Documents")))
        prefixes.add(_with_separator(os.path.join(profile, "Desktop")))

    return prefixes


def build_protected_path_prefixes(extra: Iterable[str] = ()) -> set[str]:
    """Return static, environment-resolved and user-supplied protected prefixes."""
    prefixes = set(STATIC_PROTECTED_PREFIXES)
    prefixes |= resolve_environment_prefixes()
    prefixes.update(p for p in extra if p and p.strip())
    return prefixes


def default_retention_days() -> dict[str, int]:
    return {category.id: DEFAULT_RETENTION_DAYS for category in Categories.ALL}


class SafetyPolicy:
    """Configuration and per-scan state that governs what may be deleted.

    Configuration attributes are stable across scans. The allow-list and the
    warnings are transient: providers fill them during a scan and
    ``reset_for_scan`` clears them. Both transient collections are guarded by
    a lock so cleanup workers can read them while validating.
    """

    def __init__(
        self,
        *,
        min_age_default: timedelta = timedelta(hours=24),
        retention_days_by_category: dict[str, int] | None = None,
        recent_file_guard_hours: int = 48,
        compatibility_mode_enabled: bool = True,
        compatibility_installer_guard_days: int = 14,
        protected_path_prefixes: Iterable[str] | None = None,
    ) -> None:
        self.min_age_default = min_age_default
        self.recent_file_guard_hours = recent_file_guard_hours
        self.compatibility_mode_enabled = compatibility_mode_enabled
        self.compatibility_installer_guard_days = compatibility_installer_guard_days

        retention = default_retention_days() if retention_days_by_category is None else retention_days_by_category
        self._retention = {key.casefold(): int(days) for key, days in retention.items()}

        if protected_path_prefixes is None:
            self.protected_path_prefixes = build_protected_path_prefixes()
        else:
            self.protected_path_prefixes = set(protected_path_prefixes)

        self._lock = threading.Lock()
        self._allowlist: dict[str, list[str]] = {}
        self._warnings: list[str] = []

    # -- configuration -----------------------------------------------------

    @property
    def retention_days_by_category(self) -> dict[str, int]:
        return dict(self._retention)

    def set_retention_days(self, category_id: str, days: int) -> None:
        self._retention[category_id.casefold()] = int(days)

    def retention_days_for(self, category_id: str) -> int | None:
        """Return the explicit retention for a category, or None."""
        return self._retention.get(category_id.casefold())

    # -- per-scan state ----------------------------------------------------

    def add_allowlist(self, provider_id: str, *roots: str | Path) -> None:
        """Permit a provider to act on paths under the given roots."""
        with self._lock:
            entries = self._allowlist.setdefault(provider_id.casefold(), [])
            for root in roots:
                text = str(root)
                if text.strip():
                    entries.append(text)

    def allowlist_roots(self, provider_id: str) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._allowlist.get(provider_id.casefold(), ()))

    @property
    def allowlist_roots_by_provider(self) -> dict[str, tuple[str, ...]]:
        with self._lock:
            return {key: tuple(roots) for key, roots in self._allowlist.items()}

    def report_warning(self, message: str) -> None:
        if message and message.strip():
            with self._lock:
                self._warnings.append(message)

    @property
    def warnings(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._warnings)

    def clear_warnings(self) -> None:
        with self._lock:
            self._warnings.clear()

    def reset_for_scan(self) -> None:
        """Forget allow-lists and warnings from the previous scan."""
        with self._lock:
            self._allowlist.clear()
            self._warnings.clear()
