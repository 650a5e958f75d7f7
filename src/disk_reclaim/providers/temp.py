"""User and system temp directory providers."""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from .. import rules
from ..models import Categories, Category, Finding
from .base import ProviderIds, aged_entries, enumerate_entries, new_finding, windows_dir

if TYPE_CHECKING:
    from ..config import ReclaimConfig
    from ..policy import SafetyPolicy

logger = logging.getLogger(__name__)


def default_system_temp() -> str:
    if os.name == "nt":
        return os.path.join(windows_dir(), "Temp")
    return "/var/tmp"


def _unique(paths: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for path in paths:
        key = path.casefold()
        if path and key not in seen:
            seen.add(key)
            result.append(path)
    return result


class _TempProvider:
    """Shared scanning for temp roots, including the recent-file and installer guards."""

    id: str
    category: Category
    requires_admin: bool = False
    label: str = "temp"

    def __init__(self, config: ReclaimConfig, roots: Sequence[str] | None = None) -> None:
        self.config = config
        self._roots = roots

    def candidate_roots(self) -> list[str]:
        raise NotImplementedError

    def is_safe_root(self, root: str, policy: SafetyPolicy) -> bool:
        raise NotImplementedError

    def scan(self, policy: SafetyPolicy, cancel: threading.Event | None = None) -> list[Finding]:
        findings: list[Finding] = []
        utc_now = datetime.now(UTC)
        unsafe_roots: list[str] = []
        recent_guard_skipped = False
        compatibility_guard_skipped = False
        retention_days = rules.get_retention_days(self.category.id, policy)

        for root in self.candidate_roots():
            if not os.path.isdir(root):
                continue

            if not self.is_safe_root(root, policy):
                unsafe_roots.append(root)
                continue

            policy.add_allowlist(self.id, root)
            entries = enumerate_entries(root, policy, cancel)
            for entry, last_write, size in aged_entries(self, entries, policy, utc_now, cancel):
                if policy.recent_file_guard_hours > 0 and last_write >= utc_now - timedelta(
                    hours=policy.recent_file_guard_hours
                ):
                    recent_guard_skipped = True
                    continue

                if (
                    not entry.is_directory
                    and policy.compatibility_mode_enabled
                    and policy.compatibility_installer_guard_days > 0
                    and last_write >= utc_now - timedelta(days=policy.compatibility_installer_guard_days)
                    and rules.is_installer_like(entry.path)
                ):
                    compatibility_guard_skipped = True
                    continue

                reason = (
                    f"Empty {self.label} folder older than {retention_days} days."
                    if entry.is_directory
                    else f"{self.label.capitalize()} file older than {retention_days} days."
                )
                findings.append(
                    new_finding(
                        self,
                        entry.path,
                        size_bytes=size,
                        last_write_utc=last_write,
                        reason=reason,
                        requires_admin=self.requires_admin,
                    )
                )

        if unsafe_roots:
            policy.report_warning(f"Skipped unsafe {self.label} roots: {', '.join(unsafe_roots)}")

        if recent_guard_skipped:
            policy.report_warning(
                f"Recent-file guard skipped some {self.label} items (<{policy.recent_file_guard_hours}h)."
            )

        if compatibility_guard_skipped:
            policy.report_warning(
                f"Compatibility guard skipped installer-like {self.label} items "
                f"(<{policy.compatibility_installer_guard_days}d)."
            )

        logger.debug("%s: %d findings", self.id, len(findings))
        return findings


class UserTempProvider(_TempProvider):
    """Temp files of the current user."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.USER_TEMP
    category: Category = Categories.USER_TEMP
    label: str = "user temp"

    def candidate_roots(self) -> list[str]:
        if self._roots is not None:
            return list(self._roots)
        roots = [tempfile.gettempdir()]
        roots.extend(os.environ.get(name, "") for name in ("TMPDIR", "TEMP", "TMP"))
        return _unique(roots)

    def is_safe_root(self, root: str, policy: SafetyPolicy) -> bool:
        return rules.is_safe_user_temp_root(root, policy)


class SystemTempProvider(_TempProvider):
    """The machine-wide temp directory. Needs elevated privileges to clean."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.SYSTEM_TEMP
    category: Category = Categories.SYSTEM_TEMP
    requires_admin: bool = True
    label: str = "system temp"

    def __init__(
        self,
        config: ReclaimConfig,
        roots: Sequence[str] | None = None,
        system_temp: str | None = None,
    ) -> None:
        super().__init__(config, roots)
        self.system_temp = system_temp or default_system_temp()

    def candidate_roots(self) -> list[str]:
        if self._roots is not None:
            return list(self._roots)
        return [self.system_temp]

    def is_safe_root(self, root: str, policy: SafetyPolicy) -> bool:
        return rules.is_safe_system_temp_root(root, policy, self.system_temp)
