"""Rebuildable cache providers: Windows Update downloads, shader caches and browser caches."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .. import rules
from ..models import Categories, Category, Finding
from .base import ProviderIds, aged_entries, cache_home, enumerate_entries, new_finding, windows_dir

if TYPE_CHECKING:
    from ..config import ReclaimConfig
    from ..policy import SafetyPolicy

_CHROMIUM_CACHE_DIRS = ("Cache", "Code Cache", "GPUCache")


class _CacheDirProvider:
    """Walks a fixed set of cache directories and reports old entries."""

    id: str
    category: Category
    file_label: str
    folder_label: str
    requires_admin: bool = False
    requires_app_closed: bool = False

    def __init__(self, config: ReclaimConfig, roots: Sequence[str] | None = None) -> None:
        self.config = config
        self._roots = list(roots) if roots is not None else None

    def default_roots(self, policy: SafetyPolicy) -> list[str]:
        raise NotImplementedError

    def scan(self, policy: SafetyPolicy, cancel: threading.Event | None = None) -> list[Finding]:
        findings: list[Finding] = []
        utc_now = datetime.now(UTC)
        retention_days = rules.get_retention_days(self.category.id, policy)
        roots = self._roots if self._roots is not None else self.default_roots(policy)

        for root in roots:
            if not os.path.isdir(root):
                continue

            policy.add_allowlist(self.id, root)
            entries = enumerate_entries(root, policy, cancel)
            for entry, last_write, size in aged_entries(self, entries, policy, utc_now, cancel):
                reason = (
                    f"Empty {self.folder_label} older than {retention_days} days."
                    if entry.is_directory
                    else f"{self.file_label} older than {retention_days} days."
                )
                findings.append(
                    new_finding(
                        self,
                        entry.path,
                        size_bytes=size,
                        last_write_utc=last_write,
                        reason=reason,
                        requires_admin=self.requires_admin,
                        requires_app_closed=self.requires_app_closed,
                    )
                )

        return findings


class WindowsUpdateCacheProvider(_CacheDirProvider):
    """Downloaded update packages and the delivery optimization cache."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.WINDOWS_UPDATE_CACHE
    category: Category = Categories.WINDOWS_UPDATE_CACHE
    file_label = "Windows Update cache file"
    folder_label = "Windows Update cache folder"
    requires_admin = True

    def default_roots(self, policy: SafetyPolicy) -> list[str]:
        # Windows only.
        if os.name != "nt":
            return []
        distribution = os.path.join(windows_dir(), "SoftwareDistribution")
        return [
            os.path.join(distribution, "Download"),
            os.path.join(distribution, "DeliveryOptimization", "Cache"),
        ]


class ShaderCacheProvider(_CacheDirProvider):
    """Compiled GPU shader caches (DirectX, or Mesa and NVIDIA GL elsewhere)."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.DIRECTX_SHADER_CACHE
    category: Category = Categories.DIRECTX_SHADER_CACHE
    file_label = "Shader cache file"
    folder_label = "shader cache folder"

    def default_roots(self, policy: SafetyPolicy) -> list[str]:
        if os.name == "nt":
            local_app_data = os.environ.get("LOCALAPPDATA")
            return [os.path.join(local_app_data, "D3DSCache")] if local_app_data else []
        return [
            os.path.join(cache_home(), "mesa_shader_cache"),
            str(Path.home() / ".nv" / "GLCache"),
        ]


def chromium_cache_roots(user_data_root: str, policy: SafetyPolicy) -> Iterator[str]:
    """Cache directories of the ``Default`` and ``Profile N`` profiles of a Chromium browser."""
    if not os.path.isdir(user_data_root):
        return

    try:
        with os.scandir(user_data_root) as it:
            profiles = sorted(entry.path for entry in it if entry.is_dir(follow_symlinks=False))
    except OSError as e:
        policy.report_warning(f"Skip browser profiles: {user_data_root} ({e})")
        return

    for profile in profiles:
        name = os.path.basename(profile).casefold()
        if name != "default" and not name.startswith("profile "):
            continue
        for cache_dir in _CHROMIUM_CACHE_DIRS:
            yield os.path.join(profile, cache_dir)


def firefox_cache_roots(profiles_root: str, policy: SafetyPolicy) -> Iterator[str]:
    """``cache2`` directory of every Firefox profile."""
    if not os.path.isdir(profiles_root):
        return

    try:
        with os.scandir(profiles_root) as it:
            profiles = sorted(entry.path for entry in it if entry.is_dir(follow_symlinks=False))
    except OSError as e:
        policy.report_warning(f"Skip Firefox profiles: {profiles_root} ({e})")
        return

    for profile in profiles:
        yield os.path.join(profile, "cache2")


class BrowserCacheProvider(_CacheDirProvider):
    """Edge, Chrome, Chromium and Firefox disk caches. The browser must be closed."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.BROWSER_CACHE
    category: Category = Categories.BROWSER_CACHE
    file_label = "Browser cache file"
    folder_label = "cache folder"
    requires_app_closed = True

    def default_roots(self, policy: SafetyPolicy) -> list[str]:
        if os.name == "nt":
            local_app_data = os.environ.get("LOCALAPPDATA")
            if not local_app_data:
                return []
            chromium = [
                os.path.join(local_app_data, "Microsoft", "Edge", "User Data"),
                os.path.join(local_app_data, "Google", "Chrome", "User Data"),
            ]
            firefox = os.path.join(local_app_data, "Mozilla", "Firefox", "Profiles")
        else:
            base = cache_home()
            chromium = [
                os.path.join(base, "microsoft-edge"),
                os.path.join(base, "google-chrome"),
                os.path.join(base, "chromium"),
            ]
            firefox = os.path.join(base, "mozilla", "firefox")

        roots: list[str] = []
        for user_data in chromium:
            roots.extend(chromium_cache_roots(user_data, policy))
        roots.extend(firefox_cache_roots(firefox, policy))
        return roots
