"""Path rules: normalization, allow-list containment, protected paths and retention.

Every comparison here is case-insensitive. Strings that look like Windows
paths (``C:\\...`` or ``\\\\server\\share``) are always handled with Windows
semantics so the same policy can be evaluated on any host; other strings use
the host's own path semantics.
"""

from __future__ import annotations

import math
import ntpath
import os
import posixpath
import re
from datetime import datetime, timedelta
from types import ModuleType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .policy import SafetyPolicy

INSTALLER_EXTENSIONS = frozenset({".msi", ".msp", ".cab", ".exe", ".ps1", ".bat", ".cmd"})
TEMP_SEGMENTS = frozenset({"temp", "tmp"})

_WINDOWS_PATH = re.compile(r"^(?:[A-Za-z]:|\\\\)")


def _flavor(path: str) -> ModuleType:
    if os.name == "nt" or _WINDOWS_PATH.match(path):
        return ntpath
    return posixpath


def _separators(mod: ModuleType) -> str:
    return mod.sep + (mod.altsep or "")


def normalize_path(path: str) -> str:
    """Return the canonical absolute form of a path without trailing separators.

    A bare anchor (``/``) keeps its separator; a drive root (``C:\\``)
    becomes ``C:``, matching how the root form is rebuilt in normalize_root.

    Raises:
        ValueError: If the path is empty or blank.

    """
    if not path or not path.strip():
        raise ValueError("Path is empty.")
    mod = _flavor(path)
    full = mod.normpath(mod.abspath(path))
    return full.rstrip(_separators(mod)) or full


def normalize_root(path: str) -> str:
    """Return the normalized path with exactly one trailing separator.

    Used for prefix comparisons so ``C:\\Temp2`` never matches ``C:\\Temp``.
    """
    sep = _flavor(path).sep
    normalized = normalize_path(path)
    return normalized if normalized.endswith(sep) else normalized + sep


def drive_root_of(path: str) -> str:
    """Return the drive or mount anchor a path lives on (``C:\\`` or ``/``)."""
    mod = _flavor(path)
    drive, _rest = mod.splitdrive(normalize_path(path))
    return drive + mod.sep


def is_under_allowlist(provider_id: str, path: str, policy: SafetyPolicy) -> bool:
    """Check that a path sits under one of the provider's registered roots."""
    roots = policy.allowlist_roots(provider_id)
    if not roots:
        return False

    normalized_path = normalize_path(path).casefold()
    normalized_path_root = normalize_root(path).casefold()
    for root in roots:
        normalized_root = normalize_root(root).casefold()
        if normalized_path.startswith(normalized_root):
            return True
        if normalized_path_root == normalized_root:
            return True

    return False


def is_protected_path(path: str, policy: SafetyPolicy) -> bool:
    """Check a path against every protected prefix of the policy.

    Plain prefixes must prefix-match the normalized path. Prefixes with a
    ``*`` use the loose wildcard match of _matches_wildcard_prefix.
    """
    normalized_path = normalize_root(path)

    for pattern in policy.protected_path_prefixes:
        if not pattern or not pattern.strip():
            continue

        if "*" in pattern:
            if _matches_wildcard_prefix(normalized_path, pattern):
                return True
        elif normalized_path.casefold().startswith(normalize_root(pattern).casefold()):
            return True

    return False


def is_allowed_path(provider_id: str, path: str, policy: SafetyPolicy) -> bool:
    """Allow-listed for the provider and not protected."""
    if not is_under_allowlist(provider_id, path, policy):
        return False
    return not is_protected_path(path, policy)


def _matches_wildcard_prefix(normalized_path_with_separator: str, pattern: str) -> bool:
    """Match ``<prefix>*<suffix>`` against a path ending in a separator.

    The literal prefix must prefix-match. The suffix, wrapped in separators,
    only has to appear somewhere after the prefix, not directly after the
    segment the ``*`` stands for.
    """
    mod = _flavor(pattern)
    sep = mod.sep
    normalized_pattern = pattern.replace("/", "\\") if mod is ntpath else pattern
    star_index = normalized_pattern.find("*")
    if star_index < 0:
        return False

    prefix = normalized_pattern[:star_index]
    suffix = normalized_pattern[star_index + 1 :]

    if not prefix.strip():
        # A pattern without a usable prefix cannot be scoped; treat it as covering everything.
        return True

    folded_path = normalized_path_with_separator.casefold()
    folded_prefix = normalize_root(prefix).casefold()
    if not folded_path.startswith(folded_prefix):
        return False

    if not suffix:
        return True

    normalized_suffix = suffix.replace("/", "\\") if mod is ntpath else suffix
    if not normalized_suffix.startswith(sep):
        normalized_suffix = sep + normalized_suffix
    if not normalized_suffix.endswith(sep):
        normalized_suffix += sep

    return folded_path.find(normalized_suffix.casefold(), len(folded_prefix)) >= 0


def is_old_enough(
    category_id: str,
    last_write_utc: datetime | None,
    policy: SafetyPolicy,
    utc_now: datetime,
) -> bool:
    """Check a timestamp against the category's retention (or the default minimum age)."""
    if last_write_utc is None:
        return False

    retention_days = policy.retention_days_for(category_id)
    if retention_days is not None:
        return last_write_utc <= utc_now - timedelta(days=retention_days)

    return last_write_utc <= utc_now - policy.min_age_default


def get_retention_days(category_id: str, policy: SafetyPolicy) -> int:
    retention_days = policy.retention_days_for(category_id)
    if retention_days is not None:
        return retention_days
    return math.ceil(policy.min_age_default.total_seconds() / 86400)


def is_installer_like(path: str) -> bool:
    _stem, ext = _flavor(path).splitext(path)
    return ext.casefold() in INSTALLER_EXTENSIONS


def _try_normalize_root(path: str) -> str | None:
    try:
        return normalize_root(path)
    except ValueError:
        return None


def _contains_temp_segment(normalized_root: str) -> bool:
    segments = re.split(r"[\\/]+", normalized_root)
    return any(segment.casefold() in TEMP_SEGMENTS for segment in segments if segment)


def is_safe_user_temp_root(root: str, policy: SafetyPolicy) -> bool:
    """A user temp root must be unprotected and contain a Temp or Tmp segment."""
    normalized_root = _try_normalize_root(root)
    if normalized_root is None:
        return False

    if is_protected_path(root, policy):
        return False

    return _contains_temp_segment(normalized_root)


def is_safe_system_temp_root(root: str, policy: SafetyPolicy, system_temp: str) -> bool:
    """A system temp root must be unprotected and be the platform's system temp directory."""
    normalized_root = _try_normalize_root(root)
    if normalized_root is None:
        return False

    if is_protected_path(root, policy):
        return False

    expected = _try_normalize_root(system_temp)
    if expected is None:
        return False

    return normalized_root.casefold() == expected.casefold()
