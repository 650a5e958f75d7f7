"""Pre-deletion safety recheck against live filesystem state.

Every finding is validated again immediately before any destructive action.
Scan-time facts are not trusted: allow-list and protected-path rules are
re-evaluated and the timestamp is re-read from disk on every call.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from . import rules
from .models import Categories, CleanupActions, Finding, OutcomeCategory

if TYPE_CHECKING:
    from .policy import SafetyPolicy

logger = logging.getLogger(__name__)

_FILE_ATTRIBUTE_REPARSE_POINT = 0x0400


@dataclass(frozen=True)
class SafetyCheckResult:
    """Accept/reject decision with its reason category."""

    ok: bool
    reason: str
    reason_category: OutcomeCategory


_ACCEPTED = SafetyCheckResult(True, "", OutcomeCategory.DELETED)


def _reject(reason: str, category: OutcomeCategory = OutcomeCategory.SKIPPED_SAFETY_RECHECK) -> SafetyCheckResult:
    return SafetyCheckResult(False, reason, category)


def _is_reparse_point(st: os.stat_result) -> bool:
    if stat.S_ISLNK(st.st_mode):
        return True
    return bool(getattr(st, "st_file_attributes", 0) & _FILE_ATTRIBUTE_REPARSE_POINT)


def validate_finding(finding: Finding, policy: SafetyPolicy, now: datetime | None = None) -> SafetyCheckResult:
    """Decide whether a finding may be acted on right now.

    Args:
        finding: Finding about to be cleaned.
        policy: Safety policy of the current scan generation.
        now: Current UTC time. Read from the clock when None.

    Returns:
        SafetyCheckResult; the first failing rule wins.

    """
    if not finding.provider_id or not finding.provider_id.strip():
        return _reject("Missing provider id.")

    if finding.recommended_action.casefold() == CleanupActions.EMPTY_RECYCLE_BIN:
        return _validate_trash_finding(finding, policy)

    path = finding.path
    if not path or not path.strip():
        return _reject("Missing path.")

    if not rules.is_under_allowlist(finding.provider_id, path, policy):
        return _reject("Path is outside allowlist.")

    if rules.is_protected_path(path, policy):
        return _reject("Path is protected by denylist.")

    try:
        st = os.lstat(path)
        reparse = _is_reparse_point(st)
        is_directory = os.path.isdir(path) if reparse else stat.S_ISDIR(st.st_mode)
    except FileNotFoundError:
        return _reject("Path not found.")
    except OSError as e:
        return _reject(f"Unable to read attributes: {e}")

    if is_directory and reparse:
        logger.warning("Refusing reparse-point directory: %s", path)
        return _reject("Directory is a reparse point.")

    last_write = datetime.fromtimestamp(st.st_mtime, UTC)
    utc_now = now or datetime.now(UTC)

    if not rules.is_old_enough(finding.category_id, last_write, policy, utc_now):
        return _reject("Too new for retention policy.", OutcomeCategory.SKIPPED_TOO_NEW)

    if Categories.is_temp(finding.category_id):
        guard_hours = policy.recent_file_guard_hours
        if guard_hours > 0 and last_write >= utc_now - timedelta(hours=guard_hours):
            return _reject(f"Recent file guard (<{guard_hours}h).", OutcomeCategory.SKIPPED_TOO_NEW)

        guard_days = policy.compatibility_installer_guard_days
        if (
            policy.compatibility_mode_enabled
            and guard_days > 0
            and rules.is_installer_like(path)
            and last_write >= utc_now - timedelta(days=guard_days)
        ):
            return _reject(
                f"Compatibility guard (installer-like, <{guard_days}d).",
                OutcomeCategory.SKIPPED_COMPATIBILITY,
            )

    return _ACCEPTED


def _validate_trash_finding(finding: Finding, policy: SafetyPolicy) -> SafetyCheckResult:
    """Empty-trash targets are whole drives: path and drive root must agree."""
    if not finding.path or not finding.path.strip() or not finding.drive_root or not finding.drive_root.strip():
        return _reject("Missing Recycle Bin drive root.")

    if finding.path.casefold() != finding.drive_root.casefold():
        return _reject("Recycle Bin path mismatch.")

    if not rules.is_under_allowlist(finding.provider_id, finding.path, policy):
        return _reject("Recycle Bin drive not in allowlist.")

    if rules.is_protected_path(finding.path, policy):
        return _reject("Drive root is protected.")

    return _ACCEPTED
