"""Map OS deletion errors onto the outcome taxonomy."""

from __future__ import annotations

import errno
import os

from ..models import CleanupOutcome, Finding, OutcomeCategory

# Windows error codes carried in OSError.winerror
ERROR_FILE_NOT_FOUND = 2
ERROR_PATH_NOT_FOUND = 3
ERROR_ACCESS_DENIED = 5
ERROR_SHARING_VIOLATION = 32
ERROR_LOCK_VIOLATION = 33
ERROR_DIR_NOT_EMPTY = 145
ERROR_CANCELLED = 1223

_LOCKED_ERRNOS = frozenset({errno.EBUSY, errno.ETXTBSY})
_ACCESS_ERRNOS = frozenset({errno.EACCES, errno.EPERM})
_NOT_FOUND_ERRNOS = frozenset({errno.ENOENT})


def missing_path(finding: Finding) -> CleanupOutcome:
    return CleanupOutcome.skipped(finding, "Missing path.", OutcomeCategory.SKIPPED_OTHER)


def not_found(finding: Finding) -> CleanupOutcome:
    return CleanupOutcome.skipped(finding, "Path not found.", OutcomeCategory.SKIPPED_OTHER)


def directory_not_empty(finding: Finding) -> CleanupOutcome:
    return CleanupOutcome.skipped(finding, "Directory not empty; skipped.", OutcomeCategory.SKIPPED_LOCKED)


def classify_os_error(finding: Finding, exc: OSError) -> CleanupOutcome:
    """Build the failure outcome for an OSError raised while deleting a finding.

    Unrecognized errors are re-probed: if the path is gone by now the
    failure is reported as not found.
    """
    winerror = getattr(exc, "winerror", None)
    code = exc.errno
    detail = exc.strerror or str(exc)

    if winerror in (ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION) or code in _LOCKED_ERRNOS:
        return CleanupOutcome.skipped(finding, f"Locked or in use: {detail}", OutcomeCategory.SKIPPED_LOCKED)

    if winerror == ERROR_DIR_NOT_EMPTY or code == errno.ENOTEMPTY:
        return directory_not_empty(finding)

    if winerror == ERROR_ACCESS_DENIED or code in _ACCESS_ERRNOS or isinstance(exc, PermissionError):
        return CleanupOutcome.skipped(finding, f"Access denied: {detail}", OutcomeCategory.SKIPPED_ACCESS_DENIED)

    if winerror in (ERROR_FILE_NOT_FOUND, ERROR_PATH_NOT_FOUND) or code in _NOT_FOUND_ERRNOS:
        return not_found(finding)

    if winerror == ERROR_CANCELLED or code == errno.ECANCELED:
        return CleanupOutcome.skipped(finding, "Delete canceled; skipped.", OutcomeCategory.SKIPPED_OTHER)

    if finding.path and not os.path.lexists(finding.path):
        return not_found(finding)

    return CleanupOutcome.skipped(finding, f"Unable to delete: {detail}", OutcomeCategory.SKIPPED_OTHER)
