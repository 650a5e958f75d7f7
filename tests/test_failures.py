"""Tests for OS error classification."""

from __future__ import annotations

import errno
from collections.abc import Callable
from pathlib import Path

import pytest

from disk_reclaim.actions.failures import ERROR_LOCK_VIOLATION, ERROR_SHARING_VIOLATION, classify_os_error
from disk_reclaim.models import Finding, OutcomeCategory


def _winerror(code: int) -> OSError:
    exc = OSError("windows failure")
    exc.winerror = code  # type: ignore[attr-defined]
    return exc


class TestClassifyOsError:
    """Tests for classify_os_error."""

    @pytest.mark.parametrize(
        "exc,category,message",
        [
            (OSError(errno.EBUSY, "Device busy"), OutcomeCategory.SKIPPED_LOCKED, "Locked or in use: Device busy"),
            (OSError(errno.ENOTEMPTY, "Not empty"), OutcomeCategory.SKIPPED_LOCKED, "Directory not empty; skipped."),
            (
                OSError(errno.EPERM, "Not permitted"),
                OutcomeCategory.SKIPPED_ACCESS_DENIED,
                "Access denied: Not permitted",
            ),
            (OSError(errno.ENOENT, "No such file"), OutcomeCategory.SKIPPED_OTHER, "Path not found."),
            (OSError(errno.ECANCELED, "Canceled"), OutcomeCategory.SKIPPED_OTHER, "Delete canceled; skipped."),
        ],
    )
    def test_errno_mapping(
        self,
        exc: OSError,
        category: OutcomeCategory,
        message: str,
        tmp_path: Path,
        make_finding: Callable[..., Finding],
    ) -> None:
        """Test errno values map onto the outcome taxonomy."""
        outcome = classify_os_error(make_finding(tmp_path), exc)
        assert outcome.reason_category is category
        assert outcome.message == message
        assert outcome.success is False

    @pytest.mark.parametrize("code", [ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION])
    def test_windows_lock_codes(self, code: int, tmp_path: Path, make_finding: Callable[..., Finding]) -> None:
        """Test that Windows sharing and lock violations count as locked."""
        outcome = classify_os_error(make_finding(tmp_path), _winerror(code))
        assert outcome.reason_category is OutcomeCategory.SKIPPED_LOCKED

    def test_unknown_error_on_existing_path(self, tmp_path: Path, make_finding: Callable[..., Finding]) -> None:
        """Test that unrecognized errors on a present path keep their detail."""
        outcome = classify_os_error(make_finding(tmp_path), OSError(errno.EIO, "I/O error"))
        assert outcome.message == "Unable to delete: I/O error"
        assert outcome.reason_category is OutcomeCategory.SKIPPED_OTHER

    def test_unknown_error_on_vanished_path(self, tmp_path: Path, make_finding: Callable[..., Finding]) -> None:
        """Test that unrecognized errors are re-probed and reported as not found."""
        outcome = classify_os_error(make_finding(tmp_path / "gone"), OSError(errno.EIO, "I/O error"))
        assert outcome.message == "Path not found."
