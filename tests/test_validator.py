"""Tests for the pre-deletion safety recheck."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from disk_reclaim.models import Categories, CleanupActions, Finding, OutcomeCategory
from disk_reclaim.policy import SafetyPolicy
from disk_reclaim.validator import validate_finding

TEST_PROVIDER = "provider.test"


@pytest.fixture
def root(tmp_path: Path, policy: SafetyPolicy) -> Path:
    """Allow-listed scan root."""
    scan_root = tmp_path / "Temp"
    scan_root.mkdir()
    policy.add_allowlist(TEST_PROVIDER, str(scan_root))
    return scan_root


class TestPathRules:
    """Tests for identity, allow-list and protection rules."""

    def test_missing_provider_id(self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path) -> None:
        """Test that findings without a provider are rejected."""
        result = validate_finding(make_finding(root / "a", provider_id=" "), policy)
        assert not result.ok
        assert result.reason == "Missing provider id."
        assert result.reason_category is OutcomeCategory.SKIPPED_SAFETY_RECHECK

    def test_missing_path(self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path) -> None:
        """Test that findings without a path are rejected."""
        result = validate_finding(make_finding(None), policy)
        assert result.reason == "Missing path."

    def test_outside_allowlist(
        self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path, tmp_path: Path, age
    ) -> None:
        """Test that paths outside the provider's roots are rejected."""
        outside = age(_write(tmp_path / "other.txt"), 30)
        result = validate_finding(make_finding(outside), policy)
        assert result.reason == "Path is outside allowlist."
        assert result.reason_category is OutcomeCategory.SKIPPED_SAFETY_RECHECK

    def test_protected(self, make_finding: Callable[..., Finding], root: Path, age) -> None:
        """Test that protected paths are rejected even when allow-listed."""
        keep = root / "keep"
        keep.mkdir()
        target = keep / "a.txt"
        target.write_text("x")
        age(target, 30)
        policy = SafetyPolicy(protected_path_prefixes=(str(keep) + os.sep,))
        policy.add_allowlist(TEST_PROVIDER, str(root))

        result = validate_finding(make_finding(target), policy)

        assert result.reason == "Path is protected by denylist."

    def test_not_found(self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path) -> None:
        """Test that vanished paths are rejected."""
        result = validate_finding(make_finding(root / "gone.txt"), policy)
        assert result.reason == "Path not found."
        assert result.reason_category is OutcomeCategory.SKIPPED_SAFETY_RECHECK

    @pytest.mark.skipif(not hasattr(os, "symlink") or os.name == "nt", reason="needs POSIX symlinks")
    def test_symlinked_directory(
        self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path, tmp_path: Path
    ) -> None:
        """Test that a directory reached through a symlink is rejected."""
        real = tmp_path / "real"
        real.mkdir()
        link = root / "link"
        link.symlink_to(real, target_is_directory=True)

        result = validate_finding(make_finding(link), policy)

        assert result.reason == "Directory is a reparse point."


class TestAgeRules:
    """Tests for retention and guards against the live timestamp."""

    def test_old_file_accepted(
        self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path, age
    ) -> None:
        """Test that an old, allow-listed file passes."""
        target = root / "old.txt"
        target.write_text("x")
        age(target, 10)

        result = validate_finding(make_finding(target), policy)

        assert result.ok
        assert result.reason_category is OutcomeCategory.DELETED

    def test_too_new(self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path) -> None:
        """Test that a fresh file fails the retention check."""
        target = root / "new.txt"
        target.write_text("x")

        result = validate_finding(make_finding(target), policy)

        assert result.reason == "Too new for retention policy."
        assert result.reason_category is OutcomeCategory.SKIPPED_TOO_NEW

    def test_timestamp_read_from_disk(
        self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path
    ) -> None:
        """Test that a file modified after the scan is rejected despite an old scan timestamp."""
        target = root / "touched.txt"
        target.write_text("x")
        finding = make_finding(target)
        assert finding.last_write_utc is not None and finding.last_write_utc.year == 2020

        result = validate_finding(finding, policy)

        assert result.reason_category is OutcomeCategory.SKIPPED_TOO_NEW

    def test_recent_file_guard(self, make_finding: Callable[..., Finding], root: Path, age) -> None:
        """Test the 48 hour guard on temp categories when retention alone would allow deletion."""
        target = age(_write(root / "a.tmp"), 1)
        policy = SafetyPolicy(retention_days_by_category={"temp.user": 0}, protected_path_prefixes=())
        policy.add_allowlist(TEST_PROVIDER, str(root))

        result = validate_finding(make_finding(target), policy)

        assert result.reason == "Recent file guard (<48h)."
        assert result.reason_category is OutcomeCategory.SKIPPED_TOO_NEW

    def test_recent_file_guard_only_for_temp(self, make_finding: Callable[..., Finding], root: Path, age) -> None:
        """Test that non-temp categories skip the recent file guard."""
        target = age(_write(root / "thumbcache_32.db"), 1)
        policy = SafetyPolicy(retention_days_by_category={"cache.thumbnails": 0}, protected_path_prefixes=())
        policy.add_allowlist(TEST_PROVIDER, str(root))

        result = validate_finding(make_finding(target, category_id=Categories.THUMBNAIL_CACHE.id), policy)

        assert result.ok

    def test_compatibility_guard(self, make_finding: Callable[..., Finding], root: Path, age) -> None:
        """Test that recent installer-like temp files are kept."""
        target = age(_write(root / "setup.msi"), 3)
        policy = SafetyPolicy(
            retention_days_by_category={"temp.user": 0},
            recent_file_guard_hours=0,
            protected_path_prefixes=(),
        )
        policy.add_allowlist(TEST_PROVIDER, str(root))

        result = validate_finding(make_finding(target), policy)

        assert result.reason == "Compatibility guard (installer-like, <14d)."
        assert result.reason_category is OutcomeCategory.SKIPPED_COMPATIBILITY

    def test_compatibility_guard_disabled(self, make_finding: Callable[..., Finding], root: Path, age) -> None:
        """Test that the installer guard can be switched off."""
        target = age(_write(root / "setup.msi"), 3)
        policy = SafetyPolicy(
            retention_days_by_category={"temp.user": 0},
            recent_file_guard_hours=0,
            compatibility_mode_enabled=False,
            protected_path_prefixes=(),
        )
        policy.add_allowlist(TEST_PROVIDER, str(root))

        assert validate_finding(make_finding(target), policy).ok


class TestTrashFindings:
    """Tests for empty-trash findings."""

    def _finding(self, make_finding: Callable[..., Finding], path: str | None, drive_root: str) -> Finding:
        return make_finding(
            path,
            category_id=Categories.RECYCLE_BIN.id,
            action=CleanupActions.EMPTY_RECYCLE_BIN,
            drive_root=drive_root,
        )

    def test_accepted_without_filesystem_access(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that an allow-listed drive root is accepted without touching the filesystem."""
        policy.add_allowlist(TEST_PROVIDER, "Z:\\")
        assert validate_finding(self._finding(make_finding, "Z:\\", "Z:\\"), policy).ok

    def test_path_mismatch(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that path and drive root must agree."""
        policy.add_allowlist(TEST_PROVIDER, "Z:\\")
        result = validate_finding(self._finding(make_finding, "Z:\\Temp", "Z:\\"), policy)
        assert result.reason == "Recycle Bin path mismatch."

    def test_missing_drive_root(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that a drive root is required."""
        result = validate_finding(self._finding(make_finding, "Z:\\", ""), policy)
        assert result.reason == "Missing Recycle Bin drive root."

    def test_not_allow_listed(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that the drive must be allow-listed."""
        result = validate_finding(self._finding(make_finding, "Z:\\", "z:\\"), policy)
        assert result.reason == "Recycle Bin drive not in allowlist."

    def test_protected_drive(self, make_finding: Callable[..., Finding]) -> None:
        """Test that a protected drive root is rejected."""
        policy = SafetyPolicy(protected_path_prefixes=("Z:\\",))
        policy.add_allowlist(TEST_PROVIDER, "Z:\\")
        result = validate_finding(self._finding(make_finding, "Z:\\", "Z:\\"), policy)
        assert result.reason == "Drive root is protected."


def _write(path: Path) -> Path:
    path.write_text("x")
    return path


class TestRepeatability:
    """Tests for repeated validation."""

    def test_same_decision_twice(
        self, make_finding: Callable[..., Finding], policy: SafetyPolicy, root: Path, age
    ) -> None:
        """Test that validating an unchanged finding twice gives the same result."""
        accepted = make_finding(age(_write(root / "old.txt"), 10))
        rejected = make_finding(_write(root / "new.txt"))

        assert validate_finding(accepted, policy) == validate_finding(accepted, policy)
        assert validate_finding(rejected, policy) == validate_finding(rejected, policy)
