"""Tests for the cleanup actions."""

from __future__ import annotations

import errno
import os
import threading
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from disk_reclaim.actions import (
    EmptyTrashAction,
    PermanentDeleteAction,
    RecycleFileAction,
    default_actions,
)
from disk_reclaim.errors import OperationCancelledError
from disk_reclaim.models import Categories, CleanupActions, Finding, OutcomeCategory, TrashInfo
from disk_reclaim.policy import SafetyPolicy


class FakeTrash:
    """Trash double with a programmable empty() result."""

    def __init__(self, result: bool = True, error: OSError | None = None) -> None:
        self.result = result
        self.error = error
        self.emptied: list[str | None] = []

    def drive_roots(self) -> list[str]:
        return ["Z:\\"]

    def query(self, root: str | None = None) -> TrashInfo:
        return TrashInfo(0, 0)

    def empty(self, root: str | None = None) -> bool:
        if self.error is not None:
            raise self.error
        self.emptied.append(root)
        return self.result


class TestRegistry:
    """Tests for the built-in action registry."""

    def test_default_actions(self) -> None:
        """Test that every action id is registered once."""
        actions = default_actions(FakeTrash())
        assert {a.id for a in actions} == {
            CleanupActions.RECYCLE_FILE,
            CleanupActions.PERMANENT_DELETE_FILE,
            CleanupActions.EMPTY_RECYCLE_BIN,
        }
        assert [a.supports_batch for a in actions] == [False, True, False]


class TestRecycleFileAction:
    """Tests for moving findings to the trash."""

    @pytest.mark.asyncio
    async def test_file_sent_to_trash(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a file is handed to send2trash."""
        target = tmp_path / "a.tmp"
        target.write_text("x")
        send = MagicMock()

        outcome = await RecycleFileAction(send=send).execute(make_finding(target, size_bytes=7), policy)

        send.assert_called_once_with(str(target))
        assert outcome.success
        assert outcome.message == "Sent to trash."
        assert outcome.bytes_reclaimed == 7

    @pytest.mark.asyncio
    async def test_empty_directory_sent(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that empty directories can be recycled."""
        target = tmp_path / "empty"
        target.mkdir()
        send = MagicMock()

        outcome = await RecycleFileAction(send=send).execute(make_finding(target), policy)

        assert outcome.success
        send.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_empty_directory_skipped(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a directory which gained children is left alone."""
        target = tmp_path / "full"
        target.mkdir()
        (target / "child").write_text("x")
        send = MagicMock()

        outcome = await RecycleFileAction(send=send).execute(make_finding(target), policy)

        send.assert_not_called()
        assert outcome.message == "Directory not empty; skipped."
        assert outcome.reason_category is OutcomeCategory.SKIPPED_LOCKED

    @pytest.mark.asyncio
    async def test_missing_file(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a vanished file is reported as not found."""
        outcome = await RecycleFileAction(send=MagicMock()).execute(make_finding(tmp_path / "gone"), policy)
        assert outcome.message == "Path not found."
        assert outcome.reason_category is OutcomeCategory.SKIPPED_OTHER

    @pytest.mark.asyncio
    async def test_access_denied(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a permission error is classified as access denied."""
        target = tmp_path / "a.tmp"
        target.write_text("x")
        send = MagicMock(side_effect=PermissionError(errno.EACCES, "Permission denied"))

        outcome = await RecycleFileAction(send=send).execute(make_finding(target), policy)

        assert outcome.reason_category is OutcomeCategory.SKIPPED_ACCESS_DENIED
        assert outcome.message == "Access denied: Permission denied"
        assert outcome.bytes_reclaimed == 0

    @pytest.mark.asyncio
    async def test_cancelled(self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that a set cancellation signal stops the action before it starts."""
        cancel = threading.Event()
        cancel.set()
        send = MagicMock()

        with pytest.raises(OperationCancelledError):
            await RecycleFileAction(send=send).execute(make_finding(tmp_path / "a"), policy, cancel)

        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_batch_stops_at_cancel(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a batch returns only the items that ran before cancellation."""
        targets = [tmp_path / "a.tmp", tmp_path / "b.tmp"]
        for target in targets:
            target.write_text("x")
        cancel = threading.Event()
        send = MagicMock(side_effect=lambda _path: cancel.set())

        outcomes = await RecycleFileAction(send=send).execute_batch(
            [make_finding(t) for t in targets], policy, cancel
        )

        send.assert_called_once_with(str(targets[0]))
        assert [o.message for o in outcomes] == ["Sent to trash."]


class TestPermanentDeleteAction:
    """Tests for permanent deletion."""

    @pytest.mark.asyncio
    async def test_deletes_file(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a file is removed."""
        target = tmp_path / "a.tmp"
        target.write_text("x")

        outcome = await PermanentDeleteAction().execute(make_finding(target), policy)

        assert outcome.success
        assert outcome.message == "Permanently deleted."
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_removes_empty_directory(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that an empty directory is removed."""
        target = tmp_path / "empty"
        target.mkdir()

        outcome = await PermanentDeleteAction().execute(make_finding(target), policy)

        assert outcome.success
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_never_recursive(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a non-empty directory is kept."""
        target = tmp_path / "full"
        target.mkdir()
        (target / "child").write_text("x")

        outcome = await PermanentDeleteAction().execute(make_finding(target), policy)

        assert outcome.message == "Directory not empty; skipped."
        assert (target / "child").exists()

    @pytest.mark.asyncio
    async def test_batch_one_outcome_per_finding(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a batch reports every input in order."""
        present = tmp_path / "a.tmp"
        present.write_text("x")
        findings = [make_finding(present), make_finding(tmp_path / "gone"), make_finding(None)]

        outcomes = await PermanentDeleteAction().execute_batch(findings, policy)

        assert [o.finding_id for o in outcomes] == [f.id for f in findings]
        assert [o.message for o in outcomes] == ["Permanently deleted.", "Path not found.", "Missing path."]

    @pytest.mark.asyncio
    async def test_batch_empty(self, policy: SafetyPolicy) -> None:
        """Test that an empty batch returns no outcomes."""
        assert await PermanentDeleteAction().execute_batch([], policy) == []

    @pytest.mark.asyncio
    async def test_batch_stops_at_cancel(
        self, tmp_path: Path, make_finding: Callable[..., Finding], policy: SafetyPolicy
    ) -> None:
        """Test that a batch leaves the remaining items alone once cancellation is set."""
        targets = [tmp_path / "a.tmp", tmp_path / "b.tmp"]
        for target in targets:
            target.write_text("x")
        cancel = threading.Event()
        real_remove = os.remove

        def remove_then_cancel(path: str) -> None:
            real_remove(path)
            cancel.set()

        with patch("disk_reclaim.actions.permanent.os.remove", side_effect=remove_then_cancel):
            outcomes = await PermanentDeleteAction().execute_batch([make_finding(t) for t in targets], policy, cancel)

        assert [o.message for o in outcomes] == ["Permanently deleted."]
        assert not targets[0].exists()
        assert targets[1].exists()


class TestEmptyTrashAction:
    """Tests for emptying the trash."""

    def _finding(self, make_finding: Callable[..., Finding]) -> Finding:
        return make_finding(
            "Z:\\",
            category_id=Categories.RECYCLE_BIN.id,
            action=CleanupActions.EMPTY_RECYCLE_BIN,
            drive_root="Z:\\",
            size_bytes=500,
        )

    @pytest.mark.asyncio
    async def test_empties_drive(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that the finding's drive root is emptied."""
        trash = FakeTrash()

        outcome = await EmptyTrashAction(trash).execute(self._finding(make_finding), policy)

        assert trash.emptied == ["Z:\\"]
        assert outcome.success
        assert outcome.bytes_reclaimed == 500

    @pytest.mark.asyncio
    async def test_failure_reported(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that a failed empty is a skipped outcome."""
        outcome = await EmptyTrashAction(FakeTrash(result=False)).execute(self._finding(make_finding), policy)
        assert not outcome.success
        assert outcome.message == "Unable to empty the trash."

    @pytest.mark.asyncio
    async def test_os_error_reported(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that OS errors from the trash become outcomes."""
        trash = FakeTrash(error=OSError("shell unavailable"))
        outcome = await EmptyTrashAction(trash).execute(self._finding(make_finding), policy)
        assert outcome.reason_category is OutcomeCategory.SKIPPED_OTHER
        assert outcome.message == "shell unavailable"

    @pytest.mark.asyncio
    async def test_batch_not_supported(self, make_finding: Callable[..., Finding], policy: SafetyPolicy) -> None:
        """Test that batch requests are declined per finding."""
        findings = [self._finding(make_finding), self._finding(make_finding)]
        outcomes = await EmptyTrashAction(FakeTrash()).execute_batch(findings, policy)
        assert [o.message for o in outcomes] == ["Batch recycle bin cleanup is not supported."] * 2
