"""Shared fixtures."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from disk_reclaim.models import Categories, CleanupActions, Finding
from disk_reclaim.policy import SafetyPolicy

TEST_PROVIDER = "provider.test"


@pytest.fixture
def policy() -> SafetyPolicy:
    """Policy without host-specific protected prefixes."""
    return SafetyPolicy(protected_path_prefixes=())


@pytest.fixture
def age() -> Callable[[Path, float], Path]:
    """Set a path's modification time to ``days`` ago."""

    def _age(path: Path, days: float) -> Path:
        stamp = time.time() - days * 86400
        os.utime(path, (stamp, stamp))
        return path

    return _age


@pytest.fixture
def make_finding() -> Callable[..., Finding]:
    """Build findings with sensible defaults."""
    counter = iter(range(1_000_000))

    def _make(
        path: Path | str | None,
        *,
        category_id: str = Categories.USER_TEMP.id,
        provider_id: str = TEST_PROVIDER,
        action: str = CleanupActions.RECYCLE_FILE,
        size_bytes: int = 100,
        drive_root: str | None = None,
    ) -> Finding:
        return Finding(
            id=f"{provider_id}:{next(counter)}",
            category_id=category_id,
            provider_id=provider_id,
            drive_root=drive_root if drive_root is not None else "/",
            path=str(path) if path is not None else None,
            size_bytes=size_bytes,
            last_write_utc=datetime(2020, 1, 1, tzinfo=UTC),
            confidence="High",
            reason="test",
            requires_admin=False,
            requires_app_closed=False,
            recommended_action=action,
        )

    return _make
