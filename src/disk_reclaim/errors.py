"""Exception types and the shared cancellation check."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CleanupOutcome, CleanupProgress


class ReclaimError(Exception):
    """Base class for disk-reclaim errors."""


class OperationCancelledError(ReclaimError):
    """Raised when a scan or cleanup stops because cancellation was requested.

    Carries whatever completed before the stop so callers can report it.
    """

    def __init__(
        self,
        message: str = "Operation cancelled.",
        *,
        outcomes: Sequence[CleanupOutcome] = (),
        progress: CleanupProgress | None = None,
    ) -> None:
        super().__init__(message)
        self.outcomes = list(outcomes)
        self.progress = progress


def raise_if_cancelled(cancel: threading.Event | None) -> None:
    """Raise OperationCancelledError if the cancellation signal is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError()
