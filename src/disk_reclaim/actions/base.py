"""Protocol for cleanup actions (the physical removal verbs)."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..models import CleanupOutcome, Finding
    from ..policy import SafetyPolicy


@runtime_checkable
class CleanupAction(Protocol):
    """Interface for one removal verb.

    ``id`` matches the ``recommended_action`` of the findings it handles.
    """

    id: str
    supports_batch: bool

    async def execute(
        self,
        finding: Finding,
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> CleanupOutcome:
        """Remove one finding and classify the result.

        Args:
            finding: Finding that already passed the safety recheck.
            policy: Safety policy of the current scan generation.
            cancel: Shared cancellation signal.

        Returns:
            Outcome for the finding.

        """
        ...

    async def execute_batch(
        self,
        findings: Sequence[Finding],
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
    ) -> list[CleanupOutcome]:
        """Remove several findings in one call.

        Returns:
            One outcome per input finding, in input order. When the cancel
            event is set the list stops at the last item that ran.

        """
        ...
