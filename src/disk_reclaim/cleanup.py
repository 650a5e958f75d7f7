"""Cleanup orchestration: safety recheck, batch or bounded per-item execution, progress."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Callable, Collection, Iterable, Sequence
from typing import TYPE_CHECKING

from .errors import OperationCancelledError
from .models import CleanupOutcome, CleanupProgress, Finding, OutcomeCategory
from .validator import validate_finding

if TYPE_CHECKING:
    from .actions.base import CleanupAction
    from .policy import SafetyPolicy

logger = logging.getLogger(__name__)

MIN_WORKERS = 2
MAX_WORKERS = 6

ProgressSink = Callable[[CleanupProgress], None]


def default_worker_count() -> int:
    """Host parallelism clamped to the supported worker range."""
    return max(MIN_WORKERS, min(os.cpu_count() or MIN_WORKERS, MAX_WORKERS))


class _ProgressAggregator:
    """Owns the progress counters; workers send finished outcomes to it over a queue."""

    def __init__(self, total: int, sink: ProgressSink | None) -> None:
        self.snapshot = CleanupProgress(0, total, 0, 0)
        self._sink = sink
        self._queue: asyncio.Queue[CleanupOutcome | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        self._publish()
        self._task = asyncio.create_task(self._run())

    def record(self, outcome: CleanupOutcome) -> None:
        self._queue.put_nowait(outcome)

    async def close(self) -> None:
        """Drain everything recorded so far and stop."""
        self._queue.put_nowait(None)
        if self._task is not None:
            await self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while (outcome := await self._queue.get()) is not None:
            current = self.snapshot
            self.snapshot = CleanupProgress(
                processed=current.processed + 1,
                total=current.total,
                deleted=current.deleted + (1 if outcome.success else 0),
                skipped=current.skipped + (0 if outcome.success else 1),
            )
            self._publish()

    def _publish(self) -> None:
        if self._sink is None:
            return
        try:
            self._sink(self.snapshot)
        except Exception:
            logger.exception("Progress callback failed")


class CleanupService:
    """Executes selected findings through their cleanup actions.

    Every finding is revalidated against live filesystem state immediately
    before its action runs. When all selected findings share one action that
    supports batches, they are handed over in one call; otherwise (or when
    the batch misreports) findings are processed individually by a bounded
    pool of workers.
    """

    def __init__(self, actions: Iterable[CleanupAction], *, max_workers: int | None = None) -> None:
        """Initialize the service.

        Args:
            actions: Available actions; ids are matched case-insensitively.
            max_workers: Upper bound on concurrent per-item workers. Derived
                from host parallelism when None.

        """
        self._actions: dict[str, CleanupAction] = {action.id.casefold(): action for action in actions}
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers or default_worker_count()

    def get_action(self, action_id: str) -> CleanupAction | None:
        return self._actions.get(action_id.casefold())

    async def execute(
        self,
        findings: Sequence[Finding],
        selected_ids: Collection[str],
        policy: SafetyPolicy,
        cancel: threading.Event | None = None,
        progress: ProgressSink | None = None,
    ) -> list[CleanupOutcome]:
        """Clean the selected findings.

        Args:
            findings: Findings of the current scan.
            selected_ids: Ids of the findings to clean.
            policy: Safety policy of the scan that produced the findings.
            cancel: Shared cancellation signal.
            progress: Called with a snapshot after every finished finding.

        Returns:
            One outcome per selected finding, in finding order.

        Raises:
            OperationCancelledError: If cancellation stopped findings from
                being processed. Carries the outcomes that did complete.

        """
        selected_set = set(selected_ids)
        selected = [finding for finding in findings if finding.id in selected_set]
        if not selected:
            return []

        logger.info("Cleaning %d findings", len(selected))
        tracker = _ProgressAggregator(len(selected), progress)
        tracker.start()
        try:
            try:
                batch_outcomes = await self._try_execute_batch(selected, policy, cancel)
            except OperationCancelledError as e:
                for outcome in e.outcomes:
                    tracker.record(outcome)
                await tracker.close()
                raise OperationCancelledError(str(e), outcomes=e.outcomes, progress=tracker.snapshot) from e

            if batch_outcomes is not None:
                for outcome in batch_outcomes:
                    tracker.record(outcome)
                await tracker.close()
                self._log_summary(batch_outcomes)
                return batch_outcomes

            slots = await self._execute_per_item(selected, policy, cancel, tracker)
            await tracker.close()
        finally:
            tracker.cancel()

        completed = [outcome for outcome in slots if outcome is not None]
        if len(completed) < len(slots):
            logger.warning("Cleanup cancelled after %d of %d findings", len(completed), len(slots))
            raise OperationCancelledError(
                "Cleanup cancelled.",
                outcomes=completed,
                progress=tracker.snapshot,
            )

        self._log_summary(completed)
        return completed

    async def _try_execute_batch(
        self,
        findings: Sequence[Finding],
        policy: SafetyPolicy,
        cancel: threading.Event | None,
    ) -> list[CleanupOutcome] | None:
        """Run all findings through one batch call, or return None to fall back."""
        action_id = findings[0].recommended_action.casefold()
        if any(finding.recommended_action.casefold() != action_id for finding in findings):
            return None

        action = self._actions.get(action_id)
        if action is None or not action.supports_batch:
            return None

        outcomes: list[CleanupOutcome | None] = [None] * len(findings)
        validated: list[tuple[int, Finding]] = []

        for index, finding in enumerate(findings):
            if cancel is not None and cancel.is_set():
                raise _batch_cancelled(outcomes)
            safety = await asyncio.to_thread(validate_finding, finding, policy)
            if not safety.ok:
                outcomes[index] = _rejected(finding, safety.reason, safety.reason_category)
                continue
            validated.append((index, finding))

        if validated:
            batch = [finding for _, finding in validated]
            try:
                batch_outcomes = await action.execute_batch(batch, policy, cancel)
            except OperationCancelledError as e:
                _fill(outcomes, validated, e.outcomes)
                raise _batch_cancelled(outcomes) from e
            except Exception:
                logger.warning("Batch %s failed; falling back to per-item cleanup", action.id, exc_info=True)
                return None

            if len(batch_outcomes) < len(batch) and cancel is not None and cancel.is_set():
                _fill(outcomes, validated, batch_outcomes)
                raise _batch_cancelled(outcomes)

            if len(batch_outcomes) != len(batch):
                logger.warning(
                    "Batch %s returned %d outcomes for %d findings; falling back to per-item cleanup",
                    action.id,
                    len(batch_outcomes),
                    len(batch),
                )
                return None

            _fill(outcomes, validated, batch_outcomes)

        return [outcome for outcome in outcomes if outcome is not None]

    async def _execute_per_item(
        self,
        findings: Sequence[Finding],
        policy: SafetyPolicy,
        cancel: threading.Event | None,
        tracker: _ProgressAggregator,
    ) -> list[CleanupOutcome | None]:
        slots: list[CleanupOutcome | None] = [None] * len(findings)
        gate = asyncio.Semaphore(self.max_workers)

        async def run(index: int, finding: Finding) -> None:
            async with gate:
                if cancel is not None and cancel.is_set():
                    return
                try:
                    outcome = await self._execute_finding(finding, policy, cancel)
                except OperationCancelledError:
                    return
                slots[index] = outcome
                tracker.record(outcome)

        await asyncio.gather(*(run(index, finding) for index, finding in enumerate(findings)))
        return slots

    async def _execute_finding(
        self,
        finding: Finding,
        policy: SafetyPolicy,
        cancel: threading.Event | None,
    ) -> CleanupOutcome:
        action = self._actions.get(finding.recommended_action.casefold())
        if action is None:
            return CleanupOutcome.skipped(finding, "No cleanup action registered.", OutcomeCategory.SKIPPED_OTHER)

        try:
            safety = await asyncio.to_thread(validate_finding, finding, policy)
            if not safety.ok:
                return _rejected(finding, safety.reason, safety.reason_category)

            return await action.execute(finding, policy, cancel)
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.exception("Unexpected error cleaning %s", finding.path)
            return CleanupOutcome.skipped(finding, str(e), OutcomeCategory.SKIPPED_OTHER)

    @staticmethod
    def _log_summary(outcomes: Sequence[CleanupOutcome]) -> None:
        deleted = sum(1 for outcome in outcomes if outcome.success)
        reclaimed = sum(outcome.bytes_reclaimed for outcome in outcomes)
        logger.info(
            "Cleanup finished: deleted=%d, skipped=%d, reclaimed=%d bytes",
            deleted,
            len(outcomes) - deleted,
            reclaimed,
        )


def _rejected(finding: Finding, reason: str, category: OutcomeCategory) -> CleanupOutcome:
    logger.info("Skipping %s: %s", finding.path or finding.id, reason)
    return CleanupOutcome.skipped(finding, f"Failed safety recheck: {reason}", category)


def _fill(
    slots: list[CleanupOutcome | None],
    validated: Sequence[tuple[int, Finding]],
    batch_outcomes: Sequence[CleanupOutcome],
) -> None:
    """Place batch outcomes into their finding slots; a short batch fills a prefix."""
    for (index, _finding), outcome in zip(validated, batch_outcomes, strict=False):
        slots[index] = outcome


def _batch_cancelled(slots: Sequence[CleanupOutcome | None]) -> OperationCancelledError:
    completed = [outcome for outcome in slots if outcome is not None]
    logger.warning("Batch cleanup cancelled after %d of %d findings", len(completed), len(slots))
    return OperationCancelledError("Cleanup cancelled.", outcomes=completed)
