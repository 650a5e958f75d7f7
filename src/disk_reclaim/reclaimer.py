"""Application facade: wires configuration, providers, actions and logging together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import threading
from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

from .actions import default_actions
from .cleanup import CleanupService, ProgressSink
from .config import log_level_number
from .errors import OperationCancelledError
from .models import CleanupActions, CleanupOutcome, Finding, ScanResult
from .providers import discover_providers
from .scanner import ScanService
from .trash import default_trash

if TYPE_CHECKING:
    from .actions.base import CleanupAction
    from .config import ReclaimConfig
    from .policy import SafetyPolicy
    from .providers.base import Provider
    from .trash import TrashService

LOGGER_NAME = "disk_reclaim"


@dataclass
class ReclaimStats:
    """Running totals across the scans and cleanups of one reclaimer."""

    start_time: datetime
    scans: int = 0
    findings_detected: int = 0
    bytes_found: int = 0
    deleted: int = 0
    skipped: int = 0
    bytes_reclaimed: int = 0


@dataclass
class RunResult:
    """Outcome of a scan followed by a cleanup."""

    scan: ScanResult
    outcomes: list[CleanupOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def bytes_reclaimed(self) -> int:
        return sum(outcome.bytes_reclaimed for outcome in self.outcomes)


class DiskReclaimer:
    """Scans for disposable content and cleans what the caller selects."""

    def __init__(
        self,
        config: ReclaimConfig,
        *,
        providers: Sequence[Provider] | None = None,
        actions: Iterable[CleanupAction] | None = None,
        trash: TrashService | None = None,
        policy: SafetyPolicy | None = None,
    ) -> None:
        """Initialize the reclaimer.

        Args:
            config: Reclaim configuration.
            providers: Providers to scan with. Discovered from the enabled
                categories when None.
            actions: Cleanup actions. The built-in registry when None.
            trash: Trash capability used by the empty-trash action.
            policy: Safety policy. Built from the configuration when None.

        Raises:
            ValueError: If the configured log level is invalid.

        """
        self.config = config
        self.logger = self._setup_logging()

        self.policy = policy if policy is not None else config.build_policy()
        self.trash = trash if trash is not None else default_trash()
        self.providers = list(providers) if providers is not None else discover_providers(config, self.trash)
        self.scanner = ScanService()
        self.cleaner = CleanupService(
            actions if actions is not None else default_actions(self.trash),
            max_workers=config.max_workers,
        )

        self.stats = ReclaimStats(start_time=datetime.now())
        self._cancel = threading.Event()

    def _setup_logging(self) -> logging.Logger:
        """Set up logging for the package.

        Returns:
            Configured package logger.

        """
        level = log_level_number(self.config.log_level)

        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(level)

        # Clear existing handlers to avoid duplicates if the reclaimer is recreated
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
        )
        console_handler.setLevel(max(level, logging.INFO))
        logger.addHandler(console_handler)

        self.config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(self.config.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logger.addHandler(file_handler)

        return logger

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    def cancel(self) -> None:
        """Request cancellation of the running scan or cleanup."""
        self.logger.info("Cancellation requested")
        self._cancel.set()

    async def scan(self) -> ScanResult:
        """Scan with every provider, starting a new allow-list generation."""
        self._cancel.clear()
        self.policy.reset_for_scan()

        result = await self.scanner.scan(self.providers, self.policy, self._cancel)

        self.stats.scans += 1
        self.stats.findings_detected += len(result.findings)
        self.stats.bytes_found += result.total_bytes
        for warning in self.policy.warnings:
            self.logger.warning("%s", warning)
        return result

    def select(
        self,
        result: ScanResult,
        categories: Collection[str] | None = None,
        *,
        permanent: bool | None = None,
    ) -> list[Finding]:
        """Pick the findings to clean.

        Args:
            result: Scan result to select from.
            categories: Category ids to include. The configured enabled
                categories when None.
            permanent: Replace move-to-trash with permanent deletion.
                Follows the configuration when None.

        Returns:
            Selected findings in scan order.

        """
        wanted = {c.casefold() for c in (categories if categories is not None else self.config.enabled_categories)}
        if permanent is None:
            permanent = self.config.permanent_delete

        selected: list[Finding] = []
        for finding in result.findings:
            if finding.category_id.casefold() not in wanted:
                continue
            if permanent and finding.recommended_action == CleanupActions.RECYCLE_FILE:
                finding = finding.with_action(CleanupActions.PERMANENT_DELETE_FILE)
            selected.append(finding)
        return selected

    async def cleanup(
        self,
        findings: Sequence[Finding],
        selected_ids: Collection[str] | None = None,
        progress: ProgressSink | None = None,
    ) -> list[CleanupOutcome]:
        """Clean findings of the current scan.

        Args:
            findings: Findings to clean from.
            selected_ids: Ids to clean. Every finding when None.
            progress: Progress callback.

        Returns:
            One outcome per selected finding.

        Raises:
            OperationCancelledError: If cancellation stopped the cleanup.

        """
        if selected_ids is None:
            selected_ids = [finding.id for finding in findings]

        try:
            outcomes = await self.cleaner.execute(findings, selected_ids, self.policy, self._cancel, progress)
        except OperationCancelledError as e:
            self._record(e.outcomes)
            raise
        self._record(outcomes)
        return outcomes

    def _record(self, outcomes: Sequence[CleanupOutcome]) -> None:
        for outcome in outcomes:
            if outcome.success:
                self.stats.deleted += 1
                self.stats.bytes_reclaimed += outcome.bytes_reclaimed
            else:
                self.stats.skipped += 1

    async def run_once(
        self,
        categories: Collection[str] | None = None,
        *,
        permanent: bool | None = None,
        progress: ProgressSink | None = None,
    ) -> RunResult:
        """Scan, select and clean in one pass.

        SIGINT and SIGTERM request cancellation while the pass runs; the
        result then carries the outcomes that completed.
        """
        self.logger.info("Starting reclaim pass...")
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except (NotImplementedError, RuntimeError):
                continue
            installed.append(sig)

        try:
            try:
                result = await self.scan()
            except OperationCancelledError:
                self.logger.info("Scan cancelled")
                return RunResult(scan=ScanResult.from_findings(()), cancelled=True)

            selected = self.select(result, categories, permanent=permanent)
            self.logger.info("Selected %d of %d findings", len(selected), len(result.findings))

            try:
                outcomes = await self.cleanup(selected, progress=progress)
            except OperationCancelledError as e:
                return RunResult(scan=result, outcomes=e.outcomes, cancelled=True)
            return RunResult(scan=result, outcomes=outcomes)
        finally:
            for sig in installed:
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.remove_signal_handler(sig)
            self.logger.info(
                "Reclaim pass done. Stats: found=%d, deleted=%d, skipped=%d, reclaimed=%d bytes",
                self.stats.findings_detected,
                self.stats.deleted,
                self.stats.skipped,
                self.stats.bytes_reclaimed,
            )

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal."""
        self.logger.info("Shutdown signal received")
        self._cancel.set()
