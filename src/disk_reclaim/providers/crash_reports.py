"""Crash and error report provider."""

from __future__ import annotations

import os
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .. import rules
from ..models import Categories, Category, Finding
from .base import ProviderIds, aged_entries, enumerate_entries, new_finding

if TYPE_CHECKING:
    from ..config import ReclaimConfig
    from ..policy import SafetyPolicy


def default_report_roots() -> list[str]:
    if os.name == "nt":
        program_data = os.environ.get("ProgramData")
        if not program_data:
            return []
        wer = os.path.join(program_data, "Microsoft", "Windows", "WER")
        return [os.path.join(wer, "ReportArchive"), os.path.join(wer, "ReportQueue")]
    return ["/var/crash"]


class CrashReportsProvider:
    """Archived and queued crash reports (Windows Error Reporting, /var/crash)."""

    MODULE_ENABLED: bool = True
    id: str = ProviderIds.CRASH_REPORTS
    category: Category = Categories.CRASH_REPORTS

    def __init__(self, config: ReclaimConfig, roots: Sequence[str] | None = None) -> None:
        self.config = config
        self.roots = list(roots) if roots is not None else default_report_roots()

    def scan(self, policy: SafetyPolicy, cancel: threading.Event | None = None) -> list[Finding]:
        findings: list[Finding] = []
        utc_now = datetime.now(UTC)
        retention_days = rules.get_retention_days(self.category.id, policy)

        for root in self.roots:
            if not os.path.isdir(root):
                continue

            policy.add_allowlist(self.id, root)
            entries = enumerate_entries(root, policy, cancel)
            for entry, last_write, size in aged_entries(self, entries, policy, utc_now, cancel):
                reason = (
                    f"Empty report folder older than {retention_days} days."
                    if entry.is_directory
                    else f"Error report file older than {retention_days} days."
                )
                findings.append(
                    new_finding(
                        self,
                        entry.path,
                        size_bytes=size,
                        last_write_utc=last_write,
                        reason=reason,
                        requires_admin=True,
                    )
                )

        return findings
