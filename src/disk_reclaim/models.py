"""Core data model: categories, findings, scan results and cleanup outcomes."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Category:
    """Descriptor for one class of disposable content."""

    id: str
    name: str
    description: str
    default_enabled: bool
    risk_level: str  # "Low" | "Medium"


class Categories:
    """Fixed catalogue of known categories."""

    USER_TEMP = Category(
        "temp.user",
        "User Temp Files",
        "Safe temp files in the current user profile.",
        True,
        "Low",
    )
    SYSTEM_TEMP = Category(
        "temp.system",
        "System Temp Files",
        "Safe temp files in the system temp directory.",
        False,
        "Medium",
    )
    WINDOWS_UPDATE_CACHE = Category(
        "cache.windows-update",
        "Windows Update Cache",
        "Safe Windows Update cache files.",
        False,
        "Medium",
    )
    THUMBNAIL_CACHE = Category(
        "cache.thumbnails",
        "Thumbnail Cache",
        "Thumbnail cache database files.",
        True,
        "Low",
    )
    DIRECTX_SHADER_CACHE = Category(
        "cache.directx-shader",
        "DirectX Shader Cache",
        "DirectX shader cache files (safe to rebuild).",
        True,
        "Low",
    )
    BROWSER_CACHE = Category(
        "cache.browser",
        "Browser Cache",
        "Browser cache files (requires browser closed).",
        False,
        "Medium",
    )
    CRASH_REPORTS = Category(
        "reports.wer",
        "Crash Reports",
        "Crash and error report archives and queues.",
        True,
        "Low",
    )
    RECYCLE_BIN = Category(
        "recyclebin",
        "Recycle Bin",
        "Empty the trash (irreversible).",
        False,
        "Medium",
    )

    ALL: tuple[Category, ...] = (
        USER_TEMP,
        SYSTEM_TEMP,
        WINDOWS_UPDATE_CACHE,
        THUMBNAIL_CACHE,
        DIRECTX_SHADER_CACHE,
        BROWSER_CACHE,
        CRASH_REPORTS,
        RECYCLE_BIN,
    )

    TEMP_IDS: frozenset[str] = frozenset({USER_TEMP.id, SYSTEM_TEMP.id})

    @classmethod
    def get(cls, category_id: str) -> Category | None:
        """Look up a category by id, ignoring case."""
        wanted = category_id.casefold()
        for category in cls.ALL:
            if category.id.casefold() == wanted:
                return category
        return None

    @classmethod
    def is_temp(cls, category_id: str) -> bool:
        return category_id.casefold() in cls.TEMP_IDS


class CleanupActions:
    """Ids of the removal verbs a finding can recommend."""

    RECYCLE_FILE = "recycle-file"
    PERMANENT_DELETE_FILE = "permanent-delete-file"
    EMPTY_RECYCLE_BIN = "empty-recycle-bin"


class OutcomeCategory(str, Enum):
    """Closed classification of why a finding was or wasn't removed."""

    DELETED = "deleted"
    SKIPPED_LOCKED = "skipped.locked"
    SKIPPED_ACCESS_DENIED = "skipped.access"
    SKIPPED_TOO_NEW = "skipped.too-new"
    SKIPPED_COMPATIBILITY = "skipped.compatibility"
    SKIPPED_SAFETY_RECHECK = "skipped.safety"
    SKIPPED_OTHER = "skipped.other"


@dataclass(frozen=True)
class Finding:
    """One unit of disposable content found during a scan.

    ``path`` is None only for abstract targets. Empty-trash findings use
    the drive root as both ``path`` and ``drive_root``.
    """

    id: str
    category_id: str
    provider_id: str
    drive_root: str
    path: str | None
    size_bytes: int
    last_write_utc: datetime | None
    confidence: str
    reason: str
    requires_admin: bool
    requires_app_closed: bool
    recommended_action: str

    def with_action(self, action_id: str) -> Finding:
        """Return a copy recommending a different removal verb.

        Args:
            action_id: Id of the replacement cleanup action.

        Returns:
            New finding with the same id and path.

        """
        return replace(self, recommended_action=action_id)


def _sum_by(findings: Iterable[Finding], key: Callable[[Finding], str]) -> dict[str, int]:
    """Sum sizes grouped case-insensitively, keeping the first-seen spelling."""
    totals: dict[str, int] = {}
    spelling: dict[str, str] = {}
    for finding in findings:
        raw = key(finding)
        label = spelling.setdefault(raw.casefold(), raw)
        totals[label] = totals.get(label, 0) + finding.size_bytes
    return totals


@dataclass(frozen=True)
class ScanResult:
    """Findings of one scan plus derived byte totals."""

    findings: tuple[Finding, ...]
    total_bytes_by_category: dict[str, int] = field(default_factory=dict)
    total_bytes_by_drive: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> ScanResult:
        items = tuple(findings)
        return cls(
            findings=items,
            total_bytes_by_category=_sum_by(items, lambda f: f.category_id),
            total_bytes_by_drive=_sum_by(items, lambda f: f.drive_root),
        )

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.findings)

    def bytes_for_category(self, category_id: str) -> int:
        wanted = category_id.casefold()
        return sum(v for k, v in self.total_bytes_by_category.items() if k.casefold() == wanted)

    def bytes_for_drive(self, drive_root: str) -> int:
        wanted = drive_root.casefold()
        return sum(v for k, v in self.total_bytes_by_drive.items() if k.casefold() == wanted)


@dataclass(frozen=True)
class CleanupOutcome:
    """Result of processing one selected finding."""

    finding_id: str
    success: bool
    message: str
    bytes_reclaimed: int
    reason_category: OutcomeCategory

    @classmethod
    def skipped(cls, finding: Finding, message: str, category: OutcomeCategory) -> CleanupOutcome:
        return cls(finding.id, False, message, 0, category)

    @classmethod
    def deleted(cls, finding: Finding, message: str) -> CleanupOutcome:
        return cls(finding.id, True, message, finding.size_bytes, OutcomeCategory.DELETED)


@dataclass(frozen=True)
class CleanupProgress:
    """Counts published while a cleanup runs."""

    processed: int
    total: int
    deleted: int
    skipped: int


@dataclass(frozen=True)
class TrashInfo:
    """Size and item count reported by a trash query."""

    size_bytes: int
    item_count: int
