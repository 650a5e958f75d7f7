"""Configuration management for disk-reclaim."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from .models import Categories
from .policy import DEFAULT_RETENTION_DAYS, SafetyPolicy, build_protected_path_prefixes

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})


def parse_bool(value: Any, default: bool) -> bool:
    """Parse a boolean from YAML, string or integer input.

    Args:
        value: Raw value. None means "not set".
        default: Returned when value is None.

    Returns:
        Parsed boolean; unknown strings are False.

    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _default_enabled_categories() -> list[str]:
    return [category.id for category in Categories.ALL if category.default_enabled]


def _default_retention() -> dict[str, int]:
    return {category.id: DEFAULT_RETENTION_DAYS for category in Categories.ALL}


def _non_negative_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid {name}: {value!r}") from e
    if number < 0:
        raise ValueError(f"Invalid {name}: {value!r} (must be >= 0)")
    return number


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Invalid config section '{name}': expected a mapping")
    return section


@dataclass
class ReclaimConfig:
    """Configuration for disk-reclaim."""

    # Minimum age for categories without an explicit retention entry
    default_min_age_hours: int = 24

    # Retention per category id (days)
    retention_days: dict[str, int] = field(default_factory=_default_retention)

    # Guards for temp categories
    recent_file_guard_hours: int = 48
    compatibility_mode_enabled: bool = True
    compatibility_installer_guard_days: int = 14

    # Extra protected prefixes on top of the built-in ones
    protected_paths: list[str] = field(default_factory=list)

    # Categories scanned and cleaned by default
    enabled_categories: list[str] = field(default_factory=_default_enabled_categories)

    # Cleanup settings
    max_workers: int | None = None  # None: derived from CPU count
    permanent_delete: bool = False

    # Logging
    log_file: Path = field(default_factory=lambda: Path.home() / ".local/state/disk-reclaim/disk-reclaim.log")
    log_level: str = "INFO"

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(config_home) / "disk-reclaim" / "config.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> ReclaimConfig:
        """Load configuration from YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded configuration. Defaults when the file does not exist.

        Raises:
            ValueError: If the file is not valid YAML or holds invalid values.

        """
        if config_path is None:
            config_path = cls.get_config_path()

        if not config_path.exists():
            return cls()

        try:
            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Invalid config in {config_path}: expected a mapping at top level")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> ReclaimConfig:
        """Create config from dictionary."""
        config = cls()

        # Retention
        retention = _section(data, "retention")
        if "default_min_age_hours" in retention:
            config.default_min_age_hours = _non_negative_int(
                retention["default_min_age_hours"], "retention.default_min_age_hours"
            )
        if "categories" in retention:
            categories = retention["categories"] or {}
            if not isinstance(categories, dict):
                raise ValueError("Invalid retention.categories: expected a mapping")
            for category_id, days in categories.items():
                config.retention_days[str(category_id)] = _non_negative_int(
                    days, f"retention.categories.{category_id}"
                )

        # Guards
        guards = _section(data, "guards")
        if "recent_file_hours" in guards:
            config.recent_file_guard_hours = _non_negative_int(guards["recent_file_hours"], "guards.recent_file_hours")
        compatibility = guards.get("compatibility") or {}
        if not isinstance(compatibility, dict):
            raise ValueError("Invalid guards.compatibility: expected a mapping")
        config.compatibility_mode_enabled = parse_bool(
            compatibility.get("enabled"), config.compatibility_mode_enabled
        )
        if "installer_days" in compatibility:
            config.compatibility_installer_guard_days = _non_negative_int(
                compatibility["installer_days"], "guards.compatibility.installer_days"
            )

        # Protected paths
        if "protected_paths" in data:
            paths = data["protected_paths"] or []
            if not isinstance(paths, list):
                raise ValueError("Invalid protected_paths: expected a list")
            config.protected_paths = [os.path.expanduser(str(p)) for p in paths]

        # Categories
        categories_cfg = _section(data, "categories")
        if "enabled" in categories_cfg:
            enabled = categories_cfg["enabled"] or []
            if not isinstance(enabled, list):
                raise ValueError("Invalid categories.enabled: expected a list")
            unknown = [str(c) for c in enabled if Categories.get(str(c)) is None]
            if unknown:
                raise ValueError(f"Unknown categories: {', '.join(unknown)}")
            config.enabled_categories = [str(c) for c in enabled]

        # Cleanup
        cleanup = _section(data, "cleanup")
        if cleanup.get("max_workers") is not None:
            workers = _non_negative_int(cleanup["max_workers"], "cleanup.max_workers")
            if workers < 1:
                raise ValueError("Invalid cleanup.max_workers: must be >= 1")
            config.max_workers = workers
        config.permanent_delete = parse_bool(cleanup.get("permanent"), config.permanent_delete)

        # Logging
        logging_cfg = _section(data, "logging")
        if "file" in logging_cfg:
            config.log_file = Path(os.path.expanduser(logging_cfg["file"]))
        if "level" in logging_cfg:
            level = str(logging_cfg["level"]).upper()
            if level not in _VALID_LOG_LEVELS:
                raise ValueError(f"Invalid log_level: {logging_cfg['level']!r}")
            config.log_level = level

        return config

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "retention": {
                "default_min_age_hours": self.default_min_age_hours,
                "categories": dict(self.retention_days),
            },
            "guards": {
                "recent_file_hours": self.recent_file_guard_hours,
                "compatibility": {
                    "enabled": self.compatibility_mode_enabled,
                    "installer_days": self.compatibility_installer_guard_days,
                },
            },
            "protected_paths": list(self.protected_paths),
            "categories": {"enabled": list(self.enabled_categories)},
            "cleanup": {
                "max_workers": self.max_workers,
                "permanent": self.permanent_delete,
            },
            "logging": {
                "file": str(self.log_file),
                "level": self.log_level,
            },
        }

        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def build_policy(self) -> SafetyPolicy:
        """Create a safety policy from this configuration."""
        return SafetyPolicy(
            min_age_default=timedelta(hours=self.default_min_age_hours),
            retention_days_by_category=dict(self.retention_days),
            recent_file_guard_hours=self.recent_file_guard_hours,
            compatibility_mode_enabled=self.compatibility_mode_enabled,
            compatibility_installer_guard_days=self.compatibility_installer_guard_days,
            protected_path_prefixes=build_protected_path_prefixes(self.protected_paths),
        )


def log_level_number(level: str) -> int:
    """Translate a level name into a logging constant.

    Raises:
        ValueError: If the name is not a standard logging level.

    """
    name = level.upper()
    if name not in _VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log_level: {level!r}")
    return getattr(logging, name)
