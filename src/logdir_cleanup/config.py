"""Configuration management for the log directory cleaner."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .runner import WaitPolicy
from .scheduler import DEFAULT_PERIOD_MINUTES


@dataclass
class CleanupConfig:
    """Configuration for cleaning one log directory."""

    # Root of the log directory tree
    base_path: Path | None = None

    # Extension of the log files; blank disables cleaning, "*" matches every file
    file_extension: str | None = None

    # Limits are kept as written; unparsable values mean "no limit"
    max_age_days: str | None = None  # decimal days, e.g. "14" or "0.5"
    max_directory_size: str | None = None  # bytes with optional KB/MB/GB, e.g. "500MB"

    # Minimum time between cleaning passes (minutes)
    period_minutes: float = DEFAULT_PERIOD_MINUTES

    wait_policy: WaitPolicy = WaitPolicy.ALWAYS

    # Logging
    log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/state/logdir-cleanup/daemon.log"
    )
    log_level: str = "INFO"

    # Daemon settings
    scan_interval: int = 60  # Seconds between due checks when no file events arrive

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        return Path.home() / ".config/logdir-cleanup/config.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> CleanupConfig:
        """Load configuration from YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded configuration.

        Raises:
            ValueError: If the file is not valid YAML or holds invalid settings.

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
            raise ValueError(f"Invalid config in {config_path}: expected a mapping")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> CleanupConfig:
        """Create config from dictionary."""
        config = cls()

        if data.get("base_path"):
            config.base_path = Path(os.path.expanduser(str(data["base_path"])))

        # Simple fields
        if "file_extension" in data:
            config.file_extension = _optional_str(data["file_extension"])
        if "max_age_days" in data:
            config.max_age_days = _optional_str(data["max_age_days"])
        if "max_directory_size" in data:
            config.max_directory_size = _optional_str(data["max_directory_size"])
        if "period_minutes" in data:
            config.period_minutes = float(data["period_minutes"])
        if "wait_policy" in data:
            config.wait_policy = WaitPolicy.parse(data["wait_policy"])
        if "scan_interval" in data:
            config.scan_interval = int(data["scan_interval"])

        # Logging
        if "logging" in data:
            logging_cfg = data["logging"] or {}
            if "file" in logging_cfg:
                config.log_file = Path(os.path.expanduser(logging_cfg["file"]))
            if "level" in logging_cfg:
                config.log_level = str(logging_cfg["level"]).upper()

        config.validate()
        return config

    def validate(self) -> None:
        """Check numeric settings.

        Raises:
            ValueError: If an interval is not positive.

        """
        if not self.period_minutes > 0:
            raise ValueError(f"period_minutes must be positive, got {self.period_minutes}")
        if self.scan_interval <= 0:
            raise ValueError(f"scan_interval must be positive, got {self.scan_interval}")

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to YAML file.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        # Ensure directory exists
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "base_path": str(self.base_path) if self.base_path is not None else None,
            "file_extension": self.file_extension,
            "max_age_days": self.max_age_days,
            "max_directory_size": self.max_directory_size,
            "period_minutes": self.period_minutes,
            "wait_policy": self.wait_policy.value,
            "scan_interval": self.scan_interval,
            "logging": {
                "file": str(self.log_file),
                "level": self.log_level,
            },
        }

        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _optional_str(value: Any) -> str | None:
    """YAML may hand back numbers for limits; keep them as text."""
    if value is None:
        return None
    return str(value)
