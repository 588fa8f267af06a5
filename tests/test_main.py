"""Tests for the command line interface."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import yaml

from logdir_cleanup.cleaner import CHECKPOINT_FILE_NAME
from logdir_cleanup.main import main, parse_args


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """Create the directory being cleaned."""
    path = tmp_path / "logs"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def close_daemon_logging() -> Iterator[None]:
    """Close daemon log handlers opened by ``run``."""
    yield
    logger = logging.getLogger("logdir-cleanup")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _write_config(tmp_path: Path, **settings: Any) -> Path:
    """Write a config file with the daemon log kept out of the cleaned directory."""
    data: dict[str, Any] = {"logging": {"file": str(tmp_path / "state" / "daemon.log")}}
    data.update(settings)
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump(data))
    return config_file


def _old_log(path: Path, days: float = 3) -> Path:
    path.write_text("old entry\n")
    mtime = time.time() - days * 86400
    os.utime(path, (mtime, mtime))
    return path


class TestParseArgs:
    """Tests for argument parsing."""

    def test_no_command(self) -> None:
        """Test that no subcommand leaves the command unset."""
        args = parse_args([])

        assert args.command is None
        assert args.config is None

    def test_run_once(self) -> None:
        """Test the run subcommand with --once."""
        args = parse_args(["-c", "/tmp/c.yaml", "run", "--once"])

        assert args.command == "run"
        assert args.once is True
        assert args.config == Path("/tmp/c.yaml")

    def test_scan_dir(self) -> None:
        """Test the scan subcommand with a directory override."""
        args = parse_args(["scan", "--dir", "/var/log/app"])

        assert args.command == "scan"
        assert args.dir == Path("/var/log/app")


class TestMain:
    """Tests for command dispatch."""

    def test_default_command_is_run(self, tmp_path: Path) -> None:
        """Test that running without a subcommand starts the daemon."""
        config_file = _write_config(tmp_path)

        with patch("logdir_cleanup.main.cmd_run", return_value=0) as mock_run:
            assert main(["-c", str(config_file)]) == 0

        mock_run.assert_called_once()

    def test_invalid_config_exits_with_error(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that a broken config file is reported, not raised."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("period_minutes: -1\n")

        assert main(["-c", str(config_file), "status"]) == 1
        assert "period_minutes must be positive" in capsys.readouterr().err


class TestConfigCommand:
    """Tests for the config subcommand."""

    def test_init_creates_file(self, tmp_path: Path) -> None:
        """Test that --init writes a default config once."""
        config_file = tmp_path / "new" / "config.yaml"

        assert main(["-c", str(config_file), "config", "--init"]) == 0
        assert config_file.exists()
        assert main(["-c", str(config_file), "config", "--init"]) == 1

    def test_show(self, tmp_path: Path, log_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that --show prints the settings."""
        config_file = _write_config(tmp_path, base_path=str(log_dir), max_directory_size="5MB")

        assert main(["-c", str(config_file), "config", "--show"]) == 0
        out = capsys.readouterr().out
        assert "Current Configuration" in out
        assert "5MB" in out

    def test_no_flags(self, tmp_path: Path) -> None:
        """Test that config without flags is an error."""
        assert main(["-c", str(_write_config(tmp_path)), "config"]) == 1


class TestScanCommand:
    """Tests for the scan subcommand."""

    def test_lists_matching_files(
        self, tmp_path: Path, log_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that matching files are listed without being deleted."""
        old = _old_log(log_dir / "app.log.1")
        (log_dir / "notes.txt").write_text("x")
        config_file = _write_config(tmp_path, base_path=str(log_dir), file_extension="log", max_age_days=1)

        assert main(["-c", str(config_file), "scan"]) == 0
        out = capsys.readouterr().out
        assert "app.log.1" in out
        assert "notes.txt" not in out
        assert old.exists()

    def test_dir_override(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test scanning a directory other than base_path."""
        other = tmp_path / "other"
        other.mkdir()
        config_file = _write_config(tmp_path, file_extension="log")

        assert main(["-c", str(config_file), "scan", "--dir", str(other)]) == 0
        assert "No matching log files" in capsys.readouterr().out

    def test_requires_extension(self, tmp_path: Path, log_dir: Path) -> None:
        """Test that scanning without an extension is an error."""
        config_file = _write_config(tmp_path, base_path=str(log_dir))

        assert main(["-c", str(config_file), "scan"]) == 1

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test that a missing directory is an error."""
        config_file = _write_config(tmp_path, base_path=str(tmp_path / "missing"), file_extension="log")

        assert main(["-c", str(config_file), "scan"]) == 1


class TestStatusCommand:
    """Tests for the status subcommand."""

    def test_never_cleaned(self, tmp_path: Path, log_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test the status of a directory without checkpoint."""
        config_file = _write_config(tmp_path, base_path=str(log_dir), file_extension="log", max_age_days=1)

        assert main(["-c", str(config_file), "status"]) == 0
        out = capsys.readouterr().out
        assert "never" in out
        assert not (log_dir / CHECKPOINT_FILE_NAME).exists()

    def test_requires_base_path(self, tmp_path: Path) -> None:
        """Test that status needs a directory."""
        assert main(["-c", str(_write_config(tmp_path)), "status"]) == 1


class TestRunCommand:
    """Tests for the run subcommand."""

    def test_run_once_cleans(self, tmp_path: Path, log_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that --once runs a pass and exits."""
        old = _old_log(log_dir / "app.log.1")
        config_file = _write_config(tmp_path, base_path=str(log_dir), file_extension="log", max_age_days=1)

        assert main(["-c", str(config_file), "run", "--once"]) == 0

        assert not old.exists()
        assert (log_dir / CHECKPOINT_FILE_NAME).exists()
        assert "deleted 1" in capsys.readouterr().out

    def test_invalid_log_level(self, tmp_path: Path) -> None:
        """Test that a bad log level is reported as an error."""
        config_file = _write_config(tmp_path, logging={"file": str(tmp_path / "d.log"), "level": "LOUD"})

        assert main(["-c", str(config_file), "run", "--once"]) == 1
