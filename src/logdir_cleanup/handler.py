"""Rotating file handler that keeps its own log directory clean."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .runner import WaitPolicy
from .scheduler import CleanupScheduler

# Handlers are hot-path objects, so they check more often than the standalone default
HANDLER_PERIOD_MINUTES = 60.0


class SelfCleaningRotatingFileHandler(RotatingFileHandler):
    """``RotatingFileHandler`` that cleans its log directory before writing.

    Cleaning settings default to the directory of ``filename`` and to the
    extension of ``filename``, so rollover backups (``app.log.1``, ...) and
    older logs in subdirectories are all covered. Nothing is cleaned unless
    ``max_age_days`` or ``max_directory_size`` is given.

    Works with ``logging.config.dictConfig`` since every option is a keyword::

        "handlers": {
            "file": {
                "class": "logdir_cleanup.SelfCleaningRotatingFileHandler",
                "filename": "logs/app.log",
                "maxBytes": 10485760,
                "backupCount": 20,
                "max_age_days": "14",
                "max_directory_size": "500MB",
            }
        }
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 0,
        backupCount: int = 0,
        encoding: str | None = None,
        delay: bool = False,
        errors: str | None = None,
        *,
        cleaning_base_path: str | Path | None = None,
        cleaning_file_extension: str | None = None,
        max_age_days: Any = None,
        max_directory_size: Any = None,
        cleaning_period_minutes: float = HANDLER_PERIOD_MINUTES,
        cleaning_wait_policy: WaitPolicy | str = WaitPolicy.FIRST_TIME_ONLY,
        scheduler: CleanupScheduler | None = None,
    ) -> None:
        super().__init__(filename, mode, maxBytes, backupCount, encoding, delay, errors)

        if scheduler is None:
            scheduler = CleanupScheduler(
                max_age_days=max_age_days,
                max_directory_size=max_directory_size,
                period_minutes=cleaning_period_minutes,
                wait_policy=cleaning_wait_policy,
            )
        self.scheduler = scheduler
        self._activate_cleaning(cleaning_base_path, cleaning_file_extension)

    def _activate_cleaning(self, base_path: str | Path | None, file_extension: str | None) -> None:
        log_file = Path(self.baseFilename)
        # The open file matches the cleaned set but must outlive every pass
        self.scheduler.exclude_path(log_file)

        if base_path is not None:
            self.scheduler.base_path = base_path
        elif self.scheduler.base_path is None:
            self.scheduler.base_path = log_file.parent

        if file_extension is not None:
            self.scheduler.file_extension = file_extension
        elif self.scheduler.file_extension is None:
            self.scheduler.infer_file_extension(log_file)

    def emit(self, record: logging.LogRecord) -> None:
        """Clean the log directory if due, then write the record."""
        try:
            self.scheduler.try_cleanup()
        except Exception:
            # Cleaning must never stop the record from being written
            self.handleError(record)
        super().emit(record)
