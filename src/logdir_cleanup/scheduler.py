"""Decides when a log directory is due for cleaning and dispatches the pass."""

from __future__ import annotations

import logging
import math
import os
import re
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .cleaner import CleanResult, DirectoryCleaner
from .clock import Clock, UtcClock
from .runner import TaskRunner, WaitPolicy

if TYPE_CHECKING:
    from .config import CleanupConfig

DEFAULT_PERIOD_MINUTES = 480.0

# Stand-in for "never cleaned" so the first due check always passes
NEVER_CLEANED = datetime.min.replace(tzinfo=UTC)

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*(KB|MB|GB)?\s*$", re.IGNORECASE)
_SIZE_MULTIPLIERS = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_age_days(value: Any) -> float | None:
    """Parse a maximum file age in (possibly fractional) days.

    Blank, unparsable and non-positive values mean "no age limit".
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        days = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(days) or days <= 0:
        return None
    return days


def parse_size(value: Any) -> int | None:
    """Parse a size such as ``"1000"``, ``"5KB"``, ``"10MB"`` or ``"4GB"`` into bytes.

    Suffixes are 1024-based and case-insensitive. Blank, unparsable and
    non-positive values mean "no size limit".
    """
    if value is None or isinstance(value, bool):
        return None
    match = _SIZE_PATTERN.match(str(value))
    if not match:
        return None

    size = int(match.group(1))
    if suffix := match.group(2):
        size *= _SIZE_MULTIPLIERS[suffix.upper()]
    return size if size > 0 else None


class CleanupScheduler:
    """Runs a directory cleaning pass at most once per period.

    The time of the last pass is kept in memory and persisted as the
    modification time of the checkpoint file, so a restarted process picks
    up where the previous one left off. No locking is done here: callers
    must not call ``try_cleanup`` concurrently on the same instance.
    """

    def __init__(
        self,
        base_path: Path | str | None = None,
        file_extension: str | None = None,
        max_age_days: Any = None,
        max_directory_size: Any = None,
        period_minutes: float = DEFAULT_PERIOD_MINUTES,
        wait_policy: WaitPolicy | str = WaitPolicy.ALWAYS,
        *,
        cleaner: DirectoryCleaner | None = None,
        runner: TaskRunner | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            base_path: Root of the log directory.
            file_extension: Extension of the log files, ``*`` for all files.
            max_age_days: Maximum file age in days (number or string).
            max_directory_size: Size budget in bytes, or a string like ``"100MB"``.
            period_minutes: Minimum time between cleaning passes.
            wait_policy: Whether callers wait for a pass to finish.
            cleaner: Directory cleaner. Defaults to one on the local disk.
            runner: Task runner used to dispatch passes.
            clock: Time source.
            logger: Logger instance.

        """
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or UtcClock()
        self.cleaner = cleaner or DirectoryCleaner(clock=self.clock, logger=self.logger)
        self.runner = runner or TaskRunner(logger=self.logger)

        self.base_path = base_path
        self.file_extension = file_extension
        self.max_age_days = max_age_days
        self.max_directory_size = max_directory_size
        self.period_minutes = period_minutes
        self.wait_policy = WaitPolicy.parse(wait_policy)

        # Last pass start time; None until first needed in this process
        self.last_cleaning: datetime | None = None

        # Files the host still writes to; never deleted
        self.excluded_paths: set[Path] = set()

    @classmethod
    def from_config(cls, config: CleanupConfig, **kwargs: Any) -> CleanupScheduler:
        """Create a scheduler bound to ``config``."""
        scheduler = cls(**kwargs)
        scheduler.apply_config(config)
        return scheduler

    def apply_config(self, config: CleanupConfig) -> None:
        """Bind new settings and forget the cached last cleaning time."""
        self.base_path = config.base_path
        self.file_extension = config.file_extension
        self.max_age_days = config.max_age_days
        self.max_directory_size = config.max_directory_size
        self.period_minutes = config.period_minutes
        self.wait_policy = config.wait_policy
        self.last_cleaning = None

    def exclude_path(self, path: Path | str) -> None:
        """Never delete ``path``, e.g. the log file currently being written."""
        self.excluded_paths.add(Path(os.path.abspath(path)))

    @property
    def base_path(self) -> Path | None:
        return self._base_path

    @base_path.setter
    def base_path(self, value: Path | str | None) -> None:
        self._base_path = Path(value) if value is not None and str(value).strip() else None

    @property
    def max_age_days(self) -> float | None:
        """Maximum file age in days, or None for no age limit."""
        return self._max_age_days

    @max_age_days.setter
    def max_age_days(self, value: Any) -> None:
        self._max_age_days = parse_age_days(value)

    @property
    def max_directory_size(self) -> int | None:
        """Size budget in bytes, or None for no size limit."""
        return self._max_directory_size

    @max_directory_size.setter
    def max_directory_size(self, value: Any) -> None:
        self._max_directory_size = parse_size(value)

    @property
    def period_minutes(self) -> float:
        return self._period_minutes

    @period_minutes.setter
    def period_minutes(self, value: float) -> None:
        minutes = float(value)
        if not minutes > 0:
            raise ValueError(f"period_minutes must be positive, got {value!r}")
        self._period_minutes = minutes

    @property
    def is_enabled(self) -> bool:
        """True when there is something to clean and a limit to clean by."""
        has_limit = self.max_age_days is not None or self.max_directory_size is not None
        has_extension = self.file_extension is not None and bool(self.file_extension.strip())
        return has_limit and has_extension and self.base_path is not None

    def try_cleanup(self) -> Future[CleanResult] | None:
        """Start a cleaning pass if one is due.

        Meant to be called before every log write; when nothing is due this
        returns quickly and does not log.

        Returns:
            Future for the dispatched pass, or None if nothing was started.

        """
        if not self.is_enabled:
            return None

        first_time = self.last_cleaning is None
        now = self.clock.now()
        if not self.is_due_for_cleaning(now):
            return None

        # Record the attempt before scanning so a crashed pass still counts
        self.last_cleaning = self.cleaner.update_last_cleaning_time(self.base_path)
        self.logger.info("Starting cleaning pass: %s", self.base_path)
        return self.cleanup(wait=self.resolve_wait(first_time))

    def is_due_for_cleaning(self, now: datetime) -> bool:
        """Check whether at least ``period_minutes`` have passed since the last pass.

        The first check in a process reads the checkpoint file, so a restart
        does not force an immediate pass.
        """
        if self.last_cleaning is None:
            self.last_cleaning = self.cleaner.get_last_cleaning_time(self.base_path) or NEVER_CLEANED

        return now - self.last_cleaning >= timedelta(minutes=self.period_minutes)

    def next_cleaning_time(self) -> datetime:
        """Earliest time at which the next pass will be due."""
        if self.last_cleaning is None:
            self.last_cleaning = self.cleaner.get_last_cleaning_time(self.base_path) or NEVER_CLEANED
        if self.last_cleaning == NEVER_CLEANED:
            return NEVER_CLEANED
        return self.last_cleaning + timedelta(minutes=self.period_minutes)

    def resolve_wait(self, first_time: bool) -> WaitPolicy:
        """Turn the configured policy into ALWAYS or NEVER for a single pass."""
        if self.wait_policy is WaitPolicy.FIRST_TIME_ONLY:
            return WaitPolicy.ALWAYS if first_time else WaitPolicy.NEVER
        return self.wait_policy

    def cleanup(self, wait: WaitPolicy | None = None) -> Future[CleanResult]:
        """Dispatch a cleaning pass now, whether or not one is due.

        Args:
            wait: Policy for this pass. Defaults to the configured policy.

        Returns:
            Future completed with the pass's CleanResult.

        Raises:
            ValueError: If no base path is configured.

        """
        base_path = self.base_path
        if base_path is None:
            raise ValueError("base_path is not set")

        cutoff = self._age_cutoff(self.clock.now())
        file_extension = self.file_extension
        max_size = self.max_directory_size
        exclude = frozenset(self.excluded_paths)

        return self.runner.run(
            lambda: self.cleaner.clean(base_path, file_extension, cutoff, max_size, exclude=exclude),
            wait or self.wait_policy,
        )

    def enforce_size_limit(self, wait: WaitPolicy | None = None) -> Future[CleanResult] | None:
        """Dispatch a size-only pass now, outside the period and without the checkpoint.

        Meant for a freshly rolled-over directory that may have outgrown its
        budget between regular passes. Age limits are left to the next due pass.

        Returns:
            Future for the pass, or None if no size limit applies.

        """
        base_path = self.base_path
        file_extension = self.file_extension
        max_size = self.max_directory_size
        if base_path is None or max_size is None or file_extension is None or not file_extension.strip():
            return None

        exclude = frozenset(self.excluded_paths)
        return self.runner.run(
            lambda: self.cleaner.clean(base_path, file_extension, None, max_size, exclude=exclude),
            wait or self.wait_policy,
        )

    def _age_cutoff(self, now: datetime) -> datetime | None:
        if self.max_age_days is None:
            return None
        try:
            return now - timedelta(days=self.max_age_days)
        except OverflowError:
            # Limit reaches past the calendar: nothing is that old
            return NEVER_CLEANED

    def infer_file_extension(self, log_file: Path | str | None) -> str | None:
        """Set ``file_extension`` from the name of the log file being written."""
        self.file_extension = self.cleaner.get_file_extension(log_file)
        if self.file_extension is None or not self.file_extension.strip():
            self.logger.warning(
                "Could not infer the log file extension for cleaning from '%s'; "
                "set file_extension explicitly to enable cleaning",
                log_file,
            )
        return self.file_extension
