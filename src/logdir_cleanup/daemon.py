"""Standalone daemon that cleans a log directory written by another process."""

from __future__ import annotations

import asyncio
import logging
import signal
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler

from .cleaner import CleanResult
from .config import CleanupConfig
from .runner import WaitPolicy
from .scheduler import CleanupScheduler
from .watcher import DirectoryWatcher

# How often the loop wakes up to check for shutdown
_POLL_SLICE = 1.0

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class DaemonStats:
    """Counters reported when the daemon stops."""

    start_time: datetime
    passes: int = 0
    size_passes: int = 0
    files_deleted: int = 0
    events_seen: int = 0
    errors: int = 0


class CleanupDaemon:
    """Keeps a log directory within its age and size limits."""

    def __init__(self, config: CleanupConfig) -> None:
        """Initialize the daemon.

        Args:
            config: Cleanup configuration.

        Raises:
            ValueError: If the configured log level is unknown.

        """
        self.config = config
        self.logger = self._setup_logging()

        # Initialize components
        self.scheduler = CleanupScheduler.from_config(config, logger=self.logger)
        # Passes run off the event loop so the watcher keeps draining
        self.scheduler.wait_policy = WaitPolicy.NEVER
        self.scheduler.exclude_path(config.log_file)
        self.watcher = DirectoryWatcher(config, self.logger)

        # State
        self.stats = DaemonStats(start_time=datetime.now())
        self._running = False
        self._size_pass: Future[CleanResult] | None = None

    def _setup_logging(self) -> logging.Logger:
        """Configure the daemon logger with console and file output.

        Returns:
            Configured logger instance.

        """
        level = self.config.log_level.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.config.log_level!r}")

        logger = logging.getLogger("logdir-cleanup")
        logger.setLevel(getattr(logging, level))

        # A recreated daemon must not stack handlers
        if logger.handlers:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

        # Console handler with Rich
        console_handler = RichHandler(
            console=Console(),
            show_time=True,
            show_path=False,
        )
        console_handler.setLevel(logging.INFO)
        logger.addHandler(console_handler)

        # File handler
        self.config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(self.config.log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        )
        logger.addHandler(file_handler)

        return logger

    def _record_result(self, future: asyncio.Future[CleanResult]) -> None:
        """Fold a finished pass into the statistics."""
        if future.cancelled():
            return
        if (error := future.exception()) is not None:
            self.logger.error("Cleaning pass failed: %s", error)
            self.stats.errors += 1
            return

        result = future.result()
        self.stats.files_deleted += len(result.deleted)
        self.stats.errors += len(result.failed)

    def _tick(self) -> bool:
        """Start a cleaning pass if one is due.

        Returns:
            True if a pass was started.

        """
        future = self.scheduler.try_cleanup()
        if future is None:
            return False
        self.stats.passes += 1
        asyncio.wrap_future(future).add_done_callback(self._record_result)
        return True

    def _enforce_size_limit(self) -> None:
        """Start a size-only pass unless the previous one is still running."""
        if self._size_pass is not None and not self._size_pass.done():
            return
        future = self.scheduler.enforce_size_limit()
        if future is None:
            return
        self._size_pass = future
        self.stats.size_passes += 1
        asyncio.wrap_future(future).add_done_callback(self._record_result)

    async def run_once(self) -> CleanResult:
        """Run a single cleaning pass now, regardless of the period.

        Returns:
            Result of the pass.

        """
        if not self.scheduler.is_enabled:
            self.logger.warning(
                "Cleaning is not configured: set base_path, file_extension and "
                "max_age_days or max_directory_size"
            )
            return CleanResult(path=self.config.base_path or self.config.log_file.parent)

        self.logger.info("Starting single cleaning pass: %s", self.scheduler.base_path)
        self.scheduler.last_cleaning = self.scheduler.cleaner.update_last_cleaning_time(
            self.scheduler.base_path
        )
        self.stats.passes += 1

        future = asyncio.wrap_future(self.scheduler.cleanup(wait=WaitPolicy.NEVER))
        try:
            result = await future
        finally:
            self._record_result(future)

        self.logger.info(
            "Pass complete: matched=%d, deleted=%d, failed=%d",
            result.matched,
            len(result.deleted),
            len(result.failed),
        )
        return result

    async def run_daemon(self) -> None:
        """Clean on startup, then on every log file event or scan interval until stopped."""
        self._running = True
        self.logger.info("Starting log cleanup daemon...")

        # Set up signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_shutdown)

        # Start file watcher
        self.watcher.start()

        # Initial due check
        self._tick()
        last_check = loop.time()

        try:
            while self._running:
                path = await self.watcher.get_pending_event(timeout=_POLL_SLICE)
                if path is not None:
                    self.stats.events_seen += 1 + self.watcher.clear_pending()
                    self.logger.debug("Log file activity: %s", path.name)

                if path is not None or loop.time() - last_check >= self.config.scan_interval:
                    started = self._tick()
                    last_check = loop.time()
                    # A rollover can push the directory over its size budget mid-period
                    if path is not None and not started:
                        self._enforce_size_limit()

        except asyncio.CancelledError:
            self.logger.info("Daemon cancelled")
            raise
        finally:
            self.watcher.stop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            self.logger.info(
                "Daemon stopped. Stats: passes=%d, size_passes=%d, deleted=%d, events=%d, errors=%d",
                self.stats.passes,
                self.stats.size_passes,
                self.stats.files_deleted,
                self.stats.events_seen,
                self.stats.errors,
            )

    def _handle_shutdown(self) -> None:
        """Stop the loop on SIGTERM or SIGINT."""
        self.logger.info("Shutdown signal received")
        self._running = False

    def stop(self) -> None:
        """Stop the daemon."""
        self._running = False
        self.watcher.stop()
