"""File system watcher that notices new log files and rollovers."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from watchdog.events import FileCreatedEvent, FileMovedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .cleaner import is_matching_log_file

if TYPE_CHECKING:
    from watchdog.events import FileSystemEvent

    from .config import CleanupConfig

MAX_PENDING_EVENTS = 1000


class RotationEventHandler(FileSystemEventHandler):
    """Reports created or renamed files that belong to the log set."""

    def __init__(
        self,
        file_extension: str | None,
        callback: Callable[[Path], None],
        logger: logging.Logger,
    ) -> None:
        """Initialize the event handler.

        Args:
            file_extension: Extension of the log files, ``*`` for all files.
            callback: Function to call with each matching path.
            logger: Logger instance.

        """
        super().__init__()
        self.file_extension = file_extension
        self.callback = callback
        self.logger = logger

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file creation events (a new log file was opened)."""
        if isinstance(event, FileCreatedEvent) and not event.is_directory:
            self._check_path(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move events (rollover renames app.log to app.log.1)."""
        if isinstance(event, FileMovedEvent) and not event.is_directory:
            self._check_path(event.dest_path)

    def _check_path(self, raw_path: str | bytes) -> None:
        path = Path(os.fsdecode(raw_path))
        if is_matching_log_file(path, self.file_extension):
            self.logger.debug("Log file event: %s", path.name)
            self.callback(path)


class DirectoryWatcher:
    """Watches the configured log directory with watchdog."""

    def __init__(self, config: CleanupConfig, logger: logging.Logger) -> None:
        """Initialize the watcher.

        Args:
            config: Cleanup configuration.
            logger: Logger instance.

        """
        self.config = config
        self.logger = logger
        self._observer: Observer | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: asyncio.Queue[Path] = asyncio.Queue(maxsize=MAX_PENDING_EVENTS)
        self._running = False

    def _on_file_event(self, path: Path) -> None:
        """Hand a path over from the observer thread to the event loop."""
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._enqueue, path)
        else:
            self._enqueue(path)

    def _enqueue(self, path: Path) -> None:
        try:
            self._pending.put_nowait(path)
        except asyncio.QueueFull:
            self.logger.warning("Event queue full, dropping: %s", path.name)

    def start(self) -> None:
        """Start watching the configured directory."""
        if self._observer is not None:
            return

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        self._observer = Observer()
        handler = RotationEventHandler(
            self.config.file_extension,
            self._on_file_event,
            self.logger,
        )

        directory = self.config.base_path
        if directory is not None and directory.is_dir():
            self._observer.schedule(handler, str(directory), recursive=True)
            self.logger.info("Watching directory: %s", directory)
        else:
            self.logger.warning("Log directory does not exist: %s", directory)

        self._observer.start()
        self._running = True
        self.logger.info("File watcher started")

    def stop(self) -> None:
        """Stop watching."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
            self._running = False
            self.logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        """True between start() and stop()."""
        return self._running

    async def get_pending_event(self, timeout: float | None = None) -> Path | None:
        """Get the next reported log file path.

        Args:
            timeout: Maximum time to wait, in seconds.

        Returns:
            Path of the file, or None on timeout.

        """
        try:
            if timeout is not None:
                return await asyncio.wait_for(self._pending.get(), timeout=timeout)
            return await self._pending.get()
        except TimeoutError:
            return None

    def clear_pending(self) -> int:
        """Drop all pending events.

        Returns:
            Number of events dropped.

        """
        count = 0
        while not self._pending.empty():
            try:
                self._pending.get_nowait()
                count += 1
            except asyncio.QueueEmpty:
                break
        return count
