"""Age and size based cleaning of rolling log directories."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .clock import Clock, UtcClock
from .filesystem import FileRecord, FileSystemGateway, path_key

CHECKPOINT_FILE_NAME = "lastcleaning.check"
MATCH_ALL = "*"

# Numeric suffix appended by rollover, e.g. "app.log.14"
_BACKUP_SUFFIX = re.compile(r"\.\d+$")


def get_file_extension(path: str | os.PathLike[str] | None) -> str | None:
    """Get the extension of a log file, ignoring one rolling-backup suffix.

    Args:
        path: Log file path, e.g. ``app.txt`` or ``app.txt.14``.

    Returns:
        The extension with its leading dot (``".txt"``; ``".log"`` for a file
        named ``.log``), an empty string for files without one, or None for
        blank input.

    """
    if path is None:
        return None
    path = os.fspath(path)
    if not path.strip():
        return None

    if _BACKUP_SUFFIX.search(path):
        path = path[: path.rindex(".")]

    name = os.path.basename(path)
    if name.endswith("."):
        return ""
    # splitext treats ".log" as a name without extension
    if name.startswith(".") and name.count(".") == 1:
        return name
    return os.path.splitext(path)[1]


def is_matching_log_file(path: str | os.PathLike[str] | None, extension: str | None) -> bool:
    """Check whether ``path`` belongs to the log set selected by ``extension``.

    The checkpoint file never matches. ``*`` matches every other file. Any
    other extension is compared case-insensitively, with or without its
    leading dot, and also matches rolling backups (``.ext.N``).
    """
    if path is None or extension is None:
        return False
    path = os.fspath(path)
    if not path.strip() or not extension.strip():
        return False
    if os.path.basename(path).lower() == CHECKPOINT_FILE_NAME:
        return False
    if extension == MATCH_ALL:
        return True

    if not extension.startswith("."):
        extension = f".{extension}"
    actual = get_file_extension(path)
    return actual is not None and actual.lower() == extension.lower()


def _absolute_key(path: str | os.PathLike[str]) -> str:
    return path_key(os.path.abspath(path))


def _is_candidate(path: Path, extension: str, excluded: set[str]) -> bool:
    if not is_matching_log_file(path, extension):
        return False
    return not excluded or _absolute_key(path) not in excluded


@dataclass
class CleanResult:
    """Result of a cleaning pass."""

    path: Path
    matched: int = 0
    deleted: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)
    remaining_bytes: int = 0


class DirectoryCleaner:
    """Removes old rolling log files and keeps the checkpoint file."""

    def __init__(
        self,
        gateway: FileSystemGateway | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the cleaner.

        Args:
            gateway: File system access. Defaults to the local disk.
            clock: Time source used when the checkpoint cannot be written.
            logger: Logger instance.

        """
        self.logger = logger or logging.getLogger(__name__)
        self.gateway = gateway or FileSystemGateway(logger=self.logger)
        self.clock = clock or UtcClock()

    def clean(
        self,
        path: Path,
        file_extension: str | None,
        cutoff: datetime | None = None,
        max_size_bytes: int | None = None,
        exclude: Iterable[str | os.PathLike[str]] = (),
    ) -> CleanResult:
        """Run one cleaning pass over ``path``.

        Files older than ``cutoff`` go first. Then the oldest remaining files
        are removed until the total size fits in ``max_size_bytes``. Empty
        directories are pruned afterwards either way.

        Args:
            path: Root of the log directory.
            file_extension: Extension of the log files, or ``*`` for all files.
                Blank disables cleaning.
            cutoff: Delete files last modified strictly before this time.
            max_size_bytes: Size budget for all matching files.
            exclude: Files never deleted or counted, such as a log file that is
                still open for writing.

        Returns:
            CleanResult describing what was removed.

        """
        path = Path(path)
        result = CleanResult(path=path)
        excluded = {_absolute_key(p) for p in exclude}

        if file_extension is None or not file_extension.strip():
            return result
        if not self.gateway.exists_directory(path):
            return result

        try:
            found = self.gateway.find_files(path, lambda p: _is_candidate(p, file_extension, excluded))
        except OSError as e:
            self.logger.error("Error scanning %s: %s", path, e)
            return result

        result.matched = len(found)

        if cutoff is not None:
            self._remove_files(found, list(found), lambda info: info.last_modified < cutoff, result)

        if max_size_bytes is not None:
            self._remove_oldest_over_size_limit(found, max_size_bytes, result)

        result.remaining_bytes = sum(info.size for info in found.values())

        self.gateway.delete_empty_directories(path)

        if result.deleted or result.failed:
            self.logger.info(
                "Cleaned %s: matched=%d, deleted=%d, failed=%d, remaining=%d bytes",
                path,
                result.matched,
                len(result.deleted),
                len(result.failed),
                result.remaining_bytes,
            )
        return result

    def _remove_oldest_over_size_limit(
        self, found: dict[str, FileRecord], limit: int, result: CleanResult
    ) -> None:
        total_remaining = sum(info.size for info in found.values())

        def over_limit(info: FileRecord) -> bool:
            nonlocal total_remaining
            remove = total_remaining > limit
            total_remaining -= info.size
            return remove

        # sorted() is stable, so equal timestamps keep discovery order
        oldest_first = sorted(found, key=lambda key: found[key].last_modified)
        self._remove_files(found, oldest_first, over_limit, result)

    def _remove_files(
        self,
        found: dict[str, FileRecord],
        keys: Iterable[str],
        predicate: Callable[[FileRecord], bool],
        result: CleanResult,
    ) -> None:
        # Decide for every key before deleting anything
        remove = [key for key in keys if predicate(found[key])]

        for key in remove:
            info = found.pop(key)
            if self.gateway.delete_file(info.path):
                result.deleted.append(info.path)
            else:
                result.failed.append(info.path)

    def get_last_cleaning_time(self, path: Path) -> datetime | None:
        """Get the time of the last cleaning pass recorded under ``path``."""
        info = self.gateway.get_file_info(self.checkpoint_path(path))
        return info.last_modified if info is not None else None

    def update_last_cleaning_time(self, path: Path) -> datetime:
        """Record that a cleaning pass is starting now.

        Returns:
            The checkpoint's new modification time, or the clock's current
            time if the checkpoint could not be written.

        """
        written = self.gateway.create_empty_file(self.checkpoint_path(path))
        return written if written is not None else self.clock.now()

    def get_file_extension(self, path: str | os.PathLike[str] | None) -> str | None:
        """Get the extension of a log file, ignoring one rolling-backup suffix."""
        return get_file_extension(path)

    @staticmethod
    def checkpoint_path(path: Path) -> Path:
        """Location of the checkpoint file for a log directory."""
        return Path(path) / CHECKPOINT_FILE_NAME
