"""File system access for directory cleaning.

``FileSystem`` describes the raw primitives, which may raise ``OSError`` at any
point. ``FileSystemGateway`` wraps them so that a single locked, vanished or
unreadable entry never aborts a cleaning pass.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class FileRecord:
    """Snapshot of a single file taken during a scan."""

    path: Path
    last_modified: datetime  # UTC
    size: int


class FileSystem(Protocol):
    """Raw file system primitives used by the gateway."""

    def exists_directory(self, path: Path) -> bool: ...

    def list_directories(self, path: Path) -> list[Path]: ...

    def list_files(self, path: Path) -> list[Path]: ...

    def stat(self, path: Path) -> FileRecord: ...

    def delete_file(self, path: Path) -> None: ...

    def delete_directory(self, path: Path) -> None: ...

    def create_empty_file(self, path: Path) -> None: ...


class LocalFileSystem:
    """``FileSystem`` backed by the local disk."""

    def exists_directory(self, path: Path) -> bool:
        return Path(path).is_dir()

    def list_directories(self, path: Path) -> list[Path]:
        # Symlinked directories are not followed, so a link cycle cannot trap the walk
        with os.scandir(path) as entries:
            return [Path(entry.path) for entry in entries if entry.is_dir(follow_symlinks=False)]

    def list_files(self, path: Path) -> list[Path]:
        with os.scandir(path) as entries:
            return [Path(entry.path) for entry in entries if not entry.is_dir(follow_symlinks=False)]

    def stat(self, path: Path) -> FileRecord:
        st = Path(path).stat()
        return FileRecord(
            path=Path(path),
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=UTC),
            size=st.st_size,
        )

    def delete_file(self, path: Path) -> None:
        Path(path).unlink()

    def delete_directory(self, path: Path) -> None:
        Path(path).rmdir()

    def create_empty_file(self, path: Path) -> None:
        Path(path).write_bytes(b"")


def path_key(path: Path | str) -> str:
    """Key used for scan results: case-insensitive where the platform is."""
    return os.path.normcase(str(path))


class FileSystemGateway:
    """Fault-tolerant wrapper over a ``FileSystem``."""

    def __init__(self, fs: FileSystem | None = None, logger: logging.Logger | None = None) -> None:
        """Initialize the gateway.

        Args:
            fs: Raw file system. Defaults to the local disk.
            logger: Logger for soft failures. Defaults to the module logger.

        """
        self.fs: FileSystem = fs if fs is not None else LocalFileSystem()
        self.logger = logger or logging.getLogger(__name__)

    def exists_directory(self, path: Path) -> bool:
        """Check whether ``path`` is an existing directory."""
        try:
            return self.fs.exists_directory(Path(path))
        except OSError as e:
            self.logger.warning("Cannot check directory %s: %s", path, e)
            return False

    def find_files(self, root: Path, matches: Callable[[Path], bool]) -> dict[str, FileRecord]:
        """Recursively collect every file under ``root`` accepted by ``matches``.

        Files rejected by ``matches`` are never stat'ed. Failure to list a
        directory propagates as ``OSError``.

        Args:
            root: Directory to walk.
            matches: Predicate on the file path.

        Returns:
            Flat mapping of path key to file record, in discovery order.

        """
        found: dict[str, FileRecord] = {}
        self._find_files(Path(root), matches, found)
        return found

    def _find_files(
        self,
        directory: Path,
        matches: Callable[[Path], bool],
        found: dict[str, FileRecord],
    ) -> None:
        for subdirectory in self.fs.list_directories(directory):
            self._find_files(subdirectory, matches, found)

        for file_path in self.fs.list_files(directory):
            if not matches(file_path):
                continue
            try:
                record = self.fs.stat(file_path)
            except FileNotFoundError:
                self.logger.debug("File vanished during scan: %s", file_path)
                continue
            except OSError as e:
                self.logger.warning("Cannot read file info for %s: %s", file_path, e)
                continue
            found[path_key(file_path)] = record

    def delete_file(self, path: Path) -> bool:
        """Delete a file, logging instead of raising on failure.

        Returns:
            True if the file was deleted.

        """
        try:
            self.fs.delete_file(Path(path))
        except PermissionError as e:
            self.logger.warning("Permission denied deleting %s: %s", path, e)
            return False
        except OSError as e:
            self.logger.warning("Error deleting %s: %s", path, e)
            return False

        self.logger.debug("Deleted file: %s", path)
        return True

    def delete_empty_directories(self, root: Path) -> bool:
        """Remove ``root`` and its subdirectories, bottom up, where they hold no files.

        A directory whose subdirectory could not be removed is kept, and so are
        its ancestors. Siblings are still processed.

        Returns:
            True if ``root`` itself was removed.

        """
        root = Path(root)
        try:
            subdirectories = self.fs.list_directories(root)
        except OSError as e:
            self.logger.warning("Cannot list directory %s: %s", root, e)
            return False

        # Build the full list first so every sibling is visited
        removed = [self.delete_empty_directories(subdirectory) for subdirectory in subdirectories]
        if not all(removed):
            return False

        try:
            if self.fs.list_files(root):
                return False
            self.fs.delete_directory(root)
        except OSError as e:
            self.logger.warning("Cannot remove directory %s: %s", root, e)
            return False

        self.logger.debug("Removed empty directory: %s", root)
        return True

    def get_file_info(self, path: Path) -> FileRecord | None:
        """Stat a single file, or None if it is absent or unreadable."""
        try:
            return self.fs.stat(Path(path))
        except OSError:
            return None

    def create_empty_file(self, path: Path) -> datetime | None:
        """Create (or truncate) a zero-byte file and return its new modification time.

        Returns:
            The file's modification time, or None if it could not be written.

        """
        try:
            self.fs.create_empty_file(Path(path))
            return self.fs.stat(Path(path)).last_modified
        except OSError as e:
            self.logger.warning("Cannot write %s: %s", path, e)
            return None
