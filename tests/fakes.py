"""Test doubles: a controllable clock and an in-memory file system."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

from logdir_cleanup.filesystem import FileRecord

BASE_TIME = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, current: datetime = BASE_TIME) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class FakeFileSystem:
    """In-memory ``FileSystem`` that can simulate locked files and directories."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.directories: set[Path] = set()
        self.files: dict[Path, FileRecord] = {}
        self.locked: set[Path] = set()
        self.read_only: set[Path] = set()
        self.stat_calls: list[Path] = []

    def add_directory(self, path: Path | str) -> None:
        path = Path(path)
        while path not in self.directories and path.parent != path:
            self.directories.add(path)
            path = path.parent

    def add_file(self, path: Path | str, last_modified: datetime | None = None, size: int = 0) -> Path:
        path = Path(path)
        self.add_directory(path.parent)
        self.files[path] = FileRecord(path=path, last_modified=last_modified or self.clock.now(), size=size)
        return path

    # FileSystem protocol

    def exists_directory(self, path: Path) -> bool:
        return path in self.directories

    def list_directories(self, path: Path) -> list[Path]:
        if path not in self.directories:
            raise FileNotFoundError(path)
        return sorted(d for d in self.directories if d.parent == path)

    def list_files(self, path: Path) -> list[Path]:
        if path not in self.directories:
            raise FileNotFoundError(path)
        return [f for f in self.files if f.parent == path]

    def stat(self, path: Path) -> FileRecord:
        self.stat_calls.append(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def delete_file(self, path: Path) -> None:
        if path in self.locked:
            raise PermissionError(f"locked: {path}")
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]

    def delete_directory(self, path: Path) -> None:
        if path in self.locked:
            raise PermissionError(f"locked: {path}")
        if any(d.parent == path for d in self.directories) or any(f.parent == path for f in self.files):
            raise OSError(f"directory not empty: {path}")
        self.directories.discard(path)

    def create_empty_file(self, path: Path) -> None:
        if path.parent in self.read_only:
            raise PermissionError(f"read-only: {path.parent}")
        if path.parent not in self.directories:
            raise FileNotFoundError(path)
        self.files[path] = FileRecord(path=path, last_modified=self.clock.now(), size=0)
