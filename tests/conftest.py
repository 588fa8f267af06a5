"""Shared fixtures."""

from __future__ import annotations

import logging

import pytest

from logdir_cleanup.filesystem import FileSystemGateway

from .fakes import FakeClock, FakeFileSystem


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def fake_fs(clock: FakeClock) -> FakeFileSystem:
    """Create an in-memory file system."""
    return FakeFileSystem(clock)


@pytest.fixture
def logger() -> logging.Logger:
    """Create a test logger."""
    return logging.getLogger("test-logdir-cleanup")


@pytest.fixture
def gateway(fake_fs: FakeFileSystem, logger: logging.Logger) -> FileSystemGateway:
    """Create a gateway over the in-memory file system."""
    return FileSystemGateway(fake_fs, logger)
