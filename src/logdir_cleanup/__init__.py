"""Automatic age and size based cleanup for rolling log directories."""

from .cleaner import CHECKPOINT_FILE_NAME, CleanResult, DirectoryCleaner, get_file_extension
from .clock import Clock, UtcClock
from .config import CleanupConfig
from .context import ContextIdFilter, get_or_create_context_id, new_context
from .filesystem import FileRecord, FileSystem, FileSystemGateway, LocalFileSystem
from .handler import SelfCleaningRotatingFileHandler
from .runner import TaskRunner, WaitPolicy
from .scheduler import CleanupScheduler, parse_age_days, parse_size

__all__ = [
    "CHECKPOINT_FILE_NAME",
    "CleanResult",
    "CleanupConfig",
    "CleanupScheduler",
    "Clock",
    "ContextIdFilter",
    "DirectoryCleaner",
    "FileRecord",
    "FileSystem",
    "FileSystemGateway",
    "LocalFileSystem",
    "SelfCleaningRotatingFileHandler",
    "TaskRunner",
    "UtcClock",
    "WaitPolicy",
    "get_file_extension",
    "get_or_create_context_id",
    "new_context",
    "parse_age_days",
    "parse_size",
]
