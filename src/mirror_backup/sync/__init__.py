"""Sync engine for backup operations."""

from .backup_manager import BackupManager
from .change_detection import ChangeDetector, FileDescriptor
from .file_tracker import FileTracker
from .scheduler import BackupScheduler
from .statistics import BackupStats

__all__ = [
    "BackupManager",
    "BackupScheduler",
    "BackupStats",
    "ChangeDetector",
    "FileDescriptor",
    "FileTracker",
]
