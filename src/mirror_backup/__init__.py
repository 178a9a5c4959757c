"""
Mirror Backup Application

Scheduled, incremental mirroring of source directory trees into backup trees.
Only changed files are copied, orphaned backup entries are removed, and each
run reports aggregate statistics.
"""

__version__ = "1.0.0"
__author__ = "Mirror Backup Tool"
__description__ = "Incremental, scheduled mirroring of directory trees"

from .config.settings import BackupConfig
from .sync.backup_manager import BackupManager

__all__ = ["BackupConfig", "BackupManager"]
