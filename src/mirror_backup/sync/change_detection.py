"""Change detection between a source file and its backup copy."""

import os
from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class FileDescriptor:
    """Size, modification time and optional content hash of one file."""
    size: int
    modified_at_millis: int
    hash: Optional[str] = None

    @classmethod
    def from_stat(cls, stat_result: os.stat_result) -> "FileDescriptor":
        return cls(
            size=stat_result.st_size,
            modified_at_millis=stat_result.st_mtime_ns // 1_000_000,
        )

    def with_hash(self, file_hash: Optional[str]) -> "FileDescriptor":
        return replace(self, hash=file_hash)

    def same_stat(self, other: Optional["FileDescriptor"]) -> bool:
        """Check size and modification time, ignoring hashes."""
        return (other is not None
                and self.size == other.size
                and self.modified_at_millis == other.modified_at_millis)


class ChangeDetector:
    """Decide whether a source file has to be copied over its backup."""

    def __init__(self, use_hash_comparison: bool = True):
        """Initialize change detector.

        Args:
            use_hash_comparison: Let matching content hashes override a
                timestamp difference
        """
        self.use_hash_comparison = use_hash_comparison

    def should_backup(self, source: FileDescriptor, backup: Optional[FileDescriptor]) -> bool:
        """Check if the source file needs to be copied.

        Stat fields are compared first; hashes only matter when both sides
        carry one and the timestamps disagree.

        Args:
            source: Descriptor of the source file
            backup: Descriptor of the backup copy, None if there is none

        Returns:
            True if the file needs backup, False otherwise
        """
        # New file always needs backup
        if backup is None:
            return True

        if source.size != backup.size:
            return True

        if source.modified_at_millis != backup.modified_at_millis:
            if self.use_hash_comparison and source.hash and backup.hash:
                return source.hash != backup.hash
            return True

        return False
