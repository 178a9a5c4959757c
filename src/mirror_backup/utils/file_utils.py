"""File utility functions."""

import fnmatch
import hashlib
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Union

import aiofiles

HASH_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DirectoryEntry:
    """One child of a directory listing."""
    name: str
    is_dir: bool


async def calculate_file_hash(file_path: Union[str, Path], chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Calculate the SHA-256 hash of a file.

    Args:
        file_path: Path to the file
        chunk_size: Size of chunks to read

    Returns:
        SHA-256 hash as hex string

    Raises:
        OSError: If the file cannot be read
    """
    sha256 = hashlib.sha256()

    async with aiofiles.open(file_path, 'rb') as f:
        while chunk := await f.read(chunk_size):
            sha256.update(chunk)

    return sha256.hexdigest()


class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def should_ignore(name: str, ignored_directory_names: Iterable[str],
                      ignore_patterns: Sequence[str]) -> bool:
        """Check if a directory entry should be left out of the mirror.

        Only the base name is matched. Patterns starting with ``!`` are
        reserved for negation and never match anything.

        Args:
            name: Entry name (not a path)
            ignored_directory_names: Names excluded verbatim
            ignore_patterns: Shell-glob patterns, checked in order

        Returns:
            True if the entry should be ignored
        """
        if name in ignored_directory_names:
            return True

        for pattern in ignore_patterns:
            if pattern.startswith('!'):
                continue
            if fnmatch.fnmatchcase(name, pattern):
                return True

        return False

    @staticmethod
    def list_directory(dir_path: Union[str, Path]) -> List[DirectoryEntry]:
        """List the children of a directory.

        A missing directory is reported as empty.

        Args:
            dir_path: Directory to list

        Returns:
            List of directory entries
        """
        try:
            with os.scandir(dir_path) as it:
                return [
                    DirectoryEntry(name=entry.name, is_dir=entry.is_dir(follow_symlinks=False))
                    for entry in it
                ]
        except FileNotFoundError:
            return []

    @staticmethod
    def remove_path(path: Union[str, Path], is_dir: bool) -> None:
        """Delete a file, symlink or whole directory tree."""
        if is_dir and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)

    @staticmethod
    def format_file_size(size_bytes: float) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        i = 0

        while size_bytes >= 1024 and i < len(size_names) - 1:
            size_bytes /= 1024.0
            i += 1

        return f"{size_bytes:.1f} {size_names[i]}"

    @staticmethod
    def format_duration(seconds: float) -> str:
        """Format a duration in human readable format.

        Args:
            seconds: Duration in seconds

        Returns:
            Formatted duration, e.g. ``850ms``, ``12.40s``, ``3m 5s``, ``1h 2m 3s``
        """
        millis = seconds * 1000
        if millis < 1000:
            return f"{round(millis)}ms"
        if millis < 60_000:
            return f"{seconds:.2f}s"

        total = int(seconds)
        hours, remainder = divmod(total, 3600)
        minutes, secs = divmod(remainder, 60)
        if hours == 0:
            return f"{minutes}m {secs}s"
        return f"{hours}h {minutes}m {secs}s"
