"""File tracking for change detection and backup state management."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .change_detection import FileDescriptor

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = Path("backup-state.json")


class FileTracker:
    """Track the last synced state of every source file.

    The table is keyed by absolute source path. It is loaded once before a
    run and saved once after it, so an interrupted run only loses its own
    updates.
    """

    def __init__(self, state_file: Union[str, Path] = DEFAULT_STATE_FILE):
        """Initialize file tracker.

        Args:
            state_file: Path to the JSON state file
        """
        self.state_file = Path(state_file)
        self._file_states: Dict[str, FileDescriptor] = {}
        self._lock = threading.Lock()

    def load(self):
        """Load file states from disk.

        A missing state file means an empty table. Malformed content is
        logged and also treated as an empty table.

        Raises:
            OSError: If the file exists but cannot be read
        """
        try:
            with open(self.state_file, 'r', encoding='utf-8') as f:
                raw = f.read()
        except FileNotFoundError:
            logger.debug(f"No state file at {self.state_file}, starting fresh")
            states = {}
        else:
            states = self._parse_state(raw)

        with self._lock:
            self._file_states = states
        logger.debug(f"Loaded {len(states)} tracked files from {self.state_file}")

    def _parse_state(self, raw: str) -> Dict[str, FileDescriptor]:
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"State file {self.state_file} is not valid JSON, starting fresh: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"State file {self.state_file} does not hold a JSON object, starting fresh")
            return {}

        states = {}
        for path, info in data.items():
            descriptor = _descriptor_from_json(info)
            if descriptor is None:
                logger.warning(f"Ignoring malformed state entry for {path}")
                continue
            states[path] = descriptor
        return states

    def save(self):
        """Save current state to disk.

        The table is written to a temporary file next to the state file and
        then moved over it.

        Raises:
            OSError: If the state cannot be written
        """
        with self._lock:
            data = {path: _descriptor_to_json(info) for path, info in self._file_states.items()}

        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{self.state_file.name}.", suffix=".tmp", dir=self.state_file.parent
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_name, self.state_file)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved {len(data)} tracked files to {self.state_file}")

    def get(self, file_path: Union[str, Path]) -> Optional[FileDescriptor]:
        """Get the stored state of a file.

        Args:
            file_path: Absolute source path

        Returns:
            FileDescriptor if file is tracked, None otherwise
        """
        with self._lock:
            return self._file_states.get(str(file_path))

    def update(self, file_path: Union[str, Path], descriptor: FileDescriptor):
        """Record the state a file was synced with.

        Args:
            file_path: Absolute source path
            descriptor: Size, mtime and hash the file was synced with
        """
        with self._lock:
            self._file_states[str(file_path)] = descriptor

    def cached_hash(self, file_path: Union[str, Path], descriptor: FileDescriptor) -> Optional[str]:
        """Return the recorded hash if size and mtime still match."""
        stored = self.get(file_path)
        if stored is not None and stored.hash and stored.same_stat(descriptor):
            return stored.hash
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._file_states)

    def get_stats(self) -> Dict[str, int]:
        """Get statistics about tracked files.

        Returns:
            Dictionary with statistics
        """
        with self._lock:
            states = list(self._file_states.values())

        return {
            'total_files': len(states),
            'hashed_files': len([s for s in states if s.hash]),
            'total_size': sum(s.size for s in states)
        }


def _descriptor_from_json(info: Any) -> Optional[FileDescriptor]:
    if not isinstance(info, dict):
        return None

    size = info.get('size')
    # Older state files used the name of the stat field
    modified = info.get('modifiedAtMillis', info.get('mtimeMs'))
    file_hash = info.get('hash')

    if not isinstance(size, int) or isinstance(size, bool):
        return None
    if not isinstance(modified, (int, float)) or isinstance(modified, bool):
        return None
    if file_hash is not None and not isinstance(file_hash, str):
        return None

    return FileDescriptor(size=size, modified_at_millis=int(modified), hash=file_hash)


def _descriptor_to_json(descriptor: FileDescriptor) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        'size': descriptor.size,
        'modifiedAtMillis': descriptor.modified_at_millis,
    }
    if descriptor.hash is not None:
        data['hash'] = descriptor.hash
    return data
