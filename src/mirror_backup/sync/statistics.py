"""Per-run backup statistics."""

import threading
import time
from datetime import datetime
from typing import Any, Dict

from ..utils.file_utils import FileHelper


class BackupStats:
    """Counters and byte totals for one backup run.

    Every mutation goes through a lock so the counters stay exact when many
    files are processed at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        """Zero all counters and restart the clock."""
        with self._lock:
            self.start_time = datetime.now()
            self._started = time.monotonic()
            self._finished = None
            self.files_copied = 0
            self.files_skipped = 0
            self.items_ignored = 0
            self.items_deleted = 0
            self.errors = 0
            self.total_bytes_copied = 0
            self.bytes_saved = 0

    def finish(self):
        """Freeze the elapsed time at the end of a run."""
        with self._lock:
            self._finished = time.monotonic()

    def record_copied(self, size: int):
        with self._lock:
            self.files_copied += 1
            self.total_bytes_copied += size

    def record_skipped(self, saved_bytes: int = 0):
        with self._lock:
            self.files_skipped += 1
            self.bytes_saved += saved_bytes

    def record_ignored(self):
        with self._lock:
            self.items_ignored += 1

    def record_deleted(self):
        with self._lock:
            self.items_deleted += 1

    def record_error(self):
        with self._lock:
            self.errors += 1

    @property
    def elapsed_seconds(self) -> float:
        """Seconds since reset, or the length of the finished run."""
        end = self._finished if self._finished is not None else time.monotonic()
        return max(end - self._started, 0.0)

    @property
    def transfer_rate(self) -> float:
        """Copied bytes per second."""
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return 0.0
        return self.total_bytes_copied / elapsed

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the counters plus human readable renderings.

        Returns:
            Summary dictionary
        """
        with self._lock:
            data = {
                'start_time': self.start_time.isoformat(),
                'files_copied': self.files_copied,
                'files_skipped': self.files_skipped,
                'items_ignored': self.items_ignored,
                'items_deleted': self.items_deleted,
                'errors': self.errors,
                'total_bytes_copied': self.total_bytes_copied,
                'bytes_saved': self.bytes_saved,
            }

        elapsed = self.elapsed_seconds
        rate = self.transfer_rate
        data.update({
            'elapsed_seconds': elapsed,
            'transfer_rate': rate,
            'duration_human': FileHelper.format_duration(elapsed),
            'bytes_copied_human': FileHelper.format_file_size(data['total_bytes_copied']),
            'bytes_saved_human': FileHelper.format_file_size(data['bytes_saved']),
            'rate_human': f"{FileHelper.format_file_size(rate)}/s",
        })
        return data
