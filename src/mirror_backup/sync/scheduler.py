"""Periodic execution of backup runs."""

import asyncio
import logging
from typing import Callable, Optional

from ..utils.file_utils import FileHelper
from .backup_manager import BackupManager
from .statistics import BackupStats

logger = logging.getLogger(__name__)


class BackupScheduler:
    """Run the backup manager now and then at a fixed interval.

    Runs never overlap. ``stop()`` lets the current run finish and prevents
    the next one from starting.
    """

    def __init__(self, manager: BackupManager, interval_millis: int):
        """Initialize scheduler.

        Args:
            manager: Backup manager to run
            interval_millis: Time between run starts; 0 runs only once
        """
        if interval_millis < 0:
            raise ValueError("interval_millis must not be negative")
        self.manager = manager
        self.interval_millis = interval_millis
        self._stop_requested = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_requested.is_set()

    def stop(self):
        """Request shutdown after the current run."""
        if not self._stop_requested.is_set():
            logger.info("Stop requested, no further backup runs will start")
        self._stop_requested.set()

    async def run_forever(self, on_complete: Optional[Callable[[BackupStats], None]] = None) -> int:
        """Run backups until stopped.

        Args:
            on_complete: Called with the statistics after every run

        Returns:
            Number of completed runs

        Raises:
            OSError: If the very first run cannot start, e.g. unreadable state
        """
        interval = self.interval_millis / 1000
        if interval > 0:
            logger.info(f"Scheduling backups every {FileHelper.format_duration(interval)}")

        loop = asyncio.get_running_loop()
        runs = 0
        while not self.stopped:
            started = loop.time()
            try:
                stats = await self.manager.run()
            except Exception as e:
                # The first run doubles as a startup check
                if runs == 0:
                    raise
                logger.error(f"Scheduled backup run failed: {e}")
            else:
                if on_complete is not None:
                    on_complete(stats)
            runs += 1

            if interval <= 0:
                break

            delay = max(interval - (loop.time() - started), 0)
            try:
                await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        return runs
