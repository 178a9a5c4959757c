"""Main backup manager orchestrating the incremental mirror."""

import asyncio
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..config.settings import BackupConfig, BackupTaskConfig, paths_overlap
from ..utils.file_utils import DirectoryEntry, FileHelper, calculate_file_hash
from ..utils.logging import TimedOperation
from .change_detection import ChangeDetector, FileDescriptor
from .file_tracker import FileTracker
from .statistics import BackupStats

# Module logger
logger = logging.getLogger(__name__)


class BackupManager:
    """Main backup manager that mirrors source trees into backup trees.

    Every entry of a directory level is processed concurrently. Failures are
    contained at the file, directory and task boundaries: they are logged,
    counted in the statistics and never abort sibling work.
    """

    def __init__(self, config: BackupConfig, tracker: Optional[FileTracker] = None,
                 stats: Optional[BackupStats] = None):
        """Initialize backup manager.

        Args:
            config: Backup configuration
            tracker: State store, defaults to one at ``config.state_file``
            stats: Statistics collector, defaults to a fresh one
        """
        self.config = config
        self.tracker = tracker if tracker is not None else FileTracker(config.state_file)
        self.stats = stats if stats is not None else BackupStats()
        self.detector = ChangeDetector(config.use_hash_comparison)
        self._file_slots: Optional[asyncio.Semaphore] = None

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def file_slots(self) -> asyncio.Semaphore:
        """Semaphore bounding the number of simultaneously open files."""
        if self._file_slots is None:
            self._file_slots = asyncio.Semaphore(self.config.max_open_files)
        return self._file_slots

    async def run(self, tasks: Optional[Iterable[BackupTaskConfig]] = None) -> BackupStats:
        """Run all backup tasks once.

        The state table is loaded before and saved after the run; saving
        happens even when tasks fail.

        Args:
            tasks: Tasks to run, defaults to the configured ones

        Returns:
            Statistics of this run

        Raises:
            OSError: If an existing state file cannot be read
        """
        task_list: List[BackupTaskConfig] = list(self.config.tasks if tasks is None else tasks)

        self.tracker.load()
        self.stats.reset()
        self._file_slots = asyncio.Semaphore(self.config.max_open_files)

        mode = " (dry run)" if self.dry_run else ""
        try:
            with TimedOperation(logger, f"backup run of {len(task_list)} task(s){mode}"):
                await asyncio.gather(*(self.run_task(task) for task in task_list))
        finally:
            self.stats.finish()
            self._persist_state()

        return self.stats

    def _persist_state(self):
        if self.dry_run:
            logger.debug("Dry run, state file left untouched")
            return
        try:
            self.tracker.save()
        except Exception as e:
            logger.error(f"Failed to save backup state to {self.tracker.state_file}: {e}")
            self.stats.record_error()

    async def run_task(self, task: BackupTaskConfig):
        """Mirror one source tree into its backup tree.

        A missing source root fails the task instead of being mirrored as
        an empty tree, and so do roots nested inside one another.

        Args:
            task: Task configuration
        """
        source_root = Path(os.path.abspath(task.source))
        backup_root = Path(os.path.abspath(task.backup))
        logger.info(f"Processing task: {source_root} -> {backup_root}")

        try:
            # Nested roots would delete the source or recurse without end
            overlap = paths_overlap(source_root, backup_root)
            if overlap:
                raise ValueError(overlap)

            source_stat = await asyncio.to_thread(os.stat, source_root)
            if not stat.S_ISDIR(source_stat.st_mode):
                raise NotADirectoryError(f"Source is not a directory: {source_root}")

            await self.sync_directory(source_root, backup_root)

        except Exception as e:
            logger.error(f"Task failed: {source_root} -> {backup_root}: {e}")
            self.stats.record_error()

    async def sync_directory(self, source_dir: Path, backup_dir: Path):
        """Mirror one directory level and recurse into subdirectories.

        Args:
            source_dir: Source directory
            backup_dir: Matching backup directory
        """
        try:
            if self.dry_run:
                await self._report_directory_obstacle(backup_dir)
            else:
                await self._ensure_directory(backup_dir)

            source_entries, backup_entries = await asyncio.gather(
                asyncio.to_thread(FileHelper.list_directory, source_dir),
                asyncio.to_thread(_list_backup_directory, backup_dir),
            )
        except Exception as e:
            logger.error(f"Failed to read directory {source_dir} -> {backup_dir}: {e}")
            self.stats.record_error()
            return

        await self._remove_orphans(source_dir, backup_dir, backup_entries)
        await asyncio.gather(*(
            self._sync_entry(source_dir / entry.name, backup_dir / entry.name, entry)
            for entry in source_entries
        ))

    async def _ensure_directory(self, dir_path: Path):
        try:
            await asyncio.to_thread(dir_path.mkdir, parents=True, exist_ok=True)
        except FileExistsError:
            # A file sits where the directory belongs
            logger.info(f"Replacing file with directory: {dir_path}")
            await asyncio.to_thread(FileHelper.remove_path, dir_path, False)
            self.stats.record_deleted()
            await asyncio.to_thread(dir_path.mkdir, parents=True, exist_ok=True)

    async def _report_directory_obstacle(self, dir_path: Path):
        """Count the file a real run would remove to make room for dir_path."""
        backup_stat = await asyncio.to_thread(_stat_or_none, dir_path)
        if backup_stat is None:
            # Only a dangling symlink is in the way
            obstructed = await asyncio.to_thread(os.path.lexists, dir_path)
        else:
            obstructed = not stat.S_ISDIR(backup_stat.st_mode)
        if obstructed:
            logger.info(f"[DRY RUN] Would replace file with directory: {dir_path}")
            self.stats.record_deleted()

    async def _remove_orphans(self, source_dir: Path, backup_dir: Path,
                              backup_entries: List[DirectoryEntry]):
        await asyncio.gather(*(
            self._remove_if_orphan(source_dir / entry.name, backup_dir / entry.name, entry)
            for entry in backup_entries
            if not self._is_ignored(entry.name)
        ))

    async def _remove_if_orphan(self, source_path: Path, backup_path: Path, entry: DirectoryEntry):
        try:
            if await asyncio.to_thread(_path_exists, source_path):
                return

            if self.dry_run:
                logger.info(f"[DRY RUN] Would delete: {backup_path}")
            else:
                await asyncio.to_thread(FileHelper.remove_path, backup_path, entry.is_dir)
                logger.info(f"Deleted: {backup_path}")
            self.stats.record_deleted()

        except Exception as e:
            logger.error(f"Failed to delete orphan {backup_path}: {e}")
            self.stats.record_error()

    async def _sync_entry(self, source_path: Path, backup_path: Path, entry: DirectoryEntry):
        if self._is_ignored(entry.name):
            logger.debug(f"Ignoring: {source_path}")
            self.stats.record_ignored()
            return

        if entry.is_dir:
            await self.sync_directory(source_path, backup_path)
        else:
            await self.sync_file(source_path, backup_path)

    def _is_ignored(self, name: str) -> bool:
        return FileHelper.should_ignore(
            name, self.config.ignored_directory_names, self.config.ignore_patterns
        )

    async def sync_file(self, source_path: Path, backup_path: Path):
        """Copy one file if it changed since its backup was made.

        Args:
            source_path: Source file
            backup_path: Backup copy location
        """
        try:
            source_stat = await asyncio.to_thread(os.stat, source_path)
            if not stat.S_ISREG(source_stat.st_mode):
                logger.warning(f"Skipping non-regular file: {source_path}")
                self.stats.record_ignored()
                return

            source = FileDescriptor.from_stat(source_stat)
            backup_stat = await asyncio.to_thread(_stat_or_none, backup_path)
            backup_is_dir = backup_stat is not None and stat.S_ISDIR(backup_stat.st_mode)
            backup = None
            if backup_stat is not None and not backup_is_dir:
                backup = FileDescriptor.from_stat(backup_stat)

            if not self.detector.should_backup(source, backup):
                await self._record_unchanged(source_path, backup_path, source, backup)
                return

            if self.config.use_hash_comparison:
                source, backup = await self._attach_hashes(source_path, backup_path, source, backup)
                if not self.detector.should_backup(source, backup):
                    logger.debug(f"Content unchanged despite new timestamp: {source_path}")
                    await self._record_unchanged(source_path, backup_path, source, backup,
                                                 refresh_timestamps=True)
                    return

            await self._copy_file(source_path, backup_path, source.size, backup_is_dir)
            self.stats.record_copied(source.size)
            if not self.dry_run:
                self.tracker.update(source_path, source)

        except Exception as e:
            logger.error(f"Failed to back up file {source_path}: {e}")
            self.stats.record_error()

    async def _attach_hashes(self, source_path: Path, backup_path: Path, source: FileDescriptor,
                             backup: Optional[FileDescriptor]
                             ) -> Tuple[FileDescriptor, Optional[FileDescriptor]]:
        """Add content hashes, reusing the recorded hash where stat still matches.

        The backup is only hashed when its size equals the source's, since
        otherwise the hash cannot change the decision.
        """
        source_hash = self.tracker.cached_hash(source_path, source)
        if source_hash is None:
            source_hash = await self._hash_file(source_path)
        source = source.with_hash(source_hash)

        if backup is not None and backup.size == source.size:
            # A backup written by us carries the recorded size and mtime
            backup_hash = self.tracker.cached_hash(source_path, backup)
            if backup_hash is None:
                backup_hash = await self._hash_file(backup_path)
            backup = backup.with_hash(backup_hash)

        return source, backup

    async def _hash_file(self, file_path: Path) -> str:
        async with self.file_slots:
            return await calculate_file_hash(file_path)

    async def _record_unchanged(self, source_path: Path, backup_path: Path, source: FileDescriptor,
                                backup: Optional[FileDescriptor], refresh_timestamps: bool = False):
        logger.debug(f"Unchanged, skipping: {source_path}")
        self.stats.record_skipped(source.size if backup is not None else 0)

        if self.dry_run:
            return

        if refresh_timestamps:
            await asyncio.to_thread(shutil.copystat, source_path, backup_path)

        if source.hash is None:
            source = source.with_hash(self.tracker.cached_hash(source_path, source))
        self.tracker.update(source_path, source)

    async def _copy_file(self, source_path: Path, backup_path: Path, size: int, backup_is_dir: bool):
        if backup_is_dir:
            # A directory sits where the file belongs
            if not self.dry_run:
                await asyncio.to_thread(FileHelper.remove_path, backup_path, True)
            self.stats.record_deleted()

        if self.dry_run:
            logger.info(f"[DRY RUN] Would copy: {source_path} -> {backup_path} ({size:,} bytes)")
            return

        async with self.file_slots:
            # copy2 keeps the source mtime so the next run can compare stats
            await asyncio.to_thread(shutil.copy2, source_path, backup_path)
        logger.info(f"Copied: {source_path} -> {backup_path} ({size:,} bytes)")


def _stat_or_none(path: Path) -> Optional[os.stat_result]:
    try:
        return os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return None


def _path_exists(path: Path) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _list_backup_directory(dir_path: Path) -> List[DirectoryEntry]:
    try:
        return FileHelper.list_directory(dir_path)
    except NotADirectoryError:
        # Only reachable in dry runs, where the file is not replaced yet
        return []
