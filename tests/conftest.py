"""Shared fixtures for the mirror backup tests."""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mirror_backup.config.settings import build_config
from mirror_backup.sync.backup_manager import BackupManager


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    return tmp_path / "backup"


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "backup-state.json"


@pytest.fixture
def make_config(source_dir: Path, backup_dir: Path, state_file: Path):
    """Build a configuration with one task mirroring source_dir into backup_dir."""
    def _make(**overrides):
        data = {
            'tasks': [{'source': str(source_dir), 'backup': str(backup_dir)}],
            'interval_millis': 0,
            'state_file': str(state_file),
        }
        data.update(overrides)
        return build_config(data)
    return _make


@pytest.fixture
def make_manager(make_config):
    def _make(**overrides):
        return BackupManager(make_config(**overrides))
    return _make


@pytest.fixture
def write_file():
    """Write a file, creating parents, optionally pinning its mtime (seconds)."""
    def _write(path: Path, content: bytes = b"", mtime: float = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path
    return _write


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by setup_logging during a test."""
    yield
    logger = logging.getLogger("mirror_backup")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
