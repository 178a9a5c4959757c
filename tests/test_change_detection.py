"""Tests for the change detection policy."""

import os

import pytest

from mirror_backup.sync.change_detection import ChangeDetector, FileDescriptor


def descriptor(size=100, mtime=1_000, file_hash=None):
    return FileDescriptor(size=size, modified_at_millis=mtime, hash=file_hash)


@pytest.mark.parametrize("use_hash", [True, False])
def test_missing_backup_needs_backup(use_hash):
    detector = ChangeDetector(use_hash_comparison=use_hash)
    assert detector.should_backup(descriptor(), None)
    assert detector.should_backup(descriptor(file_hash="abc"), None)


@pytest.mark.parametrize("use_hash", [True, False])
@pytest.mark.parametrize("hashes", [(None, None), ("aaa", "aaa"), ("aaa", "bbb"), ("aaa", None)])
def test_equal_size_and_mtime_never_needs_backup(use_hash, hashes):
    detector = ChangeDetector(use_hash_comparison=use_hash)
    source = descriptor(file_hash=hashes[0])
    backup = descriptor(file_hash=hashes[1])
    assert not detector.should_backup(source, backup)


@pytest.mark.parametrize("use_hash", [True, False])
@pytest.mark.parametrize("mtimes", [(1_000, 1_000), (1_000, 2_000)])
def test_size_difference_always_needs_backup(use_hash, mtimes):
    detector = ChangeDetector(use_hash_comparison=use_hash)
    source = descriptor(size=100, mtime=mtimes[0], file_hash="same")
    backup = descriptor(size=101, mtime=mtimes[1], file_hash="same")
    assert detector.should_backup(source, backup)


def test_equal_hash_overrides_timestamp_difference():
    detector = ChangeDetector(use_hash_comparison=True)
    source = descriptor(mtime=2_000, file_hash="same")
    backup = descriptor(mtime=1_000, file_hash="same")
    assert not detector.should_backup(source, backup)


def test_different_hash_with_timestamp_difference_needs_backup():
    detector = ChangeDetector(use_hash_comparison=True)
    source = descriptor(mtime=2_000, file_hash="new")
    backup = descriptor(mtime=1_000, file_hash="old")
    assert detector.should_backup(source, backup)


def test_timestamp_difference_without_both_hashes_needs_backup():
    detector = ChangeDetector(use_hash_comparison=True)
    assert detector.should_backup(descriptor(mtime=2_000, file_hash="x"), descriptor(mtime=1_000))
    assert detector.should_backup(descriptor(mtime=2_000), descriptor(mtime=1_000, file_hash="x"))


def test_hashes_ignored_when_hash_comparison_disabled():
    detector = ChangeDetector(use_hash_comparison=False)
    source = descriptor(mtime=2_000, file_hash="same")
    backup = descriptor(mtime=1_000, file_hash="same")
    assert detector.should_backup(source, backup)


def test_descriptor_from_stat_uses_milliseconds(tmp_path):
    path = tmp_path / "file.bin"
    path.write_bytes(b"x" * 42)
    os.utime(path, ns=(1_700_000_000_123_456_789, 1_700_000_000_123_456_789))

    result = FileDescriptor.from_stat(os.stat(path))

    assert result.size == 42
    assert result.modified_at_millis == 1_700_000_000_123
    assert result.hash is None


def test_same_stat_ignores_hash():
    assert descriptor(file_hash="a").same_stat(descriptor(file_hash="b"))
    assert not descriptor(size=1).same_stat(descriptor(size=2))
    assert not descriptor().same_stat(None)
