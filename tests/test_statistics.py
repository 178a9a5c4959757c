"""Tests for run statistics."""

import threading
import time

from mirror_backup.sync.statistics import BackupStats


def test_counters_start_at_zero():
    stats = BackupStats()
    summary = stats.to_dict()
    for key in ('files_copied', 'files_skipped', 'items_ignored', 'items_deleted',
                'errors', 'total_bytes_copied', 'bytes_saved'):
        assert summary[key] == 0


def test_record_operations():
    stats = BackupStats()
    stats.record_copied(100)
    stats.record_copied(50)
    stats.record_skipped(30)
    stats.record_skipped()
    stats.record_ignored()
    stats.record_deleted()
    stats.record_deleted()
    stats.record_error()

    assert stats.files_copied == 2
    assert stats.total_bytes_copied == 150
    assert stats.files_skipped == 2
    assert stats.bytes_saved == 30
    assert stats.items_ignored == 1
    assert stats.items_deleted == 2
    assert stats.errors == 1


def test_reset_clears_counters():
    stats = BackupStats()
    stats.record_copied(10)
    stats.record_error()
    first_start = stats.start_time

    time.sleep(0.01)
    stats.reset()

    assert stats.files_copied == 0
    assert stats.total_bytes_copied == 0
    assert stats.errors == 0
    assert stats.start_time > first_start


def test_finish_freezes_elapsed_time():
    stats = BackupStats()
    time.sleep(0.01)
    stats.finish()
    elapsed = stats.elapsed_seconds
    time.sleep(0.01)

    assert elapsed > 0
    assert stats.elapsed_seconds == elapsed


def test_transfer_rate():
    stats = BackupStats()
    stats.record_copied(1024 * 1024)
    time.sleep(0.01)
    stats.finish()

    assert stats.transfer_rate == stats.total_bytes_copied / stats.elapsed_seconds
    assert stats.transfer_rate > 0


def test_to_dict_includes_human_readable_values():
    stats = BackupStats()
    stats.record_copied(2048)
    stats.record_skipped(1024)
    stats.finish()

    summary = stats.to_dict()

    assert summary['bytes_copied_human'] == "2.0 KB"
    assert summary['bytes_saved_human'] == "1.0 KB"
    assert summary['rate_human'].endswith("/s")
    assert summary['duration_human']
    assert summary['elapsed_seconds'] == stats.elapsed_seconds


def test_concurrent_updates_are_exact():
    stats = BackupStats()

    def worker():
        for _ in range(1000):
            stats.record_copied(1)
            stats.record_error()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert stats.files_copied == 8000
    assert stats.total_bytes_copied == 8000
    assert stats.errors == 8000
