"""Tests for file utilities."""

import hashlib
from pathlib import Path

import pytest

from mirror_backup.config.settings import DEFAULT_IGNORE_PATTERNS, DEFAULT_IGNORED_DIRECTORY_NAMES
from mirror_backup.utils.file_utils import DirectoryEntry, FileHelper, calculate_file_hash


@pytest.mark.parametrize("name", ["node_modules", ".git", "dist", ".vscode"])
def test_ignored_directory_names_match_literally(name):
    assert FileHelper.should_ignore(name, DEFAULT_IGNORED_DIRECTORY_NAMES, [])


@pytest.mark.parametrize("name", [
    "debug.log", "scratch.tmp", ".gitignore", ".env", ".env.local",
    "Thumbs.db", "notes.bak", ".main.py.swp",
])
def test_default_patterns_match(name):
    assert FileHelper.should_ignore(name, set(), DEFAULT_IGNORE_PATTERNS)


@pytest.mark.parametrize("name", ["main.py", "README.md", "logs", "node_modules2", "environment.yml"])
def test_regular_names_are_kept(name):
    assert not FileHelper.should_ignore(name, DEFAULT_IGNORED_DIRECTORY_NAMES, DEFAULT_IGNORE_PATTERNS)


def test_glob_features():
    patterns = ["file?.txt", "[ab]*.csv"]
    assert FileHelper.should_ignore("file1.txt", set(), patterns)
    assert not FileHelper.should_ignore("file10.txt", set(), patterns)
    assert FileHelper.should_ignore("alpha.csv", set(), patterns)
    assert not FileHelper.should_ignore("gamma.csv", set(), patterns)


def test_matching_is_case_sensitive():
    assert not FileHelper.should_ignore("DEBUG.LOG", set(), ["*.log"])


def test_negation_patterns_never_match():
    assert not FileHelper.should_ignore("keep.log", set(), ["!keep.log"])
    assert not FileHelper.should_ignore("!keep.log", set(), ["!keep.log"])
    # A negation pattern does not cancel a later match
    assert FileHelper.should_ignore("keep.log", set(), ["!keep.log", "*.log"])


def test_pattern_applies_to_name_only():
    assert not FileHelper.should_ignore("a.log", set(), ["logs/*.log"])


@pytest.mark.asyncio
async def test_calculate_file_hash(tmp_path: Path):
    content = b"hello world" * 10_000
    path = tmp_path / "data.bin"
    path.write_bytes(content)

    digest = await calculate_file_hash(path)

    assert digest == hashlib.sha256(content).hexdigest()
    assert len(digest) == 64


@pytest.mark.asyncio
async def test_calculate_file_hash_is_deterministic(tmp_path: Path):
    first = tmp_path / "a.bin"
    second = tmp_path / "b.bin"
    first.write_bytes(b"same bytes")
    second.write_bytes(b"same bytes")

    assert await calculate_file_hash(first) == await calculate_file_hash(second)


@pytest.mark.asyncio
async def test_calculate_file_hash_of_empty_file(tmp_path: Path):
    path = tmp_path / "empty"
    path.write_bytes(b"")
    assert await calculate_file_hash(path) == hashlib.sha256(b"").hexdigest()


@pytest.mark.asyncio
async def test_calculate_file_hash_missing_file(tmp_path: Path):
    with pytest.raises(OSError):
        await calculate_file_hash(tmp_path / "missing")


def test_list_directory(tmp_path: Path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "file.txt").write_text("x")

    entries = sorted(FileHelper.list_directory(tmp_path), key=lambda e: e.name)

    assert entries == [DirectoryEntry("file.txt", False), DirectoryEntry("sub", True)]


def test_list_missing_directory_is_empty(tmp_path: Path):
    assert FileHelper.list_directory(tmp_path / "missing") == []


def test_remove_path(tmp_path: Path):
    tree = tmp_path / "tree"
    (tree / "nested").mkdir(parents=True)
    (tree / "nested" / "f.txt").write_text("x")
    single = tmp_path / "single.txt"
    single.write_text("x")

    FileHelper.remove_path(tree, True)
    FileHelper.remove_path(single, False)

    assert not tree.exists()
    assert not single.exists()


@pytest.mark.parametrize("size,expected", [
    (0, "0 B"),
    (512, "512.0 B"),
    (1024, "1.0 KB"),
    (1536, "1.5 KB"),
    (5 * 1024 ** 3, "5.0 GB"),
])
def test_format_file_size(size, expected):
    assert FileHelper.format_file_size(size) == expected


@pytest.mark.parametrize("seconds,expected", [
    (0.25, "250ms"),
    (12.4, "12.40s"),
    (185, "3m 5s"),
    (3723, "1h 2m 3s"),
])
def test_format_duration(seconds, expected):
    assert FileHelper.format_duration(seconds) == expected
