"""Workspace scanner tests."""

import os

import pytest

from kit.core.workspace import DELETED, FileStat, WorkspaceScanner, read_blob_hash
from tests.conftest import write_file


@pytest.fixture
def scanner(repo):
    return repo.workspace()


def test_walk_skips_metadata_dir(repo, scanner):
    """Test the metadata directory is never reported."""
    write_file(repo, 'a.txt', 'a')
    assert list(scanner.walk()) == ['a.txt']


def test_walk_order_is_full_path_byte_order(repo, scanner):
    """Test directories are visited where their '/' suffix sorts."""
    for path in ['foo.c', 'foo/bar.c', 'foo-x', 'b/z', 'B']:
        write_file(repo, path, 'x')

    paths = list(scanner.walk())
    assert paths == ['B', 'b/z', 'foo-x', 'foo.c', 'foo/bar.c']
    assert paths == sorted(paths, key=lambda p: p.encode())


def test_walk_single_file_and_subdirectory(repo, scanner):
    """Test walking from a file or a nested directory."""
    write_file(repo, 'dir/a.txt', 'a')
    write_file(repo, 'dir/sub/b.txt', 'b')

    assert list(scanner.walk('dir/a.txt')) == ['dir/a.txt']
    assert list(scanner.walk('dir')) == ['dir/a.txt', 'dir/sub/b.txt']
    assert list(scanner.walk('missing')) == []


def test_walk_applies_ignore_predicate(repo):
    """Test ignored files and whole ignored directories are pruned."""
    write_file(repo, 'keep.txt', 'k')
    write_file(repo, 'skip.log', 's')
    write_file(repo, 'build/out.bin', 'b')

    def ignore(path, is_dir):
        return path.endswith('.log') or (is_dir and path == 'build')

    scanner = WorkspaceScanner(repo.work_tree, '.git', ignore)
    assert list(scanner.walk()) == ['keep.txt']


def test_list_dir_reports_directories(repo, scanner):
    """Test one level listing marks directories."""
    write_file(repo, 'dir/a.txt', 'a')
    write_file(repo, 'top.txt', 't')

    assert scanner.list_dir() == [('dir', True), ('top.txt', False)]
    assert scanner.list_dir('nope') == []


def test_stat(repo, scanner):
    """Test metadata is reported in index units."""
    write_file(repo, 'a.txt', 'hello', mtime=1_600_000_000)
    metadata = scanner.stat('a.txt')

    assert isinstance(metadata, FileStat)
    assert metadata.size == 5
    assert metadata.mode == 0o100644
    assert metadata.mtime_key == (1_600_000_000, 0)


def test_stat_executable(repo, scanner):
    """Test executable files normalize to 100755."""
    path = write_file(repo, 'run.sh', '#!/bin/sh\n')
    os.chmod(path, 0o751)
    assert scanner.stat('run.sh').mode == 0o100755


def test_stat_and_read_missing(scanner):
    """Test a vanished file reads as DELETED."""
    assert scanner.stat('missing.txt') is DELETED
    assert scanner.read('missing.txt') is DELETED
    assert scanner.stat('missing/child.txt') is DELETED
    assert not DELETED


def test_stat_directory_is_deleted(repo, scanner):
    """Test a directory where a file was expected counts as deleted."""
    (repo.work_tree / 'dir').mkdir()
    assert scanner.stat('dir') is DELETED
    assert scanner.read('dir') is DELETED


def test_symlink_reads_as_target(repo, scanner):
    """Test symlinks are content-addressed by their target path."""
    write_file(repo, 'target.txt', 'real')
    os.symlink('target.txt', repo.work_tree / 'link')

    assert scanner.read('link') == b'target.txt'
    assert scanner.stat('link').mode == 0o120000
    assert 'link' in list(scanner.walk())


def test_read_blob_hash(repo, scanner):
    """Test hashing without writing to the store."""
    write_file(repo, 'hello.txt', 'hello\n')

    blob_hash = read_blob_hash(scanner, 'hello.txt')
    assert blob_hash == 'ce013625030ba8dba906f756967f9e9ca394464a'
    assert not repo.objects.exists(blob_hash)
    assert read_blob_hash(scanner, 'missing') is None
