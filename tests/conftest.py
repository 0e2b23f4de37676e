"""Shared pytest fixtures for Kit tests."""

import os
import pytest
import tempfile
import shutil
from pathlib import Path

from kit.core.repository import Repository
from kit.core.objects import Blob, Tree, Commit
from kit.operations.commit import create_commit

AUTHOR = "Test User <test@example.com>"
# Far enough in the past that entries are never racy against a fresh index
OLD_MTIME = 1_600_000_000


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path_factory):
    """Keep the user's global config and KIT_* variables out of tests."""
    home = tmp_path_factory.mktemp('home')
    monkeypatch.setenv('HOME', str(home))
    for key in list(os.environ):
        if key.startswith('KIT_'):
            monkeypatch.delenv(key)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def repo(temp_dir):
    """Create an initialized repository."""
    repo = Repository(str(temp_dir))
    repo.init()
    return repo


@pytest.fixture
def repo_with_config(repo):
    """Create a repository with a user identity configured."""
    repo.config.set('user', 'name', 'Test User')
    repo.config.set('user', 'email', 'test@example.com')
    return repo


@pytest.fixture
def in_repo(repo_with_config, monkeypatch):
    """Run with the repository root as the current directory."""
    monkeypatch.chdir(repo_with_config.work_tree)
    return repo_with_config


@pytest.fixture
def sample_blob():
    """Create a sample blob object."""
    return Blob(b"Hello, World!\n")


@pytest.fixture
def sample_tree(repo, sample_blob):
    """Create a sample tree with one blob."""
    blob_hash = repo.objects.write_object(sample_blob)
    tree = Tree()
    tree.add_entry('100644', 'blob', blob_hash, 'test.txt')
    return tree


@pytest.fixture
def sample_commit(sample_tree, repo):
    """Sample commit object."""
    tree_hash = repo.objects.write_object(sample_tree)
    return Commit.create(
        tree_hash=tree_hash,
        parent_hashes=[],
        author=AUTHOR,
        committer=AUTHOR,
        message="Test commit\n",
        timestamp=1_700_000_000,
        timezone='+0000',
    )


@pytest.fixture
def working_files(repo):
    """Create sample file structure in repository."""
    files = {
        'file1': write_file(repo, 'test1.txt', 'Content 1'),
        'file2': write_file(repo, 'test2.txt', 'Content 2'),
        'file3': write_file(repo, 'subdir/test3.txt', 'Content 3'),
    }
    return files


@pytest.fixture
def repo_with_commits(repo_with_config):
    """Repository with a couple of commits."""
    repo = repo_with_config

    write_file(repo, 'file1.txt', 'Hello, World!\n')
    stage(repo, 'file1.txt')
    make_commit(repo, "First commit")

    write_file(repo, 'file2.txt', 'Second file\n')
    stage(repo, 'file2.txt')
    make_commit(repo, "Second commit")

    return repo


def write_file(repo, path, content, mtime=OLD_MTIME):
    """
    Write a work tree file and backdate its mtime.

    Backdated files are older than any index written afterwards, so the
    status fast path can trust their cached metadata.
    """
    full = repo.work_tree / path
    full.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode()
    full.write_bytes(content)
    if mtime is not None:
        os.utime(full, (mtime, mtime))
    return full


def stage(repo, *paths):
    """Stage work tree files and persist the index."""
    scanner = repo.workspace()
    with repo.locked_index() as index:
        for path in paths:
            index.add_file(repo.objects, scanner, path)
        index.persist()
    return repo.load_index()


def make_commit(repo, message="Test commit"):
    """
    Helper function to create a commit from current index state.

    Returns:
        str: Commit hash
    """
    return create_commit(repo, message, author=AUTHOR, timestamp=1_700_000_000)
