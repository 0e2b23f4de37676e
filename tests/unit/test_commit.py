"""Snapshot writer tests."""

import pytest

from kit.core.errors import IdentityUnknown, RefConflict
from kit.core.index import Index
from kit.core.objects import Commit, Tree
from kit.operations.commit import create_commit, default_identity, write_tree
from tests.conftest import AUTHOR, make_commit, stage, write_file

EMPTY_TREE = '4b825dc642cb6eb9a060e54bf8d69288fbee4904'


def test_write_tree_empty_index(repo):
    """Test an empty index writes the empty tree."""
    assert write_tree(repo.objects, Index()) == EMPTY_TREE
    assert repo.objects.exists(EMPTY_TREE)


def test_write_tree_nested(repo):
    """Test subdirectories become subtrees in tree order."""
    write_file(repo, 'a.txt', 'a')
    write_file(repo, 'a/b/c.txt', 'c')
    write_file(repo, 'a-z', 'z')
    index = stage(repo, 'a.txt', 'a/b/c.txt', 'a-z')

    root = repo.objects.read(write_tree(repo.objects, index))
    assert isinstance(root, Tree)
    assert [(e.name, e.type) for e in root] == [('a-z', 'blob'), ('a.txt', 'blob'), ('a', 'tree')]

    paths = [path for path, _ in repo.objects.walk_tree(root.hash)]
    assert paths == index.paths()


def test_write_tree_keeps_modes(repo):
    """Test executable entries are written with mode 100755."""
    index = Index()
    blob_hash = repo.objects.write('blob', b'#!/bin/sh\n')
    index.upsert('run.sh', blob_hash, mode=0o100755)

    tree = repo.objects.read(write_tree(repo.objects, index))
    assert tree.get('run.sh').mode == '100755'


def test_write_tree_is_deterministic(repo):
    """Test the same index content always gives the same tree."""
    first, second = Index(), Index()
    blob_hash = repo.objects.write('blob', b'x')
    for path in ['z', 'm/n', 'a']:
        first.upsert(path, blob_hash)
    for path in ['a', 'z', 'm/n']:
        second.upsert(path, blob_hash)

    assert write_tree(repo.objects, first) == write_tree(repo.objects, second)


def test_create_commit_first(repo_with_config):
    """Test the first commit has no parent and starts the branch."""
    repo = repo_with_config
    write_file(repo, 'a.txt', 'a\n')
    stage(repo, 'a.txt')

    commit_hash = create_commit(repo, 'Initial', timestamp=1_700_000_000)
    commit = repo.objects.read(commit_hash)

    assert isinstance(commit, Commit)
    assert commit.parents == []
    assert commit.message == 'Initial\n'
    assert commit.author == 'Test User <test@example.com>'
    assert (repo.heads_dir / 'main').read_text() == commit_hash + '\n'


def test_create_commit_chains_parents(repo_with_commits):
    """Test each commit points at the previous HEAD."""
    repo = repo_with_commits
    head = repo.refs.resolve_head()
    write_file(repo, 'c.txt', 'c')
    stage(repo, 'c.txt')

    commit_hash = make_commit(repo, 'Third')
    assert repo.objects.read(commit_hash).parents == [head]
    assert repo.refs.resolve_head() == commit_hash


def test_create_commit_refuses_moved_head(repo_with_commits, monkeypatch):
    """Test a branch moved by another writer mid-commit is not overwritten."""
    repo = repo_with_commits
    other = 'f' * 40
    write_object = repo.objects.write_object

    def write_then_move_branch(obj):
        obj_hash = write_object(obj)
        if isinstance(obj, Commit):
            (repo.heads_dir / 'main').write_text(other + '\n')
        return obj_hash

    monkeypatch.setattr(repo.objects, 'write_object', write_then_move_branch)
    with pytest.raises(RefConflict):
        make_commit(repo, "Late commit")
    assert repo.refs.resolve_head() == other


def test_create_commit_with_explicit_identity(repo):
    """Test an explicit author needs no configuration."""
    commit_hash = create_commit(repo, 'msg\n', author=AUTHOR, committer='Bot <bot@example.com>',
                                timestamp=1_700_000_000)
    commit = repo.objects.read(commit_hash)
    assert commit.committer == 'Bot <bot@example.com>'
    assert commit.tree == EMPTY_TREE


def test_create_commit_without_identity(repo):
    """Test committing with no user configured."""
    with pytest.raises(IdentityUnknown) as excinfo:
        create_commit(repo, 'msg')
    assert excinfo.value.details['missing'] == 'user.name'
    assert repo.refs.resolve_head() is None


def test_default_identity_from_environment(repo, monkeypatch):
    """Test the identity can come from KIT_USER_* variables."""
    monkeypatch.setenv('KIT_USER_NAME', 'Env User')
    monkeypatch.setenv('KIT_USER_EMAIL', 'env@example.com')
    assert default_identity(repo.config) == 'Env User <env@example.com>'


def test_default_identity_missing_email(repo):
    """Test a name without an email is incomplete."""
    repo.config.set('user', 'name', 'Only Name')
    with pytest.raises(IdentityUnknown):
        default_identity(repo.config)
