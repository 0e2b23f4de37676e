"""Path helper tests."""

import os

import pytest

from kit.core.errors import InvalidPath
from kit.utils.paths import (
    decode_path,
    encode_path,
    split_path,
    to_repo_path,
    tree_name_key,
    validate_path,
)


def test_non_utf8_names_roundtrip():
    """Test undecodable bytes survive decode and encode."""
    raw = b'caf\xe9.txt'
    assert encode_path(decode_path(raw)) == raw


def test_tree_name_key():
    """Test subtrees sort as if followed by a slash."""
    assert tree_name_key('foo', True) == b'foo/'
    assert tree_name_key('foo', False) == b'foo'
    assert sorted([tree_name_key('foo', True), tree_name_key('foo.c', False)]) == \
        [b'foo.c', b'foo/']


def test_split_path():
    """Test splitting into parent and name."""
    assert split_path('a/b/c.txt') == ('a/b', 'c.txt')
    assert split_path('top') == ('', 'top')


def test_validate_path_accepts_dotfiles():
    """Test names starting with a dot are ordinary names."""
    assert validate_path('.gitignore') == '.gitignore'
    assert validate_path('a/.hidden/b') == 'a/.hidden/b'


def test_validate_path_custom_metadata_dir():
    """Test the metadata directory name is configurable."""
    with pytest.raises(InvalidPath):
        validate_path('.kit/objects', metadata_dir='.kit')
    assert validate_path('.git/x', metadata_dir='.kit') == '.git/x'


def test_to_repo_path(temp_dir, monkeypatch):
    """Test user paths are made relative to the work tree."""
    (temp_dir / 'sub').mkdir()
    monkeypatch.chdir(temp_dir / 'sub')

    assert to_repo_path(temp_dir, 'file.txt') == 'sub/file.txt'
    assert to_repo_path(temp_dir, '../top.txt') == 'top.txt'
    assert to_repo_path(temp_dir, str(temp_dir)) == ''
    assert to_repo_path(temp_dir, os.path.join('..', 'sub', '.')) == 'sub'


def test_to_repo_path_outside(temp_dir, monkeypatch):
    """Test paths escaping the work tree are rejected."""
    monkeypatch.chdir(temp_dir)
    with pytest.raises(InvalidPath):
        to_repo_path(temp_dir / 'repo', 'elsewhere.txt')


def test_to_repo_path_metadata_dir(temp_dir, monkeypatch):
    """Test paths inside the metadata directory are rejected."""
    monkeypatch.chdir(temp_dir)
    with pytest.raises(InvalidPath):
        to_repo_path(temp_dir, '.git/HEAD')
