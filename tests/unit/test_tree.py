"""Tree object tests."""

import pytest

from kit.core.objects import Tree, TreeEntry, ObjectFormatError, parse_object


def test_tree_entry_creation():
    """Test creating a tree entry."""
    entry = TreeEntry('100644', 'blob', 'a' * 40, 'file.txt')
    assert entry.mode == '100644'
    assert entry.type == 'blob'
    assert entry.hash == 'a' * 40
    assert entry.name == 'file.txt'
    assert entry.mode_int == 0o100644


def test_tree_entry_sorting():
    """Test tree entries sort by name."""
    entry1 = TreeEntry('100644', 'blob', 'a' * 40, 'zebra.txt')
    entry2 = TreeEntry('100644', 'blob', 'b' * 40, 'apple.txt')
    assert entry2 < entry1


def test_subtrees_sort_as_if_suffixed_with_slash():
    """Test 'foo.txt' sorts before directory 'foo' but after file 'foo'."""
    tree = Tree()
    tree.add_entry('40000', 'tree', 'a' * 40, 'foo')
    tree.add_entry('100644', 'blob', 'b' * 40, 'foo.txt')
    tree.add_entry('100644', 'blob', 'c' * 40, 'foo-bar')

    assert [entry.name for entry in tree] == ['foo-bar', 'foo.txt', 'foo']


def test_tree_identity_independent_of_insertion_order():
    """Test the same entries in any order give the same hash."""
    entries = [
        ('100644', 'blob', 'a' * 40, 'b.txt'),
        ('100755', 'blob', 'b' * 40, 'a.sh'),
        ('40000', 'tree', 'c' * 40, 'lib'),
    ]
    forward = Tree()
    backward = Tree()
    for entry in entries:
        forward.add_entry(*entry)
    for entry in reversed(entries):
        backward.add_entry(*entry)

    assert forward.hash == backward.hash


def test_tree_add_entry_replaces_same_name():
    """Test re-adding a name replaces the entry."""
    tree = Tree()
    tree.add_entry('100644', 'blob', 'a' * 40, 'file.txt')
    tree.add_entry('100644', 'blob', 'b' * 40, 'file.txt')

    assert len(tree) == 1
    assert tree.get('file.txt').hash == 'b' * 40


@pytest.mark.parametrize('name', ['', 'a/b', '.', '..', 'nul\0byte'])
def test_tree_rejects_bad_names(name):
    """Test names that cannot be stored are refused."""
    with pytest.raises(ValueError):
        Tree().add_entry('100644', 'blob', 'a' * 40, name)


def test_tree_rejects_mode_type_mismatch():
    """Test a blob cannot carry the directory mode."""
    with pytest.raises(ValueError):
        Tree().add_entry('40000', 'blob', 'a' * 40, 'x')


def test_tree_serialize():
    """Test tree serialization."""
    tree = Tree()
    tree.add_entry('100644', 'blob', 'ab' * 20, 'file.txt')

    assert tree.serialize() == b'100644 file.txt\0' + bytes.fromhex('ab' * 20)


def test_directory_mode_written_without_leading_zero():
    """Test subtrees are written as '40000' even when given '040000'."""
    tree = Tree()
    tree.add_entry('040000', 'tree', 'a' * 40, 'dir')

    assert tree.serialize().startswith(b'40000 dir\0')


def test_tree_deserialize_accepts_legacy_directory_mode():
    """Test '040000' entries parse as trees."""
    data = b'040000 dir\0' + bytes.fromhex('a' * 40)
    tree = parse_object('tree', data)

    entry = tree.get('dir')
    assert entry.is_tree
    assert entry.mode == '40000'


def test_tree_roundtrip(sample_tree):
    """Test serialize/deserialize cycle keeps the hash."""
    parsed = parse_object('tree', sample_tree.serialize())
    assert parsed.hash == sample_tree.hash
    assert parsed.entries == sample_tree.entries


@pytest.mark.parametrize('data', [
    b'100644 file.txt',
    b'100644file.txt\0' + b'\x00' * 20,
    b'100644 file.txt\0' + b'\x00' * 5,
    b'160000 sub\0' + b'\x00' * 20,
    b'100644 \0' + b'\x00' * 20,
])
def test_tree_deserialize_rejects_malformed(data):
    """Test truncated or malformed tree bodies are rejected."""
    with pytest.raises(ObjectFormatError):
        parse_object('tree', data)


def test_empty_tree_hash():
    """Test the empty tree has Git's well-known id."""
    assert Tree().hash == '4b825dc642cb6eb9a060e54bf8d69288fbee4904'
