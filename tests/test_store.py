"""Object store tests."""

import os
import zlib

import pytest

from kit.core.errors import CorruptObject, ObjectNotFound
from kit.core.objects import Blob, Commit, Tree
from kit.core.store import MAX_TREE_DEPTH, ObjectStore


@pytest.fixture
def store(temp_dir):
    return ObjectStore(temp_dir / 'objects')


def write_raw(store, obj_hash, payload):
    """Place arbitrary compressed bytes where an object would live."""
    path = store.object_path(obj_hash)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(zlib.compress(payload))


def test_write_places_loose_object(store):
    """Test the object lands at objects/<2 hex>/<38 hex>."""
    obj_hash = store.write('blob', b'hello\n')

    assert obj_hash == 'ce013625030ba8dba906f756967f9e9ca394464a'
    path = store.objects_dir / 'ce' / '013625030ba8dba906f756967f9e9ca394464a'
    assert path.is_file()
    assert zlib.decompress(path.read_bytes()) == b'blob 6\0hello\n'


def test_write_is_idempotent(store):
    """Test writing the same content twice keeps one object."""
    first = store.write('blob', b'data')
    mtime = store.object_path(first).stat().st_mtime_ns
    second = store.write('blob', b'data')

    assert first == second
    assert store.object_path(first).stat().st_mtime_ns == mtime


def test_write_leaves_no_temporary_files(store):
    """Test a completed write leaves only the object in its fan-out directory."""
    obj_hash = store.write('blob', b'content')
    assert os.listdir(store.object_path(obj_hash).parent) == [obj_hash[2:]]


def test_write_rejects_unknown_kind(store):
    """Test only blob, tree and commit can be written."""
    with pytest.raises(ValueError):
        store.write('tag', b'x')


def test_read_roundtrip(store, sample_blob):
    """Test reading back a written object."""
    obj_hash = store.write_object(sample_blob)
    obj = store.read(obj_hash)

    assert isinstance(obj, Blob)
    assert obj.data == sample_blob.data
    assert store.read_raw(obj_hash) == ('blob', sample_blob.data)


def test_read_missing_object(store):
    """Test an absent object raises ObjectNotFound."""
    with pytest.raises(ObjectNotFound) as excinfo:
        store.read('0' * 40)
    assert excinfo.value.details['hash'] == '0' * 40


def test_read_malformed_hash(store):
    """Test a non-hash identifier is treated as not found."""
    with pytest.raises(ObjectNotFound):
        store.read('../../etc/passwd')


def test_exists(store):
    """Test existence checks."""
    obj_hash = store.write('blob', b'x')
    assert store.exists(obj_hash)
    assert not store.exists('f' * 40)
    assert not store.exists('short')


@pytest.mark.parametrize('payload', [
    b'blob 5\0hello!!',
    b'blob five\0hello',
    b'blob 5hello',
    b'tag 5\0hello',
])
def test_read_corrupt_header(store, payload):
    """Test size mismatch, bad size, missing NUL and unknown kind are corrupt."""
    write_raw(store, 'a' * 40, payload)
    with pytest.raises(CorruptObject):
        store.read('a' * 40)


def test_read_bad_zlib_stream(store):
    """Test a stream that does not inflate is corrupt."""
    path = store.object_path('b' * 40)
    path.parent.mkdir(parents=True)
    path.write_bytes(b'not zlib at all')

    with pytest.raises(CorruptObject):
        store.read('b' * 40)


def test_read_unparsable_tree_body(store):
    """Test a tree body that fails to parse is corrupt."""
    write_raw(store, 'c' * 40, b'tree 7\0garbage')
    with pytest.raises(CorruptObject):
        store.read('c' * 40)


def test_resolve_tree_peels_commit(store, sample_tree):
    """Test resolve_tree accepts a commit and returns its tree entries."""
    tree_hash = store.write_object(sample_tree)
    commit = Commit.create(tree_hash, [], 'A <a@b>', 'A <a@b>', 'msg\n', 1, '+0000')
    commit_hash = store.write_object(commit)

    assert store.resolve_tree(commit_hash) == sample_tree.entries


def test_resolve_tree_rejects_blob(store):
    """Test resolving a blob as a tree is corrupt."""
    blob_hash = store.write('blob', b'not a tree')
    with pytest.raises(CorruptObject):
        store.resolve_tree(blob_hash)


def nested_tree(store, depth):
    """Build dir/dir/.../file.txt, depth directories deep."""
    child_hash = store.write('blob', b'leaf\n')
    tree = Tree()
    tree.add_entry('100644', 'blob', child_hash, 'file.txt')
    for _ in range(depth):
        child_hash = store.write_object(tree)
        tree = Tree()
        tree.add_entry('40000', 'tree', child_hash, 'dir')
    return store.write_object(tree)


def test_walk_tree_yields_full_paths(store):
    """Test walking a nested tree in tree order."""
    blob = store.write('blob', b'x')
    sub = Tree()
    sub.add_entry('100644', 'blob', blob, 'inner.txt')
    root = Tree()
    root.add_entry('40000', 'tree', store.write_object(sub), 'a')
    root.add_entry('100644', 'blob', blob, 'a.txt')
    root.add_entry('100755', 'blob', blob, 'z.sh')
    root_hash = store.write_object(root)

    paths = [path for path, _ in store.walk_tree(root_hash)]
    assert paths == ['a.txt', 'a/inner.txt', 'z.sh']


def test_walk_tree_is_lazy(store):
    """Test subtrees are only read when iteration reaches them."""
    missing = Tree()
    missing.add_entry('40000', 'tree', 'd' * 40, 'gone')
    blob = store.write('blob', b'x')
    missing.add_entry('100644', 'blob', blob, 'first')
    walker = store.walk_tree(store.write_object(missing))

    assert next(walker)[0] == 'first'
    with pytest.raises(ObjectNotFound):
        next(walker)


def test_walk_tree_depth_bound(store):
    """Test nesting beyond MAX_TREE_DEPTH is reported as corrupt."""
    root = nested_tree(store, MAX_TREE_DEPTH + 1)
    with pytest.raises(CorruptObject):
        list(store.walk_tree(root))


def test_find_entry(store):
    """Test resolving a nested path component by component."""
    root = nested_tree(store, 2)

    entry = store.find_entry(root, 'dir/dir/file.txt')
    assert entry is not None
    assert entry.type == 'blob'
    assert store.find_entry(root, 'dir/missing.txt') is None
    assert store.find_entry(root, 'dir/dir/file.txt/deeper') is None


def test_resolve_prefix(store):
    """Test abbreviated hashes expand when unambiguous."""
    obj_hash = store.write('blob', b'hello\n')

    assert store.resolve_prefix(obj_hash[:7]) == obj_hash
    assert store.resolve_prefix(obj_hash) == obj_hash
    assert store.resolve_prefix('abc') is None
    assert store.resolve_prefix('ffffffff') is None


def test_hash_covers_header_and_body(store):
    """Test the object id is the SHA-1 of header plus body."""
    from kit.core.hash import hash_object

    assert store.write('blob', b'hello') == hash_object(b'blob 5\0hello')
    store.write('blob', b'hello')
    assert sum(len(files) for _, _, files in os.walk(store.objects_dir)) == 1
