"""Loose object database."""

import logging
import os
import tempfile
import zlib
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .errors import CorruptObject, ObjectNotFound, StoreIOError
from .hash import hash_content, is_valid_hash, object_header
from .objects import (
    OBJECT_TYPES,
    Commit,
    KitObject,
    ObjectFormatError,
    Tree,
    TreeEntry,
    parse_object,
)

logger = logging.getLogger(__name__)

# Nesting deeper than this is treated as a corrupt (or hostile) tree.
MAX_TREE_DEPTH = 1024


class ObjectStore:
    """
    Content-addressed storage of zlib-compressed loose objects.

    Objects are immutable: there is no update or delete. A write is
    placed atomically through a temporary file, so readers only ever see
    complete objects and concurrent writers of the same object are
    harmless.
    """

    def __init__(self, objects_dir):
        """
        Initialize object store.

        Args:
            objects_dir: Path to the objects directory
        """
        self.objects_dir = Path(objects_dir)

    def object_path(self, obj_hash: str) -> Path:
        """
        Get filesystem path for an object.

        Objects are stored in subdirectories named by the first 2 characters
        of the hash, with the remaining 38 characters as the filename.
        """
        return self.objects_dir / obj_hash[:2] / obj_hash[2:]

    def exists(self, obj_hash: str) -> bool:
        return is_valid_hash(obj_hash) and self.object_path(obj_hash).is_file()

    def resolve_prefix(self, prefix: str) -> Optional[str]:
        """
        Expand an abbreviated hash (at least 4 hex digits).

        Returns:
            The full hash, or None if no object or more than one matches
        """
        prefix = prefix.lower()
        if is_valid_hash(prefix):
            return prefix if self.exists(prefix) else None
        if len(prefix) < 4 or any(c not in '0123456789abcdef' for c in prefix):
            return None

        try:
            names = os.listdir(self.objects_dir / prefix[:2])
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise StoreIOError(str(self.objects_dir / prefix[:2]), e.strerror or str(e)) from e

        matches = [prefix[:2] + name for name in names
                   if len(name) == 38 and (prefix[:2] + name).startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

    def write(self, obj_type: str, data: bytes) -> str:
        """
        Store an object body of the given kind.

        Args:
            obj_type: 'blob', 'tree' or 'commit'
            data: Serialized object body

        Returns:
            str: SHA-1 hash of the object

        Raises:
            ValueError: If obj_type is not a known kind
            StoreIOError: On filesystem failure
        """
        if obj_type not in OBJECT_TYPES:
            raise ValueError(f"Unknown object type: {obj_type}")

        obj_hash = hash_content(obj_type, data)
        path = self.object_path(obj_hash)

        if path.exists():
            return obj_hash

        compressed = zlib.compress(object_header(obj_type, len(data)) + data)
        self._place(path, compressed)
        logger.debug("Wrote %s %s (%d bytes)", obj_type, obj_hash, len(data))
        return obj_hash

    def write_object(self, obj: KitObject) -> str:
        """Store a Blob, Tree or Commit and return its hash."""
        return self.write(obj.type, obj.serialize())

    def _place(self, path: Path, compressed: bytes) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix='tmp_obj_', dir=path.parent)
            with os.fdopen(fd, 'wb') as f:
                f.write(compressed)
            os.chmod(tmp_name, 0o444)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StoreIOError(str(path), e.strerror or str(e)) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary object %s", tmp_name)

    def read_raw(self, obj_hash: str) -> Tuple[str, bytes]:
        """
        Read an object's kind and body without parsing the body.

        Raises:
            ObjectNotFound: If no such object exists
            CorruptObject: If the stream or header is malformed
            StoreIOError: On filesystem failure
        """
        if not is_valid_hash(obj_hash):
            raise ObjectNotFound(obj_hash)

        path = self.object_path(obj_hash)
        try:
            compressed = path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            raise ObjectNotFound(obj_hash) from None
        except OSError as e:
            raise StoreIOError(str(path), e.strerror or str(e)) from e

        try:
            content = zlib.decompress(compressed)
        except zlib.error as e:
            raise CorruptObject(obj_hash, f"bad compressed stream ({e})") from e

        null_idx = content.find(b'\0')
        if null_idx < 0:
            raise CorruptObject(obj_hash, "missing header terminator")

        header = content[:null_idx].decode('ascii', 'replace')
        obj_type, _, size_str = header.partition(' ')
        if obj_type not in OBJECT_TYPES:
            raise CorruptObject(obj_hash, f"unknown object type {obj_type!r}")
        if not size_str.isdigit():
            raise CorruptObject(obj_hash, f"invalid object header {header!r}")

        data = content[null_idx + 1:]
        if len(data) != int(size_str):
            raise CorruptObject(
                obj_hash, f"size mismatch: header says {size_str}, found {len(data)}")
        return obj_type, data

    def read(self, obj_hash: str) -> KitObject:
        """
        Read and parse an object.

        Returns:
            KitObject: Blob, Tree or Commit

        Raises:
            ObjectNotFound: If no such object exists
            CorruptObject: If the object is malformed
            StoreIOError: On filesystem failure
        """
        obj_type, data = self.read_raw(obj_hash)
        try:
            return parse_object(obj_type, data)
        except (ObjectFormatError, UnicodeDecodeError) as e:
            raise CorruptObject(obj_hash, str(e)) from e

    def read_tree(self, obj_hash: str) -> Tree:
        """
        Read a tree, peeling a commit to its tree.

        Raises:
            CorruptObject: If the object is a blob
        """
        obj = self.read(obj_hash)
        if isinstance(obj, Commit):
            obj = self.read(obj.tree)
        if not isinstance(obj, Tree):
            raise CorruptObject(obj_hash, f"expected tree, found {obj.type}")
        return obj

    def resolve_tree(self, obj_hash: str) -> List[TreeEntry]:
        """Return the ordered entries of a tree (or of a commit's tree)."""
        return list(self.read_tree(obj_hash).entries)

    def walk_tree(self, obj_hash: str, prefix: str = '') -> Iterator[Tuple[str, TreeEntry]]:
        """
        Lazily yield (path, entry) for every non-tree entry below a tree.

        Subtrees are read only when iteration reaches them. Paths are
        yielded in tree order.

        Raises:
            CorruptObject: If a subtree is not a tree or nesting exceeds
                MAX_TREE_DEPTH
        """
        stack = [(prefix, iter(self.read_tree(obj_hash).entries))]
        while stack:
            base, entries = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue

            path = f"{base}{entry.name}"
            if not entry.is_tree:
                yield path, entry
                continue

            if len(stack) >= MAX_TREE_DEPTH:
                raise CorruptObject(entry.hash, f"tree nesting deeper than {MAX_TREE_DEPTH}")
            subtree = self.read(entry.hash)
            if not isinstance(subtree, Tree):
                raise CorruptObject(entry.hash, f"expected tree, found {subtree.type}")
            stack.append((path + '/', iter(subtree.entries)))

    def find_entry(self, tree_hash: str, path: str) -> Optional[TreeEntry]:
        """
        Resolve a '/'-separated path inside a tree, one component at a time.

        Returns:
            TreeEntry or None if any component is missing
        """
        parts = [part for part in path.split('/') if part]
        if not parts or len(parts) > MAX_TREE_DEPTH:
            return None

        tree = self.read_tree(tree_hash)
        for depth, part in enumerate(parts):
            entry = tree.get(part)
            if entry is None:
                return None
            if depth == len(parts) - 1:
                return entry
            if not entry.is_tree:
                return None
            tree = self.read_tree(entry.hash)
        return None

    def __repr__(self) -> str:
        return f"ObjectStore(path={self.objects_dir})"
