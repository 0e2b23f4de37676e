"""Kit objects: the closed set of blob, tree and commit kinds."""

import stat
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple, Type

from .hash import HASH_SIZE, hash_content, is_valid_hash
from kit.utils.paths import decode_path, encode_path, tree_name_key

MODE_FILE = '100644'
MODE_EXECUTABLE = '100755'
MODE_SYMLINK = '120000'
MODE_DIRECTORY = '40000'

_TREE_MODES = {
    MODE_FILE: 'blob',
    MODE_EXECUTABLE: 'blob',
    MODE_SYMLINK: 'blob',
    MODE_DIRECTORY: 'tree',
}


class ObjectFormatError(ValueError):
    """Raised when an object body cannot be parsed."""


def normalize_mode(st_mode: int) -> int:
    """
    Reduce a filesystem mode to one a tree or index entry can store.

    Returns:
        int: 0o120000 for symlinks, 0o040000 for directories,
        0o100755 for owner-executable files, else 0o100644
    """
    if stat.S_ISLNK(st_mode):
        return stat.S_IFLNK
    if stat.S_ISDIR(st_mode):
        return stat.S_IFDIR
    if st_mode & stat.S_IXUSR:
        return stat.S_IFREG | 0o755
    return stat.S_IFREG | 0o644


def mode_to_str(mode: int) -> str:
    """Format a numeric mode the way tree objects spell it."""
    return f"{mode:o}"


class KitObject(ABC):
    """Base class for all Kit objects."""

    def __init__(self):
        self._hash: Optional[str] = None

    @abstractmethod
    def serialize(self) -> bytes:
        """
        Serialize object body to bytes.

        Returns:
            bytes: Serialized object data, without header
        """

    @abstractmethod
    def deserialize(self, data: bytes) -> None:
        """
        Deserialize object body from bytes.

        Args:
            data: Serialized object data

        Raises:
            ObjectFormatError: If the body is malformed
        """

    @property
    def type(self) -> str:
        """
        Return object type name.

        Returns:
            str: Object type (blob, tree, commit)
        """
        return self.__class__.__name__.lower()

    def compute_hash(self) -> str:
        """
        Compute and cache object hash.

        Objects are hashed with a header containing the type and size.
        Format: <type> <size>\\0<content>

        Returns:
            str: 40-character SHA-1 hash
        """
        if self._hash is None:
            self._hash = hash_content(self.type, self.serialize())
        return self._hash

    @property
    def hash(self) -> str:
        """40-character SHA-1 hash of the object."""
        return self.compute_hash()

    def __eq__(self, other) -> bool:
        if not isinstance(other, KitObject):
            return NotImplemented
        return self.type == other.type and self.hash == other.hash

    def __hash__(self) -> int:
        return hash((self.type, self.hash))


class Blob(KitObject):
    """
    Represents file content.

    A blob stores the raw content of a file without any metadata
    like filename or permissions.
    """

    def __init__(self, data: Optional[bytes] = None):
        super().__init__()
        self.data = data or b''

    def serialize(self) -> bytes:
        return self.data

    def deserialize(self, data: bytes) -> None:
        self.data = data
        self._hash = None

    def __repr__(self) -> str:
        return f"Blob(hash={self.hash[:7]}, size={len(self.data)})"


class TreeEntry:
    """
    A single child of a tree.

    Each entry contains:
    - mode: Octal mode string ('100644', '100755', '120000' or '40000')
    - type: Object type ('blob' or 'tree')
    - hash: SHA-1 hash of the child object
    - name: Filename or directory name
    """

    __slots__ = ('mode', 'type', 'hash', 'name')

    def __init__(self, mode: str, obj_type: str, obj_hash: str, name: str):
        self.mode = mode
        self.type = obj_type
        self.hash = obj_hash
        self.name = name

    @property
    def is_tree(self) -> bool:
        return self.type == 'tree'

    @property
    def mode_int(self) -> int:
        return int(self.mode, 8)

    def sort_key(self) -> bytes:
        return tree_name_key(self.name, self.is_tree)

    def __lt__(self, other: 'TreeEntry') -> bool:
        return self.sort_key() < other.sort_key()

    def __eq__(self, other) -> bool:
        if not isinstance(other, TreeEntry):
            return NotImplemented
        return (self.mode, self.type, self.hash, self.name) == (
            other.mode, other.type, other.hash, other.name)

    def __hash__(self) -> int:
        return hash((self.mode, self.type, self.hash, self.name))

    def __repr__(self) -> str:
        return f"TreeEntry({self.mode} {self.type} {self.hash[:7]} {self.name})"


class Tree(KitObject):
    """
    Represents directory structure.

    A tree contains entries pointing to blobs (files) and other trees
    (subdirectories). Entries are kept in canonical order, so the hash
    does not depend on the order they were added in.
    """

    def __init__(self):
        super().__init__()
        self.entries: List[TreeEntry] = []

    def add_entry(self, mode: str, obj_type: str, obj_hash: str, name: str) -> None:
        """
        Add entry to tree, replacing any existing entry with the same name.

        Args:
            mode: File mode
            obj_type: Object type ('blob' or 'tree')
            obj_hash: Object hash
            name: Entry name

        Raises:
            ValueError: If the name, mode or hash cannot be stored in a tree
        """
        if not name or '/' in name or '\0' in name or name in ('.', '..'):
            raise ValueError(f"Invalid tree entry name: {name!r}")
        if not is_valid_hash(obj_hash):
            raise ValueError(f"Invalid object hash: {obj_hash!r}")
        if mode == '040000':
            mode = MODE_DIRECTORY
        if _TREE_MODES.get(mode) != obj_type:
            raise ValueError(f"Invalid mode {mode!r} for a {obj_type}")
        self.entries = [entry for entry in self.entries if entry.name != name]
        self.entries.append(TreeEntry(mode, obj_type, obj_hash, name))
        self.entries.sort()
        self._hash = None

    def get(self, name: str) -> Optional[TreeEntry]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def serialize(self) -> bytes:
        """
        Serialize tree to Git's tree format.

        Format: <mode> <name>\\0<20-byte hash>, one record per entry.

        Returns:
            bytes: Serialized tree data
        """
        parts = []
        for entry in sorted(self.entries):
            parts.append(f"{entry.mode} ".encode() + encode_path(entry.name) + b'\0')
            parts.append(bytes.fromhex(entry.hash))
        return b''.join(parts)

    def deserialize(self, data: bytes) -> None:
        entries = []
        pos = 0
        end = len(data)

        while pos < end:
            space_pos = data.find(b' ', pos)
            if space_pos < 0:
                raise ObjectFormatError("tree entry without mode separator")
            mode = data[pos:space_pos].decode('ascii', 'replace')
            if mode == '040000':
                mode = MODE_DIRECTORY
            if mode not in _TREE_MODES:
                raise ObjectFormatError(f"unsupported tree entry mode {mode!r}")

            null_pos = data.find(b'\0', space_pos)
            if null_pos < 0:
                raise ObjectFormatError("tree entry without name terminator")
            name = decode_path(data[space_pos + 1:null_pos])
            if not name:
                raise ObjectFormatError("tree entry with empty name")

            hash_bytes = data[null_pos + 1:null_pos + 1 + HASH_SIZE]
            if len(hash_bytes) != HASH_SIZE:
                raise ObjectFormatError("truncated tree entry hash")

            entries.append(TreeEntry(mode, _TREE_MODES[mode], hash_bytes.hex(), name))
            pos = null_pos + 1 + HASH_SIZE

        entries.sort()
        self.entries = entries
        self._hash = None

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Tree(entries={len(self.entries)})"


def format_identity(identity: str, timestamp: int, timezone: str) -> str:
    return f"{identity} {timestamp} {timezone}"


def parse_identity(value: str) -> Tuple[str, int, str]:
    """Split 'Name <email> 1700000000 +0100' into its three parts."""
    parts = value.rsplit(' ', 2)
    if len(parts) != 3 or not parts[0].endswith('>'):
        raise ObjectFormatError(f"malformed identity line: {value!r}")
    try:
        timestamp = int(parts[1])
    except ValueError:
        raise ObjectFormatError(f"malformed timestamp: {parts[1]!r}") from None
    return parts[0], timestamp, parts[2]


def local_timezone(timestamp: Optional[int] = None) -> str:
    """Return the local UTC offset at timestamp as '+hhmm'."""
    if timestamp is None:
        timestamp = int(time.time())
    return time.strftime('%z', time.localtime(timestamp)) or '+0000'


class Commit(KitObject):
    """
    Represents a commit with metadata.

    A commit captures:
    - Snapshot of project (tree hash)
    - Parent commit(s) for history
    - Author and committer info with timestamps
    - Commit message

    Header lines Kit does not interpret (encoding, gpgsig, ...) are kept
    in ``extra_headers`` so the commit re-serializes byte for byte.
    """

    def __init__(self):
        super().__init__()
        self.tree: str = ''
        self.parents: List[str] = []
        self.author: str = ''
        self.author_time: int = 0
        self.author_timezone: str = '+0000'
        self.committer: str = ''
        self.committer_time: int = 0
        self.committer_timezone: str = '+0000'
        self.extra_headers: List[Tuple[str, str]] = []
        self.message: str = ''

    def serialize(self) -> bytes:
        """
        Serialize commit to Git's commit format.

        Format:
        tree <tree-hash>
        parent <parent-hash>  (zero or more)
        author Name <email> <timestamp> <timezone>
        committer Name <email> <timestamp> <timezone>

        <commit message>
        """
        lines = [f'tree {self.tree}']
        lines.extend(f'parent {parent}' for parent in self.parents)
        lines.append('author ' + format_identity(
            self.author, self.author_time, self.author_timezone))
        lines.append('committer ' + format_identity(
            self.committer, self.committer_time, self.committer_timezone))
        for key, value in self.extra_headers:
            lines.append(f'{key} ' + value.replace('\n', '\n '))
        lines.append('')
        lines.append(self.message)
        return '\n'.join(lines).encode('utf-8', 'surrogateescape')

    def deserialize(self, data: bytes) -> None:
        content = data.decode('utf-8', 'surrogateescape')
        header, sep, message = content.partition('\n\n')
        if not sep:
            raise ObjectFormatError("commit without message separator")

        headers: List[List[str]] = []
        for line in header.split('\n'):
            if line.startswith(' '):
                if not headers:
                    raise ObjectFormatError("continuation line before any header")
                headers[-1][1] += '\n' + line[1:]
                continue
            key, space, value = line.partition(' ')
            if not space:
                raise ObjectFormatError(f"malformed commit header: {line!r}")
            headers.append([key, value])

        tree = None
        parents = []
        author = committer = None
        extra = []
        for key, value in headers:
            if key == 'tree' and tree is None:
                tree = value
            elif key == 'parent' and author is None:
                parents.append(value)
            elif key == 'author' and author is None:
                author = parse_identity(value)
            elif key == 'committer' and committer is None:
                committer = parse_identity(value)
            else:
                extra.append((key, value))

        if tree is None or not is_valid_hash(tree):
            raise ObjectFormatError("commit without valid tree")
        if any(not is_valid_hash(parent) for parent in parents):
            raise ObjectFormatError("commit with invalid parent hash")
        if author is None or committer is None:
            raise ObjectFormatError("commit without author or committer")

        self.tree = tree
        self.parents = parents
        self.author, self.author_time, self.author_timezone = author
        self.committer, self.committer_time, self.committer_timezone = committer
        self.extra_headers = extra
        self.message = message
        self._hash = None

    @classmethod
    def create(
        cls,
        tree_hash: str,
        parent_hashes: List[str],
        author: str,
        committer: str,
        message: str,
        timestamp: Optional[int] = None,
        timezone: Optional[str] = None
    ) -> 'Commit':
        """
        Create a new commit.

        Args:
            tree_hash: Hash of tree object
            parent_hashes: List of parent commit hashes
            author: Author name and email (e.g., "Name <email>")
            committer: Committer name and email
            message: Commit message
            timestamp: Unix timestamp (defaults to current time)
            timezone: Offset such as "+0000" (defaults to local offset)

        Returns:
            Commit: New commit object
        """
        if timestamp is None:
            timestamp = int(time.time())
        if timezone is None:
            timezone = local_timezone(timestamp)

        commit = cls()
        commit.tree = tree_hash
        commit.parents = list(parent_hashes)
        commit.author = author
        commit.committer = committer
        commit.message = message
        commit.author_time = timestamp
        commit.committer_time = timestamp
        commit.author_timezone = timezone
        commit.committer_timezone = timezone
        return commit

    def __repr__(self) -> str:
        parent_info = f", parents={len(self.parents)}" if self.parents else ""
        msg_preview = self.message.split('\n')[0][:50]
        return f"Commit(hash={self.hash[:7]}{parent_info}, msg='{msg_preview}')"


OBJECT_TYPES: Dict[str, Type[KitObject]] = {
    'blob': Blob,
    'tree': Tree,
    'commit': Commit,
}


def parse_object(obj_type: str, data: bytes) -> KitObject:
    """
    Build an object of the given kind from its serialized body.

    Raises:
        ObjectFormatError: If the kind is unknown or the body malformed
    """
    try:
        cls = OBJECT_TYPES[obj_type]
    except KeyError:
        raise ObjectFormatError(f"unknown object type {obj_type!r}") from None
    obj = cls()
    obj.deserialize(data)
    return obj
