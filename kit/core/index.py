"""Index (staging area) implementation."""

import bisect
import dataclasses
import hashlib
import logging
import os
import struct
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .errors import IndexCorrupt, InvalidPath, StoreIOError
from .hash import HASH_SIZE, is_valid_hash
from .lockfile import LockFile
from .workspace import DELETED, FileStat
from kit.utils.paths import decode_path, encode_path, path_key, validate_path

logger = logging.getLogger(__name__)

SIGNATURE = b'DIRC'
VERSION = 2
HEADER_FORMAT = '>4sII'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
ENTRY_FORMAT = '>IIIIIIIIII20sH'
ENTRY_SIZE = struct.calcsize(ENTRY_FORMAT)
EXTENSION_HEADER_FORMAT = '>4sI'
EXTENSION_HEADER_SIZE = struct.calcsize(EXTENSION_HEADER_FORMAT)

NAME_MASK = 0xFFF
# Assume-valid and stage bits survive a rewrite; the v3 extended bit does not.
KEPT_FLAGS = 0xB000
_UINT32 = 0xFFFFFFFF


@dataclass
class IndexEntry:
    """
    Represents a single entry in the index.

    Stores metadata about a staged file including timestamps,
    permissions, and the hash of its content.
    """
    ctime: int          # Change time (seconds)
    ctime_ns: int       # Change time (nanoseconds)
    mtime: int          # Modification time (seconds)
    mtime_ns: int       # Modification time (nanoseconds)
    dev: int            # Device ID
    ino: int            # Inode number
    mode: int           # Normalized file mode
    uid: int            # User ID
    gid: int            # Group ID
    size: int           # File size
    sha1: str           # SHA-1 hash of content
    flags: int          # Flags (includes name length)
    path: str           # File path

    @classmethod
    def from_stat(cls, path: str, sha1: str, metadata: Optional[FileStat] = None,
                  mode: Optional[int] = None) -> 'IndexEntry':
        """
        Build an entry from live metadata.

        Without metadata every cached field is zero, so the entry never
        passes the metadata fast path and is always rehashed.
        """
        if metadata is None:
            fields = dict(ctime=0, ctime_ns=0, mtime=0, mtime_ns=0, dev=0, ino=0,
                          mode=mode or 0o100644, uid=0, gid=0, size=0)
        else:
            fields = dataclasses.asdict(metadata)
            if mode is not None:
                fields['mode'] = mode
        flags = min(len(encode_path(path)), NAME_MASK)
        return cls(sha1=sha1, flags=flags, path=path, **fields)

    def with_stat(self, metadata: FileStat) -> 'IndexEntry':
        """Copy of this entry with refreshed cached metadata and the same hash."""
        return dataclasses.replace(self, **dataclasses.asdict(metadata))

    @property
    def mtime_key(self) -> Tuple[int, int]:
        return self.mtime, self.mtime_ns

    def __repr__(self) -> str:
        return f"IndexEntry({self.mode:o} {self.sha1[:7]} {self.path})"


class Index:
    """
    Kit index (staging area) implementation.

    The index stores the files to be included in the next commit, ordered
    by path bytes. Each entry caches file metadata next to the hash of
    the staged content.
    """

    def __init__(self, path=None, metadata_dir: str = '.git'):
        """
        Initialize empty index.

        Args:
            path: Index file location, needed for persist()
            metadata_dir: Name that may not appear as a path component
        """
        self.path = Path(path) if path is not None else None
        self.metadata_dir = metadata_dir
        self.version = VERSION
        self.timestamp: Optional[Tuple[int, int]] = None
        self._entries: Dict[str, IndexEntry] = {}
        self._keys: List[bytes] = []
        # Paths whose metadata was captured since the last read or persist
        self._fresh: Set[str] = set()
        self._lock: Optional[LockFile] = None

    # Loading

    @classmethod
    def load(cls, path, metadata_dir: str = '.git') -> 'Index':
        """
        Read an index file; a missing file gives an empty index.

        Raises:
            IndexCorrupt: On bad signature, version, truncation or checksum
            StoreIOError: If the file exists but cannot be read
        """
        index = cls(path, metadata_dir)
        index.read()
        return index

    def read(self) -> None:
        """Replace in-memory entries with the content of the index file."""
        self.clear()
        self.timestamp = None
        try:
            with open(self.path, 'rb') as f:
                st = os.fstat(f.fileno())
                data = f.read()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StoreIOError(str(self.path), e.strerror or str(e)) from e

        for entry in self._parse(data):
            self._insert(entry)
        self.timestamp = divmod(st.st_mtime_ns, 1_000_000_000)
        logger.debug("Loaded %d index entries from %s", len(self), self.path)

    def _parse(self, data: bytes) -> List[IndexEntry]:
        name = str(self.path)
        if len(data) < HEADER_SIZE + HASH_SIZE:
            raise IndexCorrupt(name, "file too short")

        content, checksum = data[:-HASH_SIZE], data[-HASH_SIZE:]
        if hashlib.sha1(content).digest() != checksum:
            raise IndexCorrupt(name, "checksum mismatch")

        signature, version, count = struct.unpack_from(HEADER_FORMAT, content, 0)
        if signature != SIGNATURE:
            raise IndexCorrupt(name, f"invalid signature {signature!r}")
        if version != VERSION:
            raise IndexCorrupt(name, f"unsupported version {version}")

        entries = []
        offset = HEADER_SIZE
        end = len(content)

        for _ in range(count):
            if offset + ENTRY_SIZE > end:
                raise IndexCorrupt(name, "truncated entry")
            fields = struct.unpack_from(ENTRY_FORMAT, content, offset)
            flags = fields[11]

            start = offset + ENTRY_SIZE
            name_len = flags & NAME_MASK
            if name_len < NAME_MASK:
                path_end = start + name_len
                if path_end >= end or content[path_end] != 0:
                    raise IndexCorrupt(name, "unterminated entry path")
            else:
                path_end = content.find(b'\0', start)
                if path_end < 0:
                    raise IndexCorrupt(name, "unterminated entry path")
            raw_path = content[start:path_end]

            # 1 to 8 NUL bytes pad each entry to a multiple of 8
            entry_len = ENTRY_SIZE + len(raw_path)
            offset += entry_len + (8 - entry_len % 8)
            if offset > end:
                raise IndexCorrupt(name, "truncated entry padding")

            entries.append(IndexEntry(
                ctime=fields[0],
                ctime_ns=fields[1],
                mtime=fields[2],
                mtime_ns=fields[3],
                dev=fields[4],
                ino=fields[5],
                mode=fields[6],
                uid=fields[7],
                gid=fields[8],
                size=fields[9],
                sha1=fields[10].hex(),
                flags=flags,
                path=decode_path(raw_path),
            ))

        while offset < end:
            if offset + EXTENSION_HEADER_SIZE > end:
                raise IndexCorrupt(name, "truncated extension header")
            ext_sig, ext_size = struct.unpack_from(EXTENSION_HEADER_FORMAT, content, offset)
            if not b'A' <= ext_sig[:1] <= b'Z':
                raise IndexCorrupt(name, f"unsupported required extension {ext_sig!r}")
            offset += EXTENSION_HEADER_SIZE + ext_size
            if offset > end:
                raise IndexCorrupt(name, f"truncated extension {ext_sig!r}")
            logger.debug("Skipped index extension %r (%d bytes)", ext_sig, ext_size)

        return entries

    # Queries

    def entries(self) -> Dict[str, IndexEntry]:
        """Ordered mapping of path to entry, in path byte order."""
        return {decode_path(key): self._entries[decode_path(key)] for key in self._keys}

    def get(self, path: str) -> Optional[IndexEntry]:
        return self._entries.get(path)

    def paths(self) -> List[str]:
        return [decode_path(key) for key in self._keys]

    def contains_directory(self, path: str) -> bool:
        """True if any entry lies below directory path ('' means the root)."""
        if not path:
            return bool(self._keys)
        prefix = path_key(path) + b'/'
        i = bisect.bisect_left(self._keys, prefix)
        return i < len(self._keys) and self._keys[i].startswith(prefix)

    def is_racy(self, entry: IndexEntry) -> bool:
        """
        True if the entry's cached mtime cannot prove the file is clean.

        A file modified in the same timestamp tick as the index was
        written may have changed after its metadata was cached.
        """
        if self.timestamp is None:
            return True
        return entry.mtime_key >= self.timestamp

    # Mutation

    def upsert(self, path: str, blob_hash: str, metadata: Optional[FileStat] = None,
               mode: Optional[int] = None) -> IndexEntry:
        """
        Insert or replace the entry for path.

        Entries that would conflict in a tree (a file where a directory
        is needed, or entries below a path that becomes a file) are
        evicted. Unrelated entries are not touched.

        Raises:
            InvalidPath: If path cannot be stored
            ValueError: If blob_hash is not a 40-character hex hash
        """
        validate_path(path, self.metadata_dir)
        if not is_valid_hash(blob_hash):
            raise ValueError(f"Invalid blob hash: {blob_hash!r}")

        self._discard_conflicts(path)
        entry = IndexEntry.from_stat(path, blob_hash, metadata, mode)
        self._insert(entry)
        if metadata is not None:
            self._fresh.add(path)
        return entry

    def refresh(self, path: str, metadata: FileStat) -> None:
        """Replace cached metadata of an entry whose content is unchanged."""
        entry = self._entries.get(path)
        if entry is not None:
            self._entries[path] = entry.with_stat(metadata)
            self._fresh.add(path)

    def remove(self, path: str) -> bool:
        """
        Remove entry from index.

        Returns:
            True if an entry was removed
        """
        if path not in self._entries:
            return False
        self._delete(path)
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._keys.clear()
        self._fresh.clear()

    def add_file(self, store, scanner, path: str) -> Optional[str]:
        """
        Stage the current content of a workspace file.

        The blob is written to the store, then the entry is upserted with
        metadata taken before the read. A tracked file that no longer
        exists is unstaged instead.

        Returns:
            str: Staged blob hash, or None if the entry was removed

        Raises:
            InvalidPath: If the path does not name a file and is not tracked
        """
        metadata = scanner.stat(path)
        data = DELETED if metadata is DELETED else scanner.read(path)
        if data is DELETED:
            if self.remove(path):
                return None
            raise InvalidPath(path, "did not match any files")

        blob_hash = store.write('blob', data)
        self.upsert(path, blob_hash, metadata)
        return blob_hash

    def _insert(self, entry: IndexEntry) -> None:
        if entry.path not in self._entries:
            bisect.insort(self._keys, path_key(entry.path))
        self._entries[entry.path] = entry

    def _delete(self, path: str) -> None:
        key = path_key(path)
        i = bisect.bisect_left(self._keys, key)
        del self._keys[i]
        del self._entries[path]
        self._fresh.discard(path)

    def _discard_conflicts(self, path: str) -> None:
        parent = path
        while '/' in parent:
            parent = parent.rpartition('/')[0]
            if parent in self._entries:
                self._delete(parent)

        prefix = path_key(path) + b'/'
        i = bisect.bisect_left(self._keys, prefix)
        children = []
        while i < len(self._keys) and self._keys[i].startswith(prefix):
            children.append(decode_path(self._keys[i]))
            i += 1
        for child in children:
            self._delete(child)

    # Writing

    def serialize(self) -> bytes:
        """
        Encode the index in the DIRC version 2 format.

        Format:
        - Header: 'DIRC' + version (4 bytes) + entry count (4 bytes)
        - Entries: sorted by path, 62 fixed bytes + path + NUL padding
        - Checksum: SHA-1 of everything before it
        """
        parts = [struct.pack(HEADER_FORMAT, SIGNATURE, VERSION, len(self._keys))]

        for key in self._keys:
            entry = self._entries[decode_path(key)]
            flags = (entry.flags & KEPT_FLAGS) | min(len(key), NAME_MASK)
            parts.append(struct.pack(
                ENTRY_FORMAT,
                entry.ctime & _UINT32,
                entry.ctime_ns & _UINT32,
                entry.mtime & _UINT32,
                entry.mtime_ns & _UINT32,
                entry.dev & _UINT32,
                entry.ino & _UINT32,
                entry.mode & _UINT32,
                entry.uid & _UINT32,
                entry.gid & _UINT32,
                entry.size & _UINT32,
                bytes.fromhex(entry.sha1),
                flags,
            ))
            parts.append(key)
            entry_len = ENTRY_SIZE + len(key)
            parts.append(b'\0' * (8 - entry_len % 8))

        content = b''.join(parts)
        return content + hashlib.sha1(content).digest()

    def persist(self) -> None:
        """
        Atomically replace the index file with the in-memory entries.

        Uses the lock held by ``Index.locked()`` if there is one,
        otherwise takes the lock for the duration of the write.

        Raises:
            LockConflict: If another process holds the index lock
            StoreIOError: On filesystem failure
        """
        if self.path is None:
            raise ValueError("Index has no file path")

        self._smudge_racy()
        data = self.serialize()
        if self._lock is not None and self._lock.held:
            self._lock.write(data)
            self._lock.commit()
        else:
            with LockFile(self.path) as lock:
                lock.write(data)
                lock.commit()

        try:
            st = os.stat(self.path)
            self.timestamp = divmod(st.st_mtime_ns, 1_000_000_000)
        except OSError:
            self.timestamp = None
        self._fresh.clear()
        logger.debug("Persisted %d index entries to %s", len(self), self.path)

    def _smudge_racy(self) -> None:
        """
        Zero the cached size of entries that are racy against the index
        being replaced.

        Once the new file is written with a later timestamp, such entries
        would no longer look racy, and a same-size edit made in the tick
        their metadata was cached would pass the metadata check. A zero
        size forces the next comparison to hash the file. Entries whose
        metadata was captured since the index was read are kept as is.
        """
        if self.timestamp is None:
            return
        smudged = 0
        for path, entry in self._entries.items():
            if path in self._fresh or not entry.size or not self.is_racy(entry):
                continue
            self._entries[path] = dataclasses.replace(entry, size=0)
            smudged += 1
        if smudged:
            logger.debug("Smudged %d racily clean index entries", smudged)

    @classmethod
    @contextmanager
    def locked(cls, path, metadata_dir: str = '.git') -> Iterator['Index']:
        """
        Hold the index lock across a read-modify-write cycle.

        The index is loaded after the lock is taken, so no concurrent
        update is lost. The lock is released on exit whether or not
        ``persist()`` was called.

        Raises:
            LockConflict: If the lock is already held
        """
        lock = LockFile(path).acquire()
        index = None
        try:
            index = cls.load(path, metadata_dir)
            index._lock = lock
            yield index
        finally:
            if index is not None:
                index._lock = None
            lock.release()

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[IndexEntry]:
        for key in self._keys:
            yield self._entries[decode_path(key)]

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Index(entries={len(self._entries)})"
