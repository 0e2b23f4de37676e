"""Read-only view of the working tree."""

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

from .errors import WorkspaceIOError
from .hash import hash_content
from .objects import normalize_mode
from kit.utils.paths import decode_path, to_repo_path, tree_name_key

logger = logging.getLogger(__name__)

IgnorePredicate = Callable[[str, bool], bool]

_UINT32 = 0xFFFFFFFF


class _Deleted:
    """Marker for a path that vanished between enumeration and access."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'DELETED'


DELETED = _Deleted()


@dataclass(frozen=True)
class FileStat:
    """
    Live metadata of a workspace file, in the units the index stores.

    Every field is truncated to 32 bits, as the index format does, so a
    FileStat compares directly against a cached index entry.
    """
    ctime: int
    ctime_ns: int
    mtime: int
    mtime_ns: int
    dev: int
    ino: int
    mode: int
    uid: int
    gid: int
    size: int

    @classmethod
    def from_os_stat(cls, st: os.stat_result) -> 'FileStat':
        ctime_ns = getattr(st, 'st_ctime_ns', int(st.st_ctime * 1e9))
        mtime_ns = st.st_mtime_ns
        return cls(
            ctime=(ctime_ns // 1_000_000_000) & _UINT32,
            ctime_ns=ctime_ns % 1_000_000_000,
            mtime=(mtime_ns // 1_000_000_000) & _UINT32,
            mtime_ns=mtime_ns % 1_000_000_000,
            dev=st.st_dev & _UINT32,
            ino=st.st_ino & _UINT32,
            mode=normalize_mode(st.st_mode),
            uid=st.st_uid & _UINT32,
            gid=st.st_gid & _UINT32,
            size=st.st_size & _UINT32,
        )

    @property
    def mtime_key(self) -> Tuple[int, int]:
        return self.mtime, self.mtime_ns


class WorkspaceScanner:
    """
    Enumerates and reads files below the repository root.

    The scanner never writes. The metadata directory is skipped at every
    level, and an optional ignore predicate ``(path, is_dir) -> bool``
    prunes both files and whole directories.
    """

    def __init__(self, root, metadata_dir: str = '.git',
                 ignore: Optional[IgnorePredicate] = None):
        """
        Initialize scanner.

        Args:
            root: Work tree root
            metadata_dir: Directory name never reported
            ignore: Predicate returning True for paths to skip
        """
        self.root = Path(root)
        self.metadata_dir = metadata_dir
        self.ignore = ignore

    def _full_path(self, path: str) -> Path:
        return self.root / path if path else self.root

    def _skip(self, name: str, path: str, is_dir: bool) -> bool:
        if name == self.metadata_dir:
            return True
        return bool(self.ignore and self.ignore(path, is_dir))

    def list_dir(self, relative: str = '') -> List[Tuple[str, bool]]:
        """
        List one directory level.

        Returns:
            Sorted list of (relative path, is_dir). Regular files and
            symlinks count as files; other file types are skipped. A
            directory that vanished yields an empty list.

        Raises:
            WorkspaceIOError: If the directory cannot be read
        """
        directory = self._full_path(relative)
        prefix = f"{relative}/" if relative else ''
        children = []
        try:
            with os.scandir(directory) as it:
                for entry in it:
                    name = decode_path(os.fsencode(entry.name))
                    try:
                        is_dir = entry.is_dir(follow_symlinks=False)
                        is_file = entry.is_file(follow_symlinks=False) or entry.is_symlink()
                    except OSError:
                        continue
                    if not (is_dir or is_file):
                        continue
                    path = prefix + name
                    if self._skip(name, path, is_dir):
                        continue
                    children.append((tree_name_key(name, is_dir), path, is_dir))
        except (FileNotFoundError, NotADirectoryError):
            return []
        except OSError as e:
            raise WorkspaceIOError(str(directory), e.strerror or str(e)) from e

        children.sort()
        return [(path, is_dir) for _, path, is_dir in children]

    def walk(self, relative: str = '') -> Iterator[str]:
        """
        Lazily yield the relative paths of all files below relative.

        Paths come out in byte order of the full path. If relative names
        a file, that file alone is yielded.
        """
        if relative:
            try:
                st = os.lstat(self._full_path(relative))
            except (FileNotFoundError, NotADirectoryError):
                return
            except OSError as e:
                raise WorkspaceIOError(relative, e.strerror or str(e)) from e
            if not stat.S_ISDIR(st.st_mode):
                if stat.S_ISREG(st.st_mode) or stat.S_ISLNK(st.st_mode):
                    yield relative
                return

        stack = [iter(self.list_dir(relative))]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            path, is_dir = child
            if is_dir:
                stack.append(iter(self.list_dir(path)))
            else:
                yield path

    def stat(self, path: str) -> Union[FileStat, _Deleted]:
        """
        Stat a file without following symlinks.

        Returns:
            FileStat, or DELETED if the path no longer names a file

        Raises:
            WorkspaceIOError: On permission or I/O failure
        """
        try:
            st = os.lstat(self._full_path(path))
        except (FileNotFoundError, NotADirectoryError):
            return DELETED
        except OSError as e:
            raise WorkspaceIOError(path, e.strerror or str(e)) from e
        if not (stat.S_ISREG(st.st_mode) or stat.S_ISLNK(st.st_mode)):
            return DELETED
        return FileStat.from_os_stat(st)

    def read(self, path: str) -> Union[bytes, _Deleted]:
        """
        Read file content; a symlink reads as its target path.

        Returns:
            bytes, or DELETED if the file vanished

        Raises:
            WorkspaceIOError: On permission or I/O failure
        """
        full = self._full_path(path)
        try:
            if full.is_symlink():
                return os.fsencode(os.readlink(full))
            return full.read_bytes()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return DELETED
        except OSError as e:
            raise WorkspaceIOError(path, e.strerror or str(e)) from e

    def relative_path(self, path) -> str:
        """Map a user-supplied path to a repository-relative path."""
        return to_repo_path(self.root, path, self.metadata_dir)

    def __repr__(self) -> str:
        return f"WorkspaceScanner(root={self.root})"


def read_blob_hash(scanner: WorkspaceScanner, path: str) -> Optional[str]:
    """Hash a workspace file as a blob without storing it; None if it vanished."""
    data = scanner.read(path)
    if data is DELETED:
        return None
    return hash_content('blob', data)
