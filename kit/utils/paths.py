"""Path helpers shared by the index, workspace and tree code.

Repository paths are always ``/``-separated strings relative to the work
tree. Names that are not valid UTF-8 survive the round trip through
``surrogateescape``.
"""

import os
from typing import Tuple

from kit.core.errors import InvalidPath


def encode_path(path: str) -> bytes:
    """Encode a repository path to the bytes stored on disk."""
    return path.encode('utf-8', 'surrogateescape')


def decode_path(raw: bytes) -> str:
    """Decode on-disk path bytes to a repository path."""
    return raw.decode('utf-8', 'surrogateescape')


def path_key(path: str) -> bytes:
    """Sort key giving the byte-wise order used by the index."""
    return encode_path(path)


def tree_name_key(name: str, is_tree: bool) -> bytes:
    """Sort key for tree entries: subtrees compare as if suffixed with '/'."""
    raw = encode_path(name)
    return raw + b'/' if is_tree else raw


def split_path(path: str) -> Tuple[str, str]:
    """Split 'a/b/c' into ('a/b', 'c'); top-level names get an empty parent."""
    parent, _, name = path.rpartition('/')
    return parent, name


def validate_path(path: str, metadata_dir: str = '.git') -> str:
    """
    Check that path can be stored as an index or tree path.

    Args:
        path: Candidate repository-relative path
        metadata_dir: Name of the repository metadata directory

    Returns:
        The path unchanged

    Raises:
        InvalidPath: If the path is empty, absolute, contains empty, '.'
            or '..' components, a NUL byte, or enters the metadata directory
    """
    if not path:
        raise InvalidPath(path, "empty path")
    if '\0' in path:
        raise InvalidPath(path, "contains NUL byte")
    if path.startswith('/'):
        raise InvalidPath(path, "absolute path")
    for part in path.split('/'):
        if part in ('', '.', '..'):
            raise InvalidPath(path, "empty or relative path component")
        if part == metadata_dir:
            raise InvalidPath(path, f"inside {metadata_dir} directory")
    return path


def to_repo_path(root: os.PathLike, path: os.PathLike, metadata_dir: str = '.git') -> str:
    """
    Convert a filesystem path to a repository-relative path.

    Relative paths are interpreted against the current directory, the way
    a user types them on the command line.

    Raises:
        InvalidPath: If the path lies outside root or inside the metadata directory
    """
    root = os.path.realpath(root)
    full = os.path.abspath(os.path.join(os.getcwd(), os.fspath(path)))
    # Resolve symlinked parent directories but not the final component
    head, tail = os.path.split(full)
    full = os.path.join(os.path.realpath(head), tail) if tail else os.path.realpath(head)
    try:
        relative = os.path.relpath(full, root)
    except ValueError:
        raise InvalidPath(os.fspath(path), "outside repository") from None
    if relative == os.curdir:
        return ''
    relative = relative.replace(os.sep, '/')
    if relative == '..' or relative.startswith('../'):
        raise InvalidPath(os.fspath(path), "outside repository")
    return validate_path(relative, metadata_dir)
