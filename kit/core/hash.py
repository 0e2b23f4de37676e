"""Hash utilities for Kit."""

import hashlib
import re

HASH_SIZE = 20
HEX_HASH_LENGTH = 40
EMPTY_BLOB = 'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'

_HEX_HASH = re.compile(r'[0-9a-f]{40}')


def hash_object(data: bytes) -> str:
    """
    Compute SHA-1 hash of data.

    Args:
        data: Bytes to hash

    Returns:
        40-character hex string
    """
    return hashlib.sha1(data).hexdigest()


def object_header(obj_type: str, size: int) -> bytes:
    """Build the canonical ``<type> <size>\\0`` object header."""
    return f"{obj_type} {size}\0".encode()


def hash_content(obj_type: str, data: bytes) -> str:
    """
    Compute the identity of an object without storing it.

    Args:
        obj_type: Object kind ('blob', 'tree' or 'commit')
        data: Serialized object body

    Returns:
        40-character hex string
    """
    sha = hashlib.sha1(object_header(obj_type, len(data)))
    sha.update(data)
    return sha.hexdigest()


def is_valid_hash(value: str) -> bool:
    """Check that value is a full, lowercase 40-character hex hash."""
    return isinstance(value, str) and bool(_HEX_HASH.fullmatch(value))
