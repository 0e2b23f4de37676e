"""Core functionality for Kit.

This module contains the core data structures:
- Kit objects (Blob, Tree, Commit) and the loose object store
- Workspace scanning
- Index/staging area and lock files
- Repository handle and HEAD resolution
- Configuration management
- Error taxonomy

For status, diff and commit creation, see kit.operations
For path and ignore helpers, see kit.utils
"""

from kit.core.errors import (
    KitError, ObjectNotFound, CorruptObject, IndexCorrupt, LockConflict,
    StoreIOError, WorkspaceIOError, InvalidPath, InvalidConfig, RefConflict,
)
from kit.core.objects import KitObject, Blob, Tree, TreeEntry, Commit
from kit.core.hash import hash_object, hash_content
from kit.core.store import ObjectStore
from kit.core.workspace import WorkspaceScanner, FileStat, DELETED
from kit.core.index import Index, IndexEntry
from kit.core.repository import Repository
from kit.core.refs import RefManager
from kit.core.config import Config

__all__ = [
    'KitError',
    'ObjectNotFound',
    'CorruptObject',
    'IndexCorrupt',
    'LockConflict',
    'StoreIOError',
    'WorkspaceIOError',
    'InvalidPath',
    'InvalidConfig',
    'RefConflict',
    'KitObject',
    'Blob',
    'Tree',
    'TreeEntry',
    'Commit',
    'ObjectStore',
    'WorkspaceScanner',
    'FileStat',
    'DELETED',
    'Index',
    'IndexEntry',
    'Repository',
    'RefManager',
    'Config',
    'hash_object',
    'hash_content',
]
