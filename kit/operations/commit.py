"""Snapshot writer: tree objects from the index, and commits."""

import logging
from typing import Dict, Optional, Union

from kit.core.errors import IdentityUnknown
from kit.core.index import Index, IndexEntry
from kit.core.objects import MODE_DIRECTORY, Commit, Tree, TreeEntry, mode_to_str
from kit.core.store import ObjectStore

logger = logging.getLogger(__name__)

_Node = Dict[str, Union['_Node', IndexEntry]]


def _write_node(store: ObjectStore, node: _Node) -> str:
    entries = []
    for name, child in node.items():
        if isinstance(child, dict):
            entries.append(TreeEntry(MODE_DIRECTORY, 'tree', _write_node(store, child), name))
        else:
            entries.append(TreeEntry(mode_to_str(child.mode), 'blob', child.sha1, name))

    tree = Tree()
    tree.entries = sorted(entries)
    return store.write_object(tree)


def write_tree(store: ObjectStore, index: Index) -> str:
    """
    Write the tree objects describing the index.

    Entries are grouped by directory; every subtree is written before the
    tree that refers to it. An empty index gives the empty tree.

    Returns:
        str: Hash of the root tree
    """
    root: _Node = {}
    for entry in index:
        *dirs, name = entry.path.split('/')
        node = root
        for part in dirs:
            node = node.setdefault(part, {})
        node[name] = entry

    tree_hash = _write_node(store, root)
    logger.debug("Wrote tree %s for %d index entries", tree_hash, len(index))
    return tree_hash


def default_identity(config) -> str:
    """
    Build 'Name <email>' from user.name and user.email.

    Raises:
        IdentityUnknown: If either value is missing
    """
    name, email = config.get_user_identity()
    if not name:
        raise IdentityUnknown('user.name')
    if not email:
        raise IdentityUnknown('user.email')
    return f"{name} <{email}>"


def create_commit(repo, message: str, author: Optional[str] = None,
                  committer: Optional[str] = None, timestamp: Optional[int] = None,
                  index: Optional[Index] = None) -> str:
    """
    Record the index as a new commit and move HEAD to it.

    Args:
        repo: Repository instance
        message: Commit message; a trailing newline is added if missing
        author: 'Name <email>', defaults to the configured identity
        committer: Defaults to author
        timestamp: Unix time, defaults to now (local timezone offset)
        index: Index to commit, loaded from disk when omitted

    Returns:
        str: Hash of the new commit

    Raises:
        IdentityUnknown: If no author is given or configured
        LockConflict: If HEAD's ref is locked
        RefConflict: If HEAD moved while the commit was being written
    """
    if index is None:
        index = repo.load_index()
    if author is None:
        author = default_identity(repo.config)
    if committer is None:
        committer = author
    if message and not message.endswith('\n'):
        message += '\n'

    tree_hash = write_tree(repo.objects, index)
    parent = repo.refs.resolve_head()
    commit = Commit.create(
        tree_hash=tree_hash,
        parent_hashes=[parent] if parent else [],
        author=author,
        committer=committer,
        message=message,
        timestamp=timestamp,
    )
    commit_hash = repo.objects.write_object(commit)
    ref_name = repo.refs.update_head(commit_hash, parent)
    logger.info("Committed %s on %s", commit_hash, ref_name)
    return commit_hash
