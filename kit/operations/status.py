"""Three-way change detection between snapshot, index and working tree."""

import logging
import stat
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from kit.core.errors import LockConflict
from kit.core.hash import EMPTY_BLOB
from kit.core.index import Index, IndexEntry
from kit.core.objects import TreeEntry
from kit.core.store import ObjectStore
from kit.core.workspace import DELETED, FileStat, IgnorePredicate, WorkspaceScanner, read_blob_hash

logger = logging.getLogger(__name__)


class IndexChange(Enum):
    """How an index entry differs from the last snapshot."""
    ADDED = 'added'
    MODIFIED = 'modified'
    DELETED = 'deleted'
    UNCHANGED = 'unchanged'


class WorkspaceChange(Enum):
    """How a workspace file differs from its index entry."""
    MODIFIED = 'modified'
    DELETED = 'deleted'
    UNCHANGED = 'unchanged'


@dataclass
class StatusReport:
    """
    Result of one status computation.

    ``index_changes`` and ``workspace_changes`` share the same keys: every
    path tracked by the index or the snapshot. ``untracked`` lists files
    unknown to the index, with wholly untracked directories collapsed to
    a single ``dir/`` entry. ``refreshable`` maps entries whose cached
    metadata is stale but whose content matches the index to their
    current metadata.
    """
    index_changes: Dict[str, IndexChange] = field(default_factory=dict)
    workspace_changes: Dict[str, WorkspaceChange] = field(default_factory=dict)
    untracked: List[str] = field(default_factory=list)
    refreshable: Dict[str, FileStat] = field(default_factory=dict)

    def get(self, path: str) -> Tuple[Optional[IndexChange], Optional[WorkspaceChange]]:
        return self.index_changes.get(path), self.workspace_changes.get(path)

    def staged(self) -> Dict[str, IndexChange]:
        """Paths whose index state differs from the snapshot."""
        return {path: change for path, change in self.index_changes.items()
                if change is not IndexChange.UNCHANGED}

    def unstaged(self) -> Dict[str, WorkspaceChange]:
        """Paths whose workspace state differs from the index."""
        return {path: change for path, change in self.workspace_changes.items()
                if change is not WorkspaceChange.UNCHANGED}

    @property
    def is_clean(self) -> bool:
        return not (self.staged() or self.unstaged() or self.untracked)


class StatusEngine:
    """
    Computes a StatusReport without writing anything.

    Index vs snapshot compares hashes and modes. Workspace vs index first
    trusts cached metadata (mode, size, mtime) and only reads and hashes a
    file when the metadata cannot decide, or when the entry is racy.
    """

    def __init__(self, store: ObjectStore, index: Index, scanner: WorkspaceScanner,
                 snapshot_tree: Optional[str] = None, filemode: bool = True):
        """
        Initialize status engine.

        Args:
            store: Object store holding the snapshot
            index: Loaded index
            scanner: Workspace scanner (with ignore rules applied)
            snapshot_tree: Tree hash of the last commit, None before the first
            filemode: Whether executable-bit changes count as modifications
        """
        self.store = store
        self.index = index
        self.scanner = scanner
        self.snapshot_tree = snapshot_tree
        self.filemode = filemode

    @classmethod
    def for_repository(cls, repo, ignore: Optional[IgnorePredicate] = None,
                       index: Optional[Index] = None) -> 'StatusEngine':
        """
        Wire an engine to a repository's store, index, work tree and HEAD.

        Args:
            repo: Repository instance
            ignore: Ignore predicate; defaults to the repository's ignore rules
            index: Already loaded index; loaded from disk when omitted
        """
        if ignore is None:
            ignore = repo.ignore_matcher()
        return cls(
            store=repo.objects,
            index=index if index is not None else repo.load_index(),
            scanner=repo.workspace(ignore),
            snapshot_tree=repo.refs.head_tree(),
            filemode=repo.config.get_bool('core', 'filemode', True),
        )

    def compute(self) -> StatusReport:
        snapshot = self._snapshot_entries()
        report = StatusReport()

        for path, entry in self.index.entries().items():
            report.index_changes[path] = self._compare_to_snapshot(entry, snapshot.get(path))
            report.workspace_changes[path] = self._compare_to_workspace(entry, report)

        for path in snapshot:
            if path not in self.index:
                report.index_changes[path] = IndexChange.DELETED
                report.workspace_changes[path] = WorkspaceChange.UNCHANGED

        report.untracked = self._find_untracked()
        return report

    def _snapshot_entries(self) -> Dict[str, TreeEntry]:
        if self.snapshot_tree is None:
            return {}
        return dict(self.store.walk_tree(self.snapshot_tree))

    def _compare_to_snapshot(self, entry: IndexEntry, committed: Optional[TreeEntry]) -> IndexChange:
        if committed is None:
            return IndexChange.ADDED
        if committed.hash != entry.sha1 or committed.mode_int != entry.mode:
            return IndexChange.MODIFIED
        return IndexChange.UNCHANGED

    def _mode_changed(self, entry: IndexEntry, metadata: FileStat) -> bool:
        if self.filemode:
            return metadata.mode != entry.mode
        # Without filemode only the file type counts, not the executable bit
        return stat.S_IFMT(metadata.mode) != stat.S_IFMT(entry.mode)

    def _compare_to_workspace(self, entry: IndexEntry, report: StatusReport) -> WorkspaceChange:
        metadata = self.scanner.stat(entry.path)
        if metadata is DELETED:
            return WorkspaceChange.DELETED
        if self._mode_changed(entry, metadata):
            return WorkspaceChange.MODIFIED
        # A zero size on a non-empty blob is a placeholder or a smudge, never a fact
        if entry.size or entry.sha1 == EMPTY_BLOB:
            if metadata.size != entry.size:
                return WorkspaceChange.MODIFIED
            if metadata.mtime_key == entry.mtime_key and not self.index.is_racy(entry):
                return WorkspaceChange.UNCHANGED

        logger.debug("Rehashing %s", entry.path)
        blob_hash = read_blob_hash(self.scanner, entry.path)
        if blob_hash is None:
            return WorkspaceChange.DELETED
        if blob_hash != entry.sha1:
            return WorkspaceChange.MODIFIED
        report.refreshable[entry.path] = metadata
        return WorkspaceChange.UNCHANGED

    def _find_untracked(self) -> List[str]:
        untracked = []
        stack = [iter(self.scanner.list_dir(''))]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            path, is_dir = child
            if not is_dir:
                if path not in self.index:
                    untracked.append(path)
            elif self.index.contains_directory(path):
                stack.append(iter(self.scanner.list_dir(path)))
            elif next(self.scanner.walk(path), None) is not None:
                untracked.append(path + '/')
        return untracked


def refresh_index(repo, report: StatusReport, seen: Index) -> int:
    """
    Write refreshed metadata for entries a status run found clean.

    Entries that changed in the index since ``seen`` was loaded are left
    alone. If another process holds the index lock nothing is written.

    Returns:
        int: Number of entries refreshed
    """
    if not report.refreshable:
        return 0

    try:
        with repo.locked_index() as current:
            count = 0
            for path, metadata in report.refreshable.items():
                before, entry = seen.get(path), current.get(path)
                if entry is None or before is None:
                    continue
                if (entry.sha1, entry.mode) != (before.sha1, before.mode):
                    continue
                current.refresh(path, metadata)
                count += 1
            if count:
                current.persist()
    except LockConflict:
        logger.debug("Index is locked; skipped refreshing %d entries", len(report.refreshable))
        return 0
    return count
