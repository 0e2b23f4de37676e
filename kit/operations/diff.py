"""Diff engine: minimal line edit scripts, hunks and unified output."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from kit.core.hash import hash_content
from kit.core.objects import Blob, mode_to_str
from kit.core.workspace import DELETED

logger = logging.getLogger(__name__)

# Bytes scanned for NUL when deciding whether content is binary
BINARY_CHECK_SIZE = 8000
NULL_HASH = '0' * 7


class EditType(Enum):
    EQUAL = ' '
    INSERT = '+'
    DELETE = '-'


@dataclass(frozen=True)
class Edit:
    """
    One step of an edit script.

    Line numbers are 1-based; ``a_line`` is None for insertions and
    ``b_line`` is None for deletions.
    """
    type: EditType
    a_line: Optional[int]
    b_line: Optional[int]
    text: Any = None

    def __str__(self) -> str:
        text = self.text.decode('utf-8', 'replace') if isinstance(self.text, bytes) else str(self.text)
        return self.type.value + text.rstrip('\n')


def _frontiers(a: Sequence, b: Sequence) -> List[Dict[int, int]]:
    """
    Run the greedy forward search, keeping one frontier per edit distance.

    Frontier d maps each diagonal k = x - y in -d..d (step 2) to the
    furthest x reached with d edits.
    """
    n, m = len(a), len(b)
    previous = {1: 0}
    trace = []
    for d in range(n + m + 1):
        current = {}
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and previous[k - 1] < previous[k + 1]):
                x = previous[k + 1]
            else:
                x = previous[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            current[k] = x
            if x >= n and y >= m:
                trace.append(current)
                return trace
        trace.append(current)
        previous = current
    return trace


def edit_script(a: Sequence, b: Sequence) -> List[Edit]:
    """
    Compute a minimal edit script turning a into b (Myers' algorithm).

    Elements are compared with ``==``. Where several minimal scripts
    exist, a deletion is preferred over an insertion, so within a change
    block all deletions come before the insertions.

    Returns:
        Edits in forward order
    """
    trace = _frontiers(a, b)
    x, y = len(a), len(b)
    edits = []

    for d in range(len(trace) - 1, 0, -1):
        previous = trace[d - 1]
        k = x - y
        if k == -d or (k != d and previous[k - 1] < previous[k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = previous[prev_k]
        prev_y = prev_x - prev_k

        while x > prev_x and y > prev_y:
            x -= 1
            y -= 1
            edits.append(Edit(EditType.EQUAL, x + 1, y + 1, a[x]))

        if prev_k == k + 1:
            edits.append(Edit(EditType.INSERT, None, prev_y + 1, b[prev_y]))
        else:
            edits.append(Edit(EditType.DELETE, prev_x + 1, None, a[prev_x]))
        x, y = prev_x, prev_y

    while x > 0 and y > 0:
        x -= 1
        y -= 1
        edits.append(Edit(EditType.EQUAL, x + 1, y + 1, a[x]))

    edits.reverse()
    return edits


def edit_distance(a: Sequence, b: Sequence) -> int:
    """Number of insertions plus deletions in a minimal edit script."""
    n, m = len(a), len(b)
    v = {1: 0}
    for d in range(n + m + 1):
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[k - 1] < v[k + 1]):
                x = v[k + 1]
            else:
                x = v[k - 1] + 1
            y = x - k
            while x < n and y < m and a[x] == b[y]:
                x += 1
                y += 1
            v[k] = x
            if x >= n and y >= m:
                return d
    return n + m


def split_lines(data: bytes) -> List[bytes]:
    """Split content into lines that keep their '\\n'; only '\\n' ends a line."""
    if not data:
        return []
    lines = [line + b'\n' for line in data.split(b'\n')]
    lines[-1] = lines[-1][:-1]
    if not lines[-1]:
        lines.pop()
    return lines


def is_binary(data: Optional[bytes]) -> bool:
    return bool(data) and b'\0' in data[:BINARY_CHECK_SIZE]


@dataclass
class Hunk:
    """A run of changes with surrounding context lines."""
    a_start: int
    a_count: int
    b_start: int
    b_count: int
    edits: List[Edit] = field(default_factory=list)

    @staticmethod
    def _range(start: int, count: int) -> str:
        return str(start) if count == 1 else f"{start},{count}"

    def header(self) -> str:
        return f"@@ -{self._range(self.a_start, self.a_count)} +{self._range(self.b_start, self.b_count)} @@"

    def __str__(self) -> str:
        return self.header()


def build_hunks(edits: List[Edit], context: int = 3) -> List[Hunk]:
    """
    Group an edit script into hunks.

    Changes separated by at most ``2 * context`` unchanged lines share a
    hunk. Each hunk carries up to ``context`` unchanged lines on either side.
    """
    changes = [i for i, edit in enumerate(edits) if edit.type is not EditType.EQUAL]
    if not changes:
        return []

    groups = []
    start = end = changes[0]
    for i in changes[1:]:
        if i - end - 1 <= 2 * context:
            end = i
        else:
            groups.append((start, end))
            start = end = i
    groups.append((start, end))

    hunks = []
    for first, last in groups:
        lo = max(0, first - context)
        hi = min(len(edits), last + context + 1)
        hunk_edits = edits[lo:hi]

        a_before = sum(1 for edit in edits[:lo] if edit.a_line is not None)
        b_before = sum(1 for edit in edits[:lo] if edit.b_line is not None)
        a_count = sum(1 for edit in hunk_edits if edit.a_line is not None)
        b_count = sum(1 for edit in hunk_edits if edit.b_line is not None)

        # An empty side is numbered by the line it follows
        hunks.append(Hunk(
            a_start=a_before + 1 if a_count else a_before,
            a_count=a_count,
            b_start=b_before + 1 if b_count else b_before,
            b_count=b_count,
            edits=hunk_edits,
        ))
    return hunks


class FileDiff:
    """Represents the diff for a single file."""

    def __init__(self, path: str, old_content: Optional[bytes], new_content: Optional[bytes],
                 old_mode: Optional[int] = None, new_mode: Optional[int] = None,
                 context: int = 3):
        self.path = path
        self.old_content = old_content
        self.new_content = new_content
        self.old_mode = old_mode
        self.new_mode = new_mode
        self.context = context
        self.is_new = old_content is None
        self.is_deleted = new_content is None
        self.is_modified = old_content is not None and new_content is not None
        self.is_binary = is_binary(old_content) or is_binary(new_content)
        self._hunks: Optional[List[Hunk]] = None

    @property
    def hunks(self) -> List[Hunk]:
        """Hunks of the line diff, computed on first access."""
        if self._hunks is None:
            if self.is_binary:
                self._hunks = []
            else:
                old_lines = split_lines(self.old_content or b'')
                new_lines = split_lines(self.new_content or b'')
                self._hunks = build_hunks(edit_script(old_lines, new_lines), self.context)
        return self._hunks

    @property
    def mode_changed(self) -> bool:
        return self.is_modified and self.old_mode is not None and self.old_mode != self.new_mode

    def _short_hash(self, content: Optional[bytes]) -> str:
        return NULL_HASH if content is None else hash_content('blob', content)[:7]

    def header_lines(self) -> List[str]:
        lines = [f"diff --git a/{self.path} b/{self.path}"]
        index_line = f"index {self._short_hash(self.old_content)}..{self._short_hash(self.new_content)}"
        if self.is_new:
            lines.append(f"new file mode {mode_to_str(self.new_mode or 0o100644)}")
            lines.append(index_line)
        elif self.is_deleted:
            lines.append(f"deleted file mode {mode_to_str(self.old_mode or 0o100644)}")
            lines.append(index_line)
        elif self.mode_changed:
            lines.append(f"old mode {mode_to_str(self.old_mode)}")
            lines.append(f"new mode {mode_to_str(self.new_mode)}")
            if self.old_content != self.new_content:
                lines.append(index_line)
        else:
            lines.append(f"{index_line} {mode_to_str(self.old_mode or 0o100644)}")
        return lines

    def __repr__(self) -> str:
        state = 'new' if self.is_new else 'deleted' if self.is_deleted else 'modified'
        return f"FileDiff({self.path}, {state})"


class DiffEngine:
    """
    Engine for computing diffs between the snapshot, index and work tree.

    Supports:
    - Workspace vs index (unstaged changes)
    - Index vs snapshot (staged changes)
    - Unified diff format output
    """

    def __init__(self, repo, context: int = 3):
        """
        Initialize diff engine.

        Args:
            repo: Repository instance
            context: Unchanged lines shown around each change
        """
        self.repo = repo
        self.context = context

    def _blob_data(self, obj_hash: str) -> bytes:
        blob = self.repo.objects.read(obj_hash)
        if not isinstance(blob, Blob):
            return blob.serialize()
        return blob.data

    def _selected(self, path: str, paths: Optional[List[str]]) -> bool:
        if not paths:
            return True
        # '' is the repository root
        return any(not p or path == p or path.startswith(p.rstrip('/') + '/') for p in paths)

    def diff_blobs(self, path: str, old_content: Optional[bytes], new_content: Optional[bytes],
                   old_mode: Optional[int] = None, new_mode: Optional[int] = None) -> FileDiff:
        return FileDiff(path, old_content, new_content, old_mode, new_mode, self.context)

    def diff_workspace_to_index(self, paths: Optional[List[str]] = None,
                                index=None, report=None) -> List[FileDiff]:
        """
        Compute diffs for tracked files whose work tree content differs from the index.

        Untracked files are not included.
        """
        from kit.operations.status import WorkspaceChange

        index = index if index is not None else self.repo.load_index()
        if report is None:
            report = self._status_for(index)
        scanner = self.repo.workspace()

        diffs = []
        for path, change in report.unstaged().items():
            if not self._selected(path, paths):
                continue
            entry = index.get(path)
            if entry is None:
                continue
            old_content = self._blob_data(entry.sha1)
            if change is WorkspaceChange.DELETED:
                diffs.append(self.diff_blobs(path, old_content, None, entry.mode))
                continue
            metadata = scanner.stat(path)
            data = scanner.read(path)
            if data is DELETED or metadata is DELETED:
                diffs.append(self.diff_blobs(path, old_content, None, entry.mode))
                continue
            diff = self.diff_blobs(path, old_content, data, entry.mode, metadata.mode)
            if old_content != data or diff.mode_changed:
                diffs.append(diff)
        return diffs

    def diff_index_to_snapshot(self, paths: Optional[List[str]] = None,
                               index=None, report=None) -> List[FileDiff]:
        """Compute diffs for staged changes: index entries vs the last commit."""
        from kit.operations.status import IndexChange

        index = index if index is not None else self.repo.load_index()
        if report is None:
            report = self._status_for(index)
        snapshot_tree = self.repo.refs.head_tree()

        diffs = []
        for path, change in report.staged().items():
            if not self._selected(path, paths):
                continue
            entry = index.get(path)
            committed = None
            if change is not IndexChange.ADDED and snapshot_tree is not None:
                committed = self.repo.objects.find_entry(snapshot_tree, path)

            old_content = self._blob_data(committed.hash) if committed else None
            old_mode = committed.mode_int if committed else None
            new_content = self._blob_data(entry.sha1) if entry else None
            new_mode = entry.mode if entry else None
            diffs.append(self.diff_blobs(path, old_content, new_content, old_mode, new_mode))
        return diffs

    def _status_for(self, index):
        from kit.operations.status import StatusEngine
        return StatusEngine.for_repository(self.repo, index=index).compute()

    def format_diff(self, diffs: List[FileDiff], color: bool = True) -> str:
        """
        Format diffs as unified diff output.

        Args:
            diffs: List of FileDiff objects
            color: Whether to use color output

        Returns:
            Formatted diff string
        """
        from colorama import Fore, Style

        def paint(text: str, colour: str) -> str:
            return f"{colour}{text}{Style.RESET_ALL}" if color else text

        output = []
        for diff in diffs:
            for line in diff.header_lines():
                output.append(paint(line, Style.BRIGHT))

            if diff.is_binary:
                old_name = '/dev/null' if diff.is_new else f"a/{diff.path}"
                new_name = '/dev/null' if diff.is_deleted else f"b/{diff.path}"
                output.append(f"Binary files {old_name} and {new_name} differ")
                continue

            if not diff.hunks:
                continue

            output.append(paint('--- /dev/null' if diff.is_new else f"--- a/{diff.path}", Style.BRIGHT))
            output.append(paint('+++ /dev/null' if diff.is_deleted else f"+++ b/{diff.path}", Style.BRIGHT))

            for hunk in diff.hunks:
                output.append(paint(hunk.header(), Fore.CYAN))
                for edit in hunk.edits:
                    line = str(edit)
                    if edit.type is EditType.INSERT:
                        output.append(paint(line, Fore.GREEN))
                    elif edit.type is EditType.DELETE:
                        output.append(paint(line, Fore.RED))
                    else:
                        output.append(line)
                    if not edit.text.endswith(b'\n'):
                        output.append('\\ No newline at end of file')

        return '\n'.join(output)
