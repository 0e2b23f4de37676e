"""Reference resolution for Kit."""

import logging
from pathlib import Path
from typing import Optional, Tuple

from .errors import CorruptObject, RefConflict, StoreIOError
from .hash import is_valid_hash
from .lockfile import LockFile
from .objects import Commit

logger = logging.getLogger(__name__)

SYMREF_PREFIX = 'ref: '
HEADS_PREFIX = 'refs/heads/'
# Symbolic ref chains longer than this are treated as a loop.
MAX_SYMREF_DEPTH = 5


class RefManager:
    """
    Resolves HEAD to the current snapshot and moves it after a commit.

    Handles:
    - Symbolic HEAD (``ref: refs/heads/<branch>``)
    - Detached HEAD (a bare commit hash)
    - Loose refs and the ``packed-refs`` file
    - Unborn branches (HEAD names a branch with no commit yet)
    """

    def __init__(self, repo):
        """
        Initialize reference manager.

        Args:
            repo: Repository instance
        """
        self.repo = repo
        self.git_dir = repo.git_dir
        self.head_file = self.git_dir / 'HEAD'
        self.packed_refs_file = self.git_dir / 'packed-refs'

    def _read_text(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding='utf-8').strip()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return None
        except OSError as e:
            raise StoreIOError(str(path), e.strerror or str(e)) from e

    def _packed_ref(self, ref_name: str) -> Optional[str]:
        content = self._read_text(self.packed_refs_file)
        if not content:
            return None
        for line in content.splitlines():
            # Comments, and '^' lines peeling the previous annotated tag
            if not line or line[0] in '#^':
                continue
            obj_hash, _, name = line.partition(' ')
            if name == ref_name:
                return obj_hash
        return None

    def read_ref(self, ref_name: str) -> Optional[str]:
        """
        Read a reference and return its commit hash.

        Args:
            ref_name: Full reference name (e.g., 'refs/heads/main')

        Returns:
            Commit hash or None if the reference doesn't exist
        """
        for _ in range(MAX_SYMREF_DEPTH):
            content = self._read_text(self.git_dir / ref_name)
            if content is None:
                return self._packed_ref(ref_name)
            if not content.startswith(SYMREF_PREFIX):
                return content or None
            ref_name = content[len(SYMREF_PREFIX):]
        raise StoreIOError(ref_name, "symbolic reference loop")

    def _head(self) -> Tuple[Optional[str], Optional[str]]:
        """Return (symbolic target, direct hash) for HEAD."""
        content = self._read_text(self.head_file)
        if not content:
            return None, None
        if content.startswith(SYMREF_PREFIX):
            return content[len(SYMREF_PREFIX):], None
        return None, content

    def resolve_head(self) -> Optional[str]:
        """
        Resolve HEAD to a commit hash.

        Returns:
            Commit hash, or None if HEAD is missing or its branch is unborn
        """
        target, direct = self._head()
        if target is not None:
            return self.read_ref(target)
        return direct

    def head_tree(self) -> Optional[str]:
        """
        Return the tree hash of the current snapshot.

        Returns:
            Tree hash, or None if there is no commit yet

        Raises:
            CorruptObject: If HEAD does not point at a commit
        """
        commit_hash = self.resolve_head()
        if commit_hash is None:
            return None
        commit = self.repo.objects.read(commit_hash)
        if not isinstance(commit, Commit):
            raise CorruptObject(commit_hash, f"HEAD points at a {commit.type}, not a commit")
        return commit.tree

    def current_branch(self) -> Optional[str]:
        """
        Get the current branch name.

        Returns:
            Branch name or None if in detached HEAD state
        """
        target, _ = self._head()
        if target is not None and target.startswith(HEADS_PREFIX):
            return target[len(HEADS_PREFIX):]
        return None

    def is_detached_head(self) -> bool:
        """
        Check if HEAD is in detached state.

        Returns:
            True if detached, False if on a branch
        """
        _, direct = self._head()
        return direct is not None

    def update_head(self, commit_hash: str, old_hash: Optional[str]) -> str:
        """
        Point the current branch (or a detached HEAD) at a new commit.

        The ref is rewritten through a lock file and renamed into place,
        but only if it still holds old_hash once the lock is taken.

        Args:
            commit_hash: New commit
            old_hash: Value the ref was read with, None for an unborn branch

        Returns:
            str: Name of the reference that was written

        Raises:
            ValueError: If commit_hash is not a full hash
            RefConflict: If the ref no longer holds old_hash
            LockConflict: If the reference is locked by another process
            StoreIOError: On filesystem failure
        """
        if not is_valid_hash(commit_hash):
            raise ValueError(f"Invalid commit hash: {commit_hash!r}")

        target, _ = self._head()
        ref_name = target if target is not None else 'HEAD'
        with LockFile(self.git_dir / ref_name) as lock:
            current = self.read_ref(ref_name)
            if current != old_hash:
                raise RefConflict(ref_name, old_hash, current)
            lock.write(f"{commit_hash}\n".encode('ascii'))
            lock.commit()
        logger.debug("Updated %s from %s to %s", ref_name, old_hash, commit_hash)
        return ref_name

    def __repr__(self) -> str:
        return f"RefManager(git_dir={self.git_dir})"
