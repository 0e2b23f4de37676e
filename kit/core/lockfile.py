"""Exclusive lock files with atomic publish.

A ``LockFile`` guards a single target file (the index, a ref). Acquiring
it creates ``<target>.lock`` with O_EXCL; new content is written into the
lock file and published by renaming it over the target. Either the rename
happens or the lock file is removed, never both.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .errors import LockConflict, StoreIOError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = '.lock'


class LockFile:
    """
    Scoped exclusive lock on a target file.

    Usage::

        with LockFile(index_path) as lock:
            lock.write(data)
            lock.commit()

    Leaving the block without ``commit()`` (including by exception)
    removes the lock file and leaves the target untouched.
    """

    def __init__(self, target):
        self.target = Path(target)
        self.lock_path = self.target.with_name(self.target.name + LOCK_SUFFIX)
        self._fd: Optional[int] = None
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> 'LockFile':
        """
        Create the lock file exclusively.

        Raises:
            LockConflict: If the lock file already exists
            StoreIOError: On any other filesystem failure
        """
        if self._held:
            raise RuntimeError(f"Lock {self.lock_path} already held")
        try:
            self.target.parent.mkdir(parents=True, exist_ok=True)
            self._fd = os.open(
                self.lock_path,
                os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, 'O_BINARY', 0),
                0o644,
            )
        except FileExistsError:
            raise LockConflict(str(self.lock_path)) from None
        except OSError as e:
            raise StoreIOError(str(self.lock_path), e.strerror or str(e)) from e
        self._held = True
        logger.debug("Acquired lock %s", self.lock_path)
        return self

    def write(self, data: bytes) -> None:
        """Append data to the pending content."""
        if not self._held or self._fd is None:
            raise RuntimeError(f"Lock {self.lock_path} is not held")
        try:
            view = memoryview(data)
            while view:
                written = os.write(self._fd, view)
                view = view[written:]
        except OSError as e:
            raise StoreIOError(str(self.lock_path), e.strerror or str(e)) from e

    def commit(self) -> None:
        """
        Publish the written content by renaming the lock over the target.

        The lock is released by the rename itself.

        Raises:
            StoreIOError: If flushing or renaming fails; the lock is then
                released by ``release()`` as on any other failure
        """
        if not self._held:
            raise RuntimeError(f"Lock {self.lock_path} is not held")
        try:
            self._close(sync=True)
            os.replace(self.lock_path, self.target)
        except OSError as e:
            raise StoreIOError(str(self.target), e.strerror or str(e)) from e
        self._held = False
        logger.debug("Committed %s", self.target)

    def release(self) -> None:
        """Discard pending content and remove the lock file, if still held."""
        if not self._held:
            return
        self._held = False
        try:
            self._close(sync=False)
        finally:
            try:
                os.unlink(self.lock_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StoreIOError(str(self.lock_path), e.strerror or str(e)) from e
        logger.debug("Released lock %s", self.lock_path)

    def _close(self, sync: bool) -> None:
        fd, self._fd = self._fd, None
        if fd is None:
            return
        try:
            if sync:
                os.fsync(fd)
        finally:
            os.close(fd)

    def __enter__(self) -> 'LockFile':
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = 'held' if self._held else 'free'
        return f"LockFile({self.lock_path}, {state})"
