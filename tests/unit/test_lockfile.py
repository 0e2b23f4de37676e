"""Lock file tests."""

import pytest

from kit.core.errors import LockConflict
from kit.core.lockfile import LockFile


def test_commit_publishes_content(temp_dir):
    """Test written content replaces the target on commit."""
    target = temp_dir / 'HEAD'
    target.write_text('old\n')

    with LockFile(target) as lock:
        assert lock.lock_path.exists()
        lock.write(b'new\n')
        lock.commit()

    assert target.read_text() == 'new\n'
    assert not (temp_dir / 'HEAD.lock').exists()


def test_exit_without_commit_rolls_back(temp_dir):
    """Test the target is untouched when the block ends early."""
    target = temp_dir / 'index'
    target.write_bytes(b'original')

    with pytest.raises(RuntimeError):
        with LockFile(target) as lock:
            lock.write(b'partial')
            raise RuntimeError('interrupted')

    assert target.read_bytes() == b'original'
    assert not lock.lock_path.exists()
    assert not lock.held


def test_second_lock_conflicts(temp_dir):
    """Test the lock is exclusive."""
    target = temp_dir / 'index'
    with LockFile(target):
        with pytest.raises(LockConflict) as excinfo:
            LockFile(target).acquire()
    assert excinfo.value.details['lock_path'] == str(temp_dir / 'index.lock')


def test_write_requires_lock(temp_dir):
    """Test writing through a lock that is not held."""
    with pytest.raises(RuntimeError):
        LockFile(temp_dir / 'index').write(b'data')


def test_creates_missing_parent(temp_dir):
    """Test locking a ref whose directory does not exist yet."""
    target = temp_dir / 'refs' / 'heads' / 'main'
    with LockFile(target) as lock:
        lock.write(b'abc\n')
        lock.commit()
    assert target.read_bytes() == b'abc\n'
