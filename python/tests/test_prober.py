"""
Tests for stability probes.

These tests focus on:
1. ExclusiveLockProber: stable vs. locked files, error classification, lock release
2. SizeStabilityProber: settled vs. growing files
3. create_prober() config mapping
"""

import os
import sys
import threading
import time

import pytest

from filedrop.errors import ProbeIOError, TransientLockError
from filedrop.pipeline import ExclusiveLockProber, SizeStabilityProber, create_prober

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses fcntl.flock")


@pytest.fixture
def written_file(drop_dir):
    path = drop_dir / "done.txt"
    path.write_text("complete contents")
    return str(path)


# ============================================================================
# EXCLUSIVE LOCK PROBER
# ============================================================================


def test_lock_prober_stable_file(written_file):
    """Test: a closed file is complete."""
    assert ExclusiveLockProber().is_complete(written_file) is True


def test_lock_prober_can_probe_repeatedly(written_file):
    """Test: the lock is released after each probe."""
    prober = ExclusiveLockProber()
    assert prober.is_complete(written_file)
    assert prober.is_complete(written_file)


@posix_only
def test_lock_prober_reports_locked_file(written_file):
    """Test: a file another handle holds exclusively is not complete."""
    import fcntl

    with open(written_file, "ab") as writer:
        fcntl.flock(writer.fileno(), fcntl.LOCK_EX)
        assert ExclusiveLockProber().is_complete(written_file) is False

    # Writer closed → lock gone
    assert ExclusiveLockProber().is_complete(written_file) is True


@posix_only
def test_lock_prober_exclusive_raises_transient_error(written_file):
    """Test: exclusive() surfaces contention as TransientLockError."""
    import fcntl

    with open(written_file, "ab") as writer:
        fcntl.flock(writer.fileno(), fcntl.LOCK_EX)
        with pytest.raises(TransientLockError) as excinfo:
            with ExclusiveLockProber().exclusive(written_file):
                pass

    assert excinfo.value.path == written_file


@posix_only
def test_lock_prober_releases_lock_on_exit(written_file):
    """Test: after probing, another agent can take the lock immediately."""
    import fcntl

    ExclusiveLockProber().is_complete(written_file)

    with open(written_file, "rb") as other:
        fcntl.flock(other.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)  # Would raise if still held


@posix_only
def test_lock_prober_releases_lock_when_block_raises(written_file):
    """Test: an exception inside exclusive() still releases the lock."""
    import fcntl

    with pytest.raises(RuntimeError):
        with ExclusiveLockProber().exclusive(written_file):
            raise RuntimeError("inside")

    with open(written_file, "rb") as other:
        fcntl.flock(other.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def test_lock_prober_missing_file_raises_probe_io_error(drop_dir):
    """Test: missing file → ProbeIOError wrapping FileNotFoundError (not False)."""
    missing = str(drop_dir / "missing.txt")

    with pytest.raises(ProbeIOError) as excinfo:
        ExclusiveLockProber().is_complete(missing)

    assert isinstance(excinfo.value.cause, FileNotFoundError)
    assert excinfo.value.path == missing


@pytest.mark.skipif(
    sys.platform == "win32" or os.geteuid() == 0, reason="root ignores file permissions"
)
def test_lock_prober_permission_denied_raises_probe_io_error(written_file):
    """Test: unreadable file → ProbeIOError wrapping PermissionError."""
    os.chmod(written_file, 0)
    try:
        with pytest.raises(ProbeIOError) as excinfo:
            ExclusiveLockProber().is_complete(written_file)
        assert isinstance(excinfo.value.cause, PermissionError)
    finally:
        os.chmod(written_file, 0o644)


# ============================================================================
# SIZE STABILITY PROBER
# ============================================================================


def test_size_prober_stable_file(written_file):
    """Test: unchanged size and mtime over the window → complete."""
    assert SizeStabilityProber(settle_seconds=0.05).is_complete(written_file) is True


def test_size_prober_growing_file(drop_dir):
    """Test: a file still being appended to is not complete."""
    path = drop_dir / "growing.bin"
    path.write_bytes(b"")
    stop_writing = threading.Event()

    def write_data():
        while not stop_writing.is_set():
            with open(path, "ab") as f:
                f.write(b"x" * 100)
            time.sleep(0.01)

    writer = threading.Thread(target=write_data)
    writer.start()
    try:
        assert SizeStabilityProber(settle_seconds=0.2).is_complete(str(path)) is False
    finally:
        stop_writing.set()
        writer.join()


def test_size_prober_missing_file(drop_dir):
    """Test: missing file → ProbeIOError."""
    with pytest.raises(ProbeIOError):
        SizeStabilityProber(settle_seconds=0.01).is_complete(str(drop_dir / "nope"))


def test_size_prober_directory_is_probe_error(drop_dir):
    """Test: a directory is not a droppable file."""
    with pytest.raises(ProbeIOError):
        SizeStabilityProber(settle_seconds=0.01).is_complete(str(drop_dir))


def test_size_prober_rejects_bad_settle():
    """Test: settle_seconds must be positive."""
    with pytest.raises(ValueError):
        SizeStabilityProber(settle_seconds=0)


# ============================================================================
# FACTORY
# ============================================================================


def test_create_prober_kinds():
    """Test: config names map to prober classes."""
    assert isinstance(create_prober("lock"), ExclusiveLockProber)
    assert isinstance(create_prober("size", settle_seconds=0.5), SizeStabilityProber)

    with pytest.raises(ValueError, match="Unknown prober"):
        create_prober("magic")
