"""
Stability probes: decide whether a newly created file is fully written.

ExclusiveLockProber tries a non-blocking exclusive lock on the file. If any
other agent holds a conflicting lock (or, on Windows, opened the file
without sharing), the probe reports "not yet". This only detects lock
contention: a writer that appends without holding a lock will fool it.

SizeStabilityProber is the lock-free alternative: the file counts as
complete once its size and mtime stop changing over a settle window.
"""

import errno
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Iterator

from filedrop.errors import ProbeIOError, TransientLockError

logger = logging.getLogger(__name__)

# errno values reported when a non-blocking lock is already held elsewhere
_LOCK_CONTENTION_ERRNOS = {errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK}
if hasattr(errno, "EDEADLOCK"):
    _LOCK_CONTENTION_ERRNOS.add(errno.EDEADLOCK)

# ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
_WINDOWS_SHARING_ERRORS = {32, 33}


def _is_sharing_violation(exc: OSError) -> bool:
    """Check if an open() failure means "someone else has it open"."""
    return getattr(exc, "winerror", None) in _WINDOWS_SHARING_ERRORS


if sys.platform == "win32":
    import msvcrt

    def _try_lock(fd: int) -> None:
        # Lock the first byte; conflicting locks from other handles fail fast
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)

    def _unlock(fd: int) -> None:
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _try_lock(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_UN)


class ExclusiveLockProber:
    """
    Probe file stability by acquiring (and releasing) an exclusive lock.

    Example:
    --------
    >>> prober = ExclusiveLockProber()
    >>> prober.is_complete("/incoming/report.txt")
    True
    """

    @contextmanager
    def exclusive(self, path: str) -> Iterator[int]:
        """
        Hold an exclusive lock on path for the duration of the block.

        Raises:
        -------
        TransientLockError: The file is held by another agent
        ProbeIOError: Any other filesystem error (missing, permission, ...)
        """
        try:
            fd = os.open(path, os.O_RDONLY)
        except OSError as e:
            if _is_sharing_violation(e):
                raise TransientLockError(path) from e
            raise ProbeIOError(path, e) from e

        try:
            try:
                _try_lock(fd)
            except OSError as e:
                if isinstance(e, BlockingIOError) or e.errno in _LOCK_CONTENTION_ERRNOS:
                    raise TransientLockError(path) from e
                raise ProbeIOError(path, e) from e

            try:
                yield fd
            finally:
                try:
                    _unlock(fd)
                except OSError as e:
                    # Closing the descriptor releases the lock anyway
                    logger.debug(f"Unlock failed for {path}: {e}")
        finally:
            os.close(fd)

    def is_complete(self, path: str) -> bool:
        """Return True if the exclusive lock could be taken right now."""
        try:
            with self.exclusive(path):
                return True
        except TransientLockError:
            logger.debug(f"Still being written: {path}")
            return False


class SizeStabilityProber:
    """
    Probe file stability by watching size and mtime over a settle window.

    Blocks the caller for settle_seconds on every probe.
    """

    def __init__(self, settle_seconds: float = 1.0) -> None:
        if settle_seconds <= 0:
            raise ValueError("settle_seconds must be positive")
        self._settle_seconds = settle_seconds

    def _sample(self, path: str) -> tuple[int, int]:
        try:
            st = os.stat(path)
        except OSError as e:
            raise ProbeIOError(path, e) from e
        if not os.path.isfile(path):
            raise ProbeIOError(path, IsADirectoryError(errno.EISDIR, "Not a regular file", path))
        return st.st_size, st.st_mtime_ns

    def is_complete(self, path: str) -> bool:
        before = self._sample(path)
        time.sleep(self._settle_seconds)
        after = self._sample(path)
        if before != after:
            logger.debug(f"Still growing: {path} ({before[0]} -> {after[0]} bytes)")
            return False
        return True


def create_prober(kind: str, settle_seconds: float = 1.0):
    """Build a prober from its config name ("lock" or "size")."""
    if kind == "lock":
        return ExclusiveLockProber()
    if kind == "size":
        return SizeStabilityProber(settle_seconds=settle_seconds)
    raise ValueError(f"Unknown prober: {kind!r} (expected 'lock' or 'size')")
