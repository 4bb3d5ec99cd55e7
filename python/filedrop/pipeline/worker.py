"""
Single-threaded processing worker.

This module provides the ProcessingWorker class that drains the ingestion
queue one file at a time: probe until stable (bounded retries), hand the
file to the processing callback, then delete it.

State machine:
--------------
    UNINITIALIZED --submit--> RUNNING --queue empty--> PARKED --submit--> RUNNING
    RUNNING|PARKED --stop()--> STOPPING --item done / parked--> STOPPED
    STOPPED --submit--> RUNNING (fresh thread)
    STOPPING --submit--> RUNNING (pending stop cancelled, same thread)

Every transition happens under the queue's lock, so checking the state and
spawning a thread can't race with another producer.
"""

import logging
import os
import threading
import time
from typing import Callable, Optional

from filedrop.errors import (
    CallbackFailure,
    FiledropError,
    ProbeIOError,
    RetryExhausted,
)
from filedrop.pipeline.queue import IngestionQueue
from filedrop.pipeline.types import (
    AbandonHook,
    ProcessCallback,
    StabilityProber,
    WorkerState,
)

logger = logging.getLogger(__name__)


class WorkerStats:
    """Counters for worker activity."""

    def __init__(self):
        self.enqueued = 0  # Paths submitted
        self.processed = 0  # Files handed to the callback and deleted
        self.abandoned = 0  # Files left on disk (any reason)
        self.probes = 0  # Stability probe calls
        self.retries = 0  # Waits between probes

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return {
            "enqueued": self.enqueued,
            "processed": self.processed,
            "abandoned": self.abandoned,
            "probes": self.probes,
            "retries": self.retries,
        }


class ProcessingWorker:
    """
    Drains an IngestionQueue on a single background thread.

    At most one file is in flight at any time, so files resolve (processed
    or abandoned) in the order they were submitted. A slow callback delays
    every file behind it.

    Constructor Args:
    -----------------
    queue: IngestionQueue to drain
    prober: StabilityProber deciding whether a file is fully written
    process_callback: Called with each stable path; must not delete the file
    max_attempts: Probe calls before a file is abandoned (>= 1)
    retry_delay: Seconds to wait between probes
    on_abandoned: Optional hook called with (path, error) for abandoned files
    sleep: Sleep function used between probes (injectable for tests)
    """

    def __init__(
        self,
        queue: IngestionQueue,
        prober: StabilityProber,
        process_callback: ProcessCallback,
        max_attempts: int = 5,
        retry_delay: float = 5.0,
        on_abandoned: Optional[AbandonHook] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if retry_delay < 0:
            raise ValueError("retry_delay must not be negative")
        if not callable(process_callback):
            raise TypeError("process_callback must be callable")

        self._queue = queue
        self._prober = prober
        self._callback = process_callback
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._on_abandoned = on_abandoned
        self._sleep = sleep

        self._lock = queue.lock
        self._state = WorkerState.UNINITIALIZED
        self._stop_event = threading.Event()
        self._drain = False
        self._thread: Optional[threading.Thread] = None
        self._in_flight: Optional[str] = None
        self._stats = WorkerStats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkerState:
        with self._lock:
            return self._state

    @property
    def stats(self) -> WorkerStats:
        return self._stats

    @property
    def in_flight(self) -> Optional[str]:
        """Path currently being processed, if any."""
        with self._lock:
            return self._in_flight

    def submit(self, path: str) -> None:
        """Enqueue a path and make sure a worker thread will pick it up."""
        with self._lock:
            self._queue.enqueue(path)
            self._stats.enqueued += 1
            self._ensure_running_locked()

    def ensure_running(self) -> None:
        """Start the worker thread if none is alive (no-op otherwise)."""
        with self._lock:
            self._ensure_running_locked()

    def _ensure_running_locked(self) -> None:
        if self._state in (WorkerState.UNINITIALIZED, WorkerState.STOPPED):
            self._spawn_locked()
        elif self._state == WorkerState.STOPPING:
            logger.info("New work arrived while stopping - worker keeps running")
            self._stop_event.clear()
            self._drain = False
            self._state = WorkerState.RUNNING

    def _spawn_locked(self) -> None:
        self._stop_event.clear()
        self._drain = False
        self._state = WorkerState.RUNNING
        self._thread = threading.Thread(
            target=self._run, name="filedrop-worker", daemon=True
        )
        self._thread.start()
        logger.debug("Worker thread started")

    def stop(
        self, wait: bool = True, timeout: Optional[float] = None, drain: bool = False
    ) -> None:
        """
        Ask the worker to halt.

        The item in flight (including its retry waits and callback) always
        runs to completion first. Remaining queued paths stay queued unless
        drain=True, in which case they are processed before halting.
        Safe to call when the worker is not running (no-op).

        Args:
        -----
        wait: Block until the worker thread exits
        timeout: Maximum seconds to wait when wait=True
        drain: Process everything already queued before halting
        """
        with self._lock:
            if self._state in (WorkerState.UNINITIALIZED, WorkerState.STOPPED):
                return
            self._drain = drain
            self._state = WorkerState.STOPPING
            self._stop_event.set()
            self._queue.wake()
            thread = self._thread

        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"Worker did not stop within {timeout}s")

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the queue is empty and nothing is in flight.

        Returns:
        --------
        True if idle, False if the timeout expired first
        """
        with self._lock:
            return self._lock.wait_for(
                lambda: self._queue.is_empty() and self._in_flight is None, timeout
            )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def _should_halt(self) -> bool:
        if not self._stop_event.is_set():
            return False
        return not (self._drain and not self._queue.is_empty())

    def _next_path(self) -> Optional[str]:
        """Dequeue the next path, parking while the queue is empty.

        Returns None when the worker should exit.
        """
        with self._lock:
            while True:
                if self._should_halt():
                    self._state = WorkerState.STOPPED
                    self._lock.notify_all()
                    return None

                path = self._queue.try_dequeue()
                if path is not None:
                    self._in_flight = path
                    if self._state == WorkerState.PARKED:
                        self._state = WorkerState.RUNNING
                    return path

                if self._state == WorkerState.RUNNING:
                    self._state = WorkerState.PARKED
                # Wake wait_idle() callers before suspending
                self._lock.notify_all()
                self._queue.wait_for_item(self._stop_event.is_set)

    def _run(self) -> None:
        logger.info("Processing worker running")
        try:
            while True:
                path = self._next_path()
                if path is None:
                    break
                try:
                    self._process(path)
                except Exception as e:
                    # _process reports per-file failures itself; this is a bug guard
                    logger.error(f"Unexpected error processing {path}: {e}", exc_info=True)
                finally:
                    with self._lock:
                        self._in_flight = None
                        self._lock.notify_all()
        except BaseException:
            # SystemExit/KeyboardInterrupt from a callback: the next submit respawns
            with self._lock:
                if self._thread is threading.current_thread():
                    self._state = WorkerState.STOPPED
                    self._lock.notify_all()
            logger.error("Processing worker died unexpectedly", exc_info=True)
            raise
        logger.info("Processing worker stopped")

    def _process(self, path: str) -> None:
        """Probe until stable, run the callback, delete. Never raises for per-file errors."""
        for attempt in range(1, self._max_attempts + 1):
            self._stats.probes += 1
            try:
                stable = self._prober.is_complete(path)
            except ProbeIOError as e:
                self._abandon(path, e)
                return
            except Exception as e:
                # Custom probers may raise raw errors; same policy, no retry
                self._abandon(path, ProbeIOError(path, e))
                return

            if stable:
                logger.debug(f"Stable after {attempt} probe(s): {path}")
                break

            if attempt < self._max_attempts:
                self._stats.retries += 1
                self._sleep(self._retry_delay)
        else:
            self._abandon(path, RetryExhausted(path, self._max_attempts))
            return

        try:
            result = self._callback(path)
        except Exception as e:
            self._abandon(path, CallbackFailure(path, e))
            return
        if result is False:
            self._abandon(path, CallbackFailure(path))
            return

        self._delete(path)
        self._stats.processed += 1

    def _delete(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Processed file vanished before deletion: {path}")
            return
        except OSError as e:
            logger.error(f"Processed {path} but could not delete it: {e}")
            return
        logger.info(f"Processed and removed: {path}")

    def _abandon(self, path: str, error: FiledropError) -> None:
        """Report a file left in place and notify the abandonment hook."""
        self._stats.abandoned += 1

        if isinstance(error, RetryExhausted):
            logger.warning(f"Abandoning {path}: {error}")
        elif isinstance(error, CallbackFailure) and error.cause is not None:
            logger.error(f"Abandoning {path}: {error}", exc_info=error.cause)
        else:
            logger.error(f"Abandoning {path}: {error}")

        if self._on_abandoned is not None:
            try:
                self._on_abandoned(path, error)
            except Exception as e:
                logger.error(f"Error in abandonment hook for {path}: {e}", exc_info=True)
