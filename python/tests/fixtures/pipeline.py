"""
Pipeline fixtures for test_prober/test_queue/test_worker/test_pipeline tests.
"""
import os
import threading
import time

import pytest


def wait_until(predicate, timeout=5.0, interval=0.01):
    """Poll predicate until it returns truthy or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


class ScriptedProber:
    """Prober returning scripted results; the last result repeats forever."""

    def __init__(self, *results):
        self._results = list(results) or [True]
        self.calls = []  # (path, monotonic timestamp)
        self._lock = threading.Lock()

    def is_complete(self, path):
        with self._lock:
            self.calls.append((path, time.monotonic()))
            index = min(len(self.calls), len(self._results)) - 1
            result = self._results[index]
        if isinstance(result, BaseException):
            raise result
        return result

    def calls_for(self, path):
        return [p for p, _ in self.calls if p == path]


class RecordingCallback:
    """Processing callback that records paths (and whether they still existed)."""

    def __init__(self, result=None, block=None):
        self.paths = []
        self.existed = []
        self._result = result
        self._block = block  # threading.Event to wait on before returning
        self.entered = threading.Event()

    def __call__(self, path):
        self.paths.append(path)
        self.existed.append(os.path.exists(path))
        self.entered.set()
        if self._block is not None:
            self._block.wait(5.0)
        if isinstance(self._result, BaseException):
            raise self._result
        return self._result


@pytest.fixture
def drop_dir(tmp_path):
    """Create temporary drop directory (resolved, so paths match what watchdog reports)."""
    directory = tmp_path / "drop"
    directory.mkdir()
    return directory.resolve()


@pytest.fixture
def make_file(drop_dir):
    """Factory creating a file in the drop directory, returning its str path."""

    def _make(name, content="payload"):
        path = drop_dir / name
        path.write_text(content)
        return str(path)

    return _make


@pytest.fixture
def make_worker():
    """Factory building a ProcessingWorker on a fresh queue; stops them all at teardown."""
    from filedrop.pipeline import IngestionQueue, ProcessingWorker

    workers = []

    def _make(prober=None, callback=None, **kwargs):
        queue = IngestionQueue()
        worker = ProcessingWorker(
            queue=queue,
            prober=prober or ScriptedProber(True),
            process_callback=callback or RecordingCallback(),
            **kwargs,
        )
        workers.append(worker)
        return worker, queue

    yield _make

    for worker in workers:
        worker.stop(wait=True, timeout=5.0)
