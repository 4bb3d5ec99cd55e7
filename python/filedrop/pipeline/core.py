"""
Ingestion pipeline: watchdog observer + queue + worker, owned together.

This module provides the IngestionPipeline class, the start/stop surface
of filedrop. It holds every moving part as an instance field; there is no
process-wide state, so several pipelines can run side by side.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from watchdog.observers import Observer

from filedrop.config import PipelineConfig
from filedrop.errors import PipelineStartupError
from filedrop.pipeline.handlers import IngestionEventHandler
from filedrop.pipeline.prober import create_prober
from filedrop.pipeline.queue import IngestionQueue
from filedrop.pipeline.types import (
    AbandonHook,
    ProcessCallback,
    StabilityProber,
    WorkerState,
)
from filedrop.pipeline.worker import ProcessingWorker, WorkerStats

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """
    Watches a directory and processes each new file once it is fully written.

    Constructor Args:
    -----------------
    config: PipelineConfig (watched directory, pattern, retry budget, ...)
    process_callback: Called with each stable file path; must not delete it.
        Return False or raise to signal failure (the file is then kept).
    prober: Optional StabilityProber (default: built from config.prober)
    on_abandoned: Optional hook called with (path, error) for abandoned files

    Example Usage:
    --------------
    >>> def handle(path):
    ...     shutil.copy(path, "/archive")
    ...
    >>> config = PipelineConfig(watch_dir=Path("/incoming"), pattern="*.csv")
    >>> with IngestionPipeline(config, handle) as pipeline:
    ...     ...  # runs in background
    """

    def __init__(
        self,
        config: PipelineConfig,
        process_callback: ProcessCallback,
        prober: Optional[StabilityProber] = None,
        on_abandoned: Optional[AbandonHook] = None,
    ) -> None:
        config.validate()
        self._config = config
        self._prober = prober or create_prober(config.prober, config.settle_seconds)
        self._queue = IngestionQueue()
        self._worker = ProcessingWorker(
            queue=self._queue,
            prober=self._prober,
            process_callback=process_callback,
            max_attempts=config.max_attempts,
            retry_delay=config.retry_delay,
            on_abandoned=on_abandoned,
        )
        self._root: Optional[Path] = None
        self._handler: Optional[IngestionEventHandler] = None
        self._observer = None

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def worker_state(self) -> WorkerState:
        return self._worker.state

    @property
    def stats(self) -> WorkerStats:
        return self._worker.stats

    @property
    def root(self) -> Optional[Path]:
        """Resolved watched directory (None until started)."""
        return self._root

    def start(self) -> None:
        """
        Start watching and make sure the worker is running.

        Creates the watched directory if it doesn't exist. Calling start()
        while already running is a no-op.

        Raises:
        -------
        PipelineStartupError: If the directory can't be created or watched
        """
        if self.is_running():
            return

        root = Path(self._config.watch_dir).expanduser()
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PipelineStartupError(f"Cannot create watched directory {root}: {e}") from e
        if not root.is_dir():
            raise PipelineStartupError(f"Watched path is not a directory: {root}")
        root = root.resolve()

        handler = IngestionEventHandler(
            root=str(root),
            submit=self._worker.submit,
            pattern=self._config.pattern,
            recursive=self._config.recursive,
            ignore_temporary=self._config.ignore_temporary,
        )

        observer = Observer()
        try:
            observer.schedule(handler, str(root), recursive=self._config.recursive)
            observer.start()
        except OSError as e:
            raise PipelineStartupError(f"Cannot watch {root}: {e}") from e

        self._root = root
        self._handler = handler
        self._observer = observer
        self._worker.ensure_running()

        logger.info(
            f"Watching {root} for '{self._config.pattern}'"
            f"{' (recursive)' if self._config.recursive else ''}"
        )

        if self._config.process_existing:
            self._enqueue_existing()

    def _enqueue_existing(self) -> None:
        """Enqueue matching files that were already present, oldest first."""
        walker = self._root.rglob("*") if self._config.recursive else self._root.iterdir()
        existing = []
        for path in walker:
            try:
                if path.is_file() and self._handler.matches(str(path)):
                    existing.append((path.stat().st_mtime, str(path)))
            except OSError as e:
                logger.warning(f"Skipping {path}: {e}")

        for _, path in sorted(existing):
            self._worker.submit(path)

        if existing:
            logger.info(f"Enqueued {len(existing)} pre-existing file(s)")

    def stop(self, drain: bool = False, timeout: Optional[float] = None) -> None:
        """
        Stop watching, then stop the worker.

        The file in flight always finishes. With drain=True, files already
        queued are processed before the worker halts; otherwise they stay
        queued until the next enqueue restarts the worker.
        Safe to call if not running (no-op).
        """
        if self._observer is not None:
            logger.info(f"Stopping watcher for {self._root}")
            self._observer.stop()
            self._observer.join()
            self._observer = None
            self._handler = None

        self._worker.stop(wait=True, timeout=timeout, drain=drain)

    def is_running(self) -> bool:
        """Check if the directory is currently being watched."""
        return self._observer is not None and self._observer.is_alive()

    def enqueue(self, path: str | os.PathLike) -> None:
        """Submit a file by hand (same path as a watch notification)."""
        self._worker.submit(os.path.abspath(os.fspath(path)))

    def pending(self) -> list[str]:
        """Paths waiting in the queue, oldest first."""
        return self._queue.snapshot()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is empty and no file is in flight."""
        return self._worker.wait_idle(timeout)

    def __enter__(self) -> "IngestionPipeline":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
