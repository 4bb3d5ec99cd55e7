"""
Asynchronous ingestion pipeline for drop folders.

Data flow:
----------
    watchdog observer thread
        -> IngestionEventHandler (filter + enqueue, never blocks)
        -> IngestionQueue (thread-safe FIFO + wake signal)
        -> ProcessingWorker (single thread)
            -> StabilityProber, up to max_attempts with retry_delay between
            -> process_callback(path)
            -> delete file

Typical usage:
--------------
    from pathlib import Path
    from filedrop import IngestionPipeline, PipelineConfig

    def handle(path: str) -> None:
        print(open(path).read())

    pipeline = IngestionPipeline(
        PipelineConfig(watch_dir=Path("/incoming"), pattern="*.txt"),
        process_callback=handle,
    )
    pipeline.start()
    # ... files dropped into /incoming are handled and removed ...
    pipeline.stop()

ERROR CONDITIONS SUMMARY
========================

1. STARTUP ERRORS (fatal, raised from start()):
   - Watched directory can't be created → PipelineStartupError
   - Watched path exists but is a file → PipelineStartupError
   - OS watch can't be established → PipelineStartupError

2. PER-FILE ERRORS (reported, file abandoned, worker keeps going):
   - Still locked after max_attempts probes → RetryExhausted (WARNING)
   - File missing / permission denied while probing → ProbeIOError (ERROR, no retry)
   - Callback raises or returns False → CallbackFailure (ERROR, file kept)
   - Delete fails after successful processing → logged (ERROR)

3. KNOWN LIMITATIONS:
   - The OS notification buffer can overflow under extreme bursts and drop
     events before they reach the handler. This is not detectable here and
     nothing is replayed (not a durable queue).
   - A hanging callback stalls the whole pipeline (no callback timeout).
   - The lock prober only sees writers that hold a conflicting lock.

ORDERING
========
Files are attempted in the order their events arrived, one at a time. An
earlier file is fully resolved (processed or abandoned) before the next one
is probed. Duplicate events for the same path are processed twice.
"""

from filedrop.pipeline.core import IngestionPipeline
from filedrop.pipeline.handlers import IngestionEventHandler
from filedrop.pipeline.prober import ExclusiveLockProber, SizeStabilityProber, create_prober
from filedrop.pipeline.queue import IngestionQueue
from filedrop.pipeline.types import StabilityProber, WorkerState
from filedrop.pipeline.worker import ProcessingWorker, WorkerStats

__all__ = [
    "ExclusiveLockProber",
    "IngestionEventHandler",
    "IngestionPipeline",
    "IngestionQueue",
    "ProcessingWorker",
    "SizeStabilityProber",
    "StabilityProber",
    "WorkerState",
    "WorkerStats",
    "create_prober",
]
