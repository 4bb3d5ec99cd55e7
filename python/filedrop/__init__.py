"""
filedrop - drop-folder ingestion service.

Watches a directory for new files, waits until each one is fully written,
hands it to a processing callback, then deletes it.
"""

__version__ = "0.1.0"

from filedrop.config import PipelineConfig, load_config
from filedrop.errors import (
    CallbackFailure,
    FiledropError,
    PipelineStartupError,
    ProbeIOError,
    RetryExhausted,
    TransientLockError,
)
from filedrop.pipeline import IngestionPipeline, WorkerState

__all__ = [
    "CallbackFailure",
    "FiledropError",
    "IngestionPipeline",
    "PipelineConfig",
    "PipelineStartupError",
    "ProbeIOError",
    "RetryExhausted",
    "TransientLockError",
    "WorkerState",
    "load_config",
]
