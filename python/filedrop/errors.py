"""
Filedrop error taxonomy.

Per-file failures (everything except PipelineStartupError) are reported and
the file is abandoned; they never stop the worker loop.
"""

from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


class FiledropError(Exception):
    """Base class for all filedrop errors."""

    pass


class TransientLockError(FiledropError):
    """Raised when a file is still held by another agent (retry later)."""

    def __init__(self, path: PathLike) -> None:
        super().__init__(f"File is still locked by a writer: {path}")
        self.path = str(path)


class RetryExhausted(FiledropError):
    """Raised when a file never stabilized within the attempt budget."""

    def __init__(self, path: PathLike, attempts: int) -> None:
        super().__init__(f"File did not stabilize after {attempts} attempt(s): {path}")
        self.path = str(path)
        self.attempts = attempts


class ProbeIOError(FiledropError):
    """Raised when probing fails for a reason retrying cannot fix."""

    def __init__(self, path: PathLike, cause: Exception) -> None:
        super().__init__(f"Cannot probe {path}: {cause}")
        self.path = str(path)
        self.cause = cause


class CallbackFailure(FiledropError):
    """Raised when the processing callback raises or reports failure."""

    def __init__(self, path: PathLike, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else " (callback returned False)"
        super().__init__(f"Processing failed for {path}{detail}")
        self.path = str(path)
        self.cause = cause


class PipelineStartupError(FiledropError):
    """Raised when the pipeline cannot be started (fatal)."""

    pass
