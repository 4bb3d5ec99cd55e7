"""
Pipeline type definitions and protocols.

This module defines the core types shared by the pipeline components:
- WorkerState enum: lifecycle states of the processing worker
- StabilityProber protocol: "is this file done being written?" contract
- ProcessCallback / AbandonHook: the collaborator boundaries
"""

from enum import Enum
from typing import Any, Callable, Protocol

from filedrop.errors import FiledropError


class WorkerState(Enum):
    """Lifecycle states of the processing worker."""

    UNINITIALIZED = "uninitialized"  # No thread has ever been started
    RUNNING = "running"  # Thread is processing (or about to dequeue)
    PARKED = "parked"  # Thread is waiting for work or a stop request
    STOPPING = "stopping"  # Stop requested, current item still in flight
    STOPPED = "stopped"  # Thread has exited

    @property
    def is_alive(self) -> bool:
        """True while a worker thread exists."""
        return self in (WorkerState.RUNNING, WorkerState.PARKED, WorkerState.STOPPING)


class StabilityProber(Protocol):
    """
    Protocol for stability probes.

    Expected Behavior:
    ------------------
    - Return True when no other agent is still writing the file
    - Return False when the file is still held (caller retries later)
    - Raise ProbeIOError for any other filesystem error (caller abandons)
    """

    def is_complete(self, path: str) -> bool: ...


# Processing callback: receives a stabilized path. Must not delete the file.
# Returning False (or raising) means failure; any other return is success.
ProcessCallback = Callable[[str], Any]

# Called once per abandoned file with the reason (RetryExhausted,
# ProbeIOError or CallbackFailure).
AbandonHook = Callable[[str, FiledropError], None]
