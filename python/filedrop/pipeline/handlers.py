"""
Watchdog event handler feeding the ingestion queue.

This runs on watchdog's observer thread. Any delay here holds up the OS
notification buffer, which drops events silently when it overflows, so the
handler only filters and enqueues: no file I/O, no blocking.
"""

import fnmatch
import logging
import os
from typing import Callable

from watchdog.events import FileCreatedEvent, FileSystemEvent, FileSystemEventHandler

logger = logging.getLogger(__name__)


def is_temporary_file(file_name: str) -> bool:
    """Check for editor and tool artefacts that are never real drops."""
    return (
        file_name.endswith(".tmp")
        or ".tmp." in file_name  # pytest-style: file.txt.tmp.12345.67890
        or file_name.endswith("~")  # Editor backup files
        or file_name.endswith(".swp")  # Vim swap
        or file_name.endswith(".swo")  # Vim swap
        or file_name.startswith(".#")  # Emacs lock files
    )


class IngestionEventHandler(FileSystemEventHandler):
    """
    Routes watchdog "file created" events into the pipeline.

    Args:
    -----
    root: Absolute path of the watched directory
    submit: Called with the absolute path of each matching new file
    pattern: Glob matched against the file name (e.g. "*.txt")
    recursive: Accept files in subdirectories of root
    ignore_temporary: Skip temporary-looking files (see is_temporary_file).
        Has no effect when the pattern itself names temporary files, so
        pattern="*.tmp" ingests .tmp files.
    """

    def __init__(
        self,
        root: str,
        submit: Callable[[str], None],
        pattern: str = "*",
        recursive: bool = False,
        ignore_temporary: bool = True,
    ) -> None:
        super().__init__()
        self._root = os.path.abspath(root)
        self._submit = submit
        self._pattern = pattern
        self._recursive = recursive
        self._skip_temporary = ignore_temporary and not is_temporary_file(pattern)

    def matches(self, path: str) -> bool:
        """Check if a path should be ingested (pure string checks)."""
        file_name = os.path.basename(path)
        if not file_name:
            return False
        if self._skip_temporary and is_temporary_file(file_name):
            return False
        if not fnmatch.fnmatch(file_name, self._pattern):
            return False
        if not self._recursive and os.path.dirname(path) != self._root:
            return False
        return True

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory or not isinstance(event, FileCreatedEvent):
            return

        path = os.fsdecode(event.src_path)
        if not os.path.isabs(path):
            path = os.path.join(self._root, path)

        if not self.matches(path):
            return

        self._submit(path)
