"""File system watcher for File Sync.

Uses the watchdog library to monitor the local root recursively and
appends every relevant change, as a root-relative path, to the event
journal consumed by the sync loop.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import time
from typing import Any

from watchdog.events import (
    DirModifiedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from file_sync.events import ChangeEvent, ChangeKind
from file_sync.journal import EventJournal

logger = logging.getLogger(__name__)


class JournalEventHandler(FileSystemEventHandler):
    """Watchdog handler that feeds changes into an :class:`EventJournal`."""

    def __init__(
        self,
        root: str,
        journal: EventJournal,
        exclude_patterns: list[str] | None = None,
    ):
        """Initialise the handler with optional exclude filters."""
        super().__init__()
        self._root = os.path.abspath(root)
        self._journal = journal
        self._exclude_patterns = [
            (p, tuple(p.strip("/").split("/")), p.startswith("/"), p.endswith("/"))
            for p in (exclude_patterns or [])
            if p.strip("/")
        ]

    def _relative(self, raw_path: str | bytes) -> str | None:
        """Return *raw_path* relative to the root, or None if outside it."""
        path = os.path.abspath(os.fsdecode(raw_path))
        rel = os.path.relpath(path, self._root)
        if rel == "." or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return None
        return rel.replace(os.sep, "/")

    def _is_excluded(self, rel: str, is_directory: bool = False) -> bool:
        """Apply the exclude patterns the way rsync reads them.

        A leading ``/`` anchors a pattern at the root, a trailing ``/``
        matches directories only, and ``*`` does not cross ``/``.  A
        pattern excludes an entry when it matches the entry or any of its
        parent directories.  ``**`` is not supported.
        """
        parts = rel.split("/")
        for pattern, body, anchored, dir_only in self._exclude_patterns:
            for depth in range(1, len(parts) + 1):
                if dir_only and depth == len(parts) and not is_directory:
                    continue
                if _pattern_matches(parts[:depth], body, anchored):
                    logger.debug("Excluding %s (matches %s)", rel, pattern)
                    return True
        return False

    def _record(self, raw_path: str | bytes, kind: ChangeKind, is_directory: bool) -> None:
        rel = self._relative(raw_path)
        if rel is None or self._is_excluded(rel, is_directory):
            return
        self._journal.append(ChangeEvent(rel, kind, time.time()))

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a file or directory creation."""
        self._record(event.src_path, ChangeKind.CREATE, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a file modification."""
        # Parent directories report "modified" for every child change
        if isinstance(event, DirModifiedEvent):
            return
        self._record(event.src_path, ChangeKind.MODIFY, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a file or directory deletion."""
        self._record(event.src_path, ChangeKind.DELETE, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a rename; both ends of the move are recorded."""
        self._record(event.src_path, ChangeKind.MOVE, event.is_directory)
        self._record(event.dest_path, ChangeKind.MOVE, event.is_directory)


def _pattern_matches(parts: list[str], body: tuple[str, ...], anchored: bool) -> bool:
    # Unanchored patterns match the trailing components, anchored ones the whole path
    if len(parts) < len(body) or (anchored and len(parts) != len(body)):
        return False
    tail = parts[len(parts) - len(body):]
    return all(fnmatch.fnmatchcase(part, pat) for part, pat in zip(tail, body))


class FolderWatcher:
    """Recursive watchdog observer bound to one root and one journal.

    Usage:
        watcher = FolderWatcher(root, journal, exclude_patterns=["*.tmp"])
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        root: str,
        journal: EventJournal,
        exclude_patterns: list[str] | None = None,
    ):
        """Create a new folder watcher."""
        self.root = os.path.abspath(root)
        self._handler = JournalEventHandler(self.root, journal, exclude_patterns)
        self._observer: Any | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the root folder."""
        if not os.path.isdir(self.root):
            logger.error("Local folder does not exist: %s", self.root)
            raise FileNotFoundError(f"Local folder does not exist: {self.root}")

        observer = Observer()
        observer.schedule(self._handler, self.root, recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching '%s' (recursive)", self.root)

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()
