"""Event journal: the handoff buffer between the watcher and the sync loop.

The watcher thread appends, the batching loop drains.  A drain swaps the
whole backlog out under the lock, so an append can never land between
"read" and "clear" and get lost.
"""

from __future__ import annotations

import logging
import os
import threading

from file_sync.events import ChangeEvent

logger = logging.getLogger(__name__)


class EventJournal:
    """Thread-safe, append-only queue of :class:`ChangeEvent` records."""

    def __init__(self, name: str | None = None) -> None:
        self._name = name or f"file_sync_events.{os.getpid()}"
        self._records: list[ChangeEvent] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def name(self) -> str:
        """Per-process journal name used in log messages."""
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, event: ChangeEvent) -> None:
        """Add one record.  Dropped silently once the journal is closed."""
        with self._lock:
            if self._closed:
                return
            self._records.append(event)

    def drain_all(self) -> list[ChangeEvent]:
        """Return every queued record, oldest first, and empty the journal."""
        with self._lock:
            if not self._records:
                return []
            drained, self._records = self._records, []
        return drained

    def close(self) -> None:
        """Discard queued records and refuse further appends."""
        with self._lock:
            if self._closed:
                return
            dropped = len(self._records)
            self._records = []
            self._closed = True
        if dropped:
            logger.info("Journal %s closed, %d unsynced event(s) dropped", self._name, dropped)
        else:
            logger.debug("Journal %s closed", self._name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return f"EventJournal(name={self._name!r}, pending={len(self)}, closed={self._closed})"
