"""Batch accumulator for the debounced sync loop.

Collects the deduplicated set of changed paths between flushes and
decides when the current batch is due, either because it reached the
size threshold or because no new event arrived for ``batch_timeout``
seconds.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum

logger = logging.getLogger(__name__)


class FlushReason(str, Enum):
    """Why a batch was flushed."""

    SIZE = "size"
    TIMEOUT = "timeout"


class BatchAccumulator:
    """Deduplicated pending paths plus the time of the latest event.

    A batch holds at most ``batch_size`` unique paths.  Paths that arrive
    once it is full wait, in arrival order, in an overflow list and seed the
    next batch when :meth:`take` is called.

    Not thread-safe: owned by the sync loop thread alone.
    """

    def __init__(self, batch_size: int = 10, batch_timeout: float = 2.0) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if batch_timeout < 0:
            raise ValueError("batch_timeout must not be negative")
        self._batch_size = batch_size
        self._batch_timeout = batch_timeout
        self._pending: set[str] = set()
        # dict as an ordered set
        self._overflow: dict[str, None] = {}
        self._last_event_time = 0.0

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def batch_timeout(self) -> float:
        return self._batch_timeout

    @property
    def pending_count(self) -> int:
        """Number of unique paths in the current batch."""
        return len(self._pending)

    @property
    def overflow_count(self) -> int:
        """Number of paths waiting for the next batch."""
        return len(self._overflow)

    @property
    def pending_paths(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def last_event_time(self) -> float:
        return self._last_event_time

    def merge(self, paths: Iterable[str], now: float) -> int:
        """Add *paths* to the batch and return how many were new.

        Any non-empty input restarts the quiet-period timer, even when every
        path was already pending.
        """
        received = False
        added = 0
        for path in paths:
            received = True
            if path in self._pending or path in self._overflow:
                continue
            if len(self._pending) >= self._batch_size:
                self._overflow[path] = None
                continue
            self._pending.add(path)
            added += 1
        if received:
            self._last_event_time = now
        return added

    def flush_reason(self, now: float) -> FlushReason | None:
        """Return why the batch must flush now, or ``None`` to keep waiting."""
        if not self._pending:
            return None
        if len(self._pending) >= self._batch_size:
            return FlushReason.SIZE
        if now - self._last_event_time >= self._batch_timeout:
            return FlushReason.TIMEOUT
        return None

    def take(self) -> frozenset[str]:
        """Return the current batch and start the next one.

        The next batch is seeded from the overflow list; the quiet-period
        timer keeps the time those paths were received.
        """
        batch = frozenset(self._pending)
        self._pending = set()
        while self._overflow and len(self._pending) < self._batch_size:
            path = next(iter(self._overflow))
            del self._overflow[path]
            self._pending.add(path)
        if not self._pending:
            self._last_event_time = 0.0
        elif batch:
            logger.debug(
                "%d overflow path(s) carried into the next batch", len(self._pending)
            )
        return batch
