"""Debounced batching loop for File Sync.

Runs on its own thread.  Every tick it drains the event journal into the
batch accumulator and flushes the batch to the dispatcher when it is
full or has been quiet for ``batch_timeout`` seconds.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from file_sync.batch import BatchAccumulator
from file_sync.dispatcher import SyncDispatcher
from file_sync.journal import EventJournal

logger = logging.getLogger(__name__)


@dataclass
class LoopStats:
    """Counters kept by the sync loop for observability."""

    ticks: int = 0
    events_drained: int = 0
    flushes: int = 0
    errors: int = 0


class BatchSyncLoop:
    """Drains the journal, batches paths and dispatches flushes.

    ``clock`` must be monotonic; tests inject a fake one and call
    :meth:`tick` directly instead of starting the thread.
    """

    def __init__(
        self,
        journal: EventJournal,
        dispatcher: SyncDispatcher,
        batch_size: int = 10,
        batch_timeout: float = 2.0,
        tick_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._journal = journal
        self._dispatcher = dispatcher
        self._accumulator = BatchAccumulator(batch_size, batch_timeout)
        self._tick_interval = tick_interval
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.stats = LoopStats()

    @property
    def accumulator(self) -> BatchAccumulator:
        return self._accumulator

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ---- lifecycle ----

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="BatchSyncLoop"
        )
        self._thread.start()
        logger.info(
            "Sync loop started (batch_size=%d, batch_timeout=%.1fs, tick=%.2fs)",
            self._accumulator.batch_size,
            self._accumulator.batch_timeout,
            self._tick_interval,
        )

    def stop(self) -> None:
        """Ask the loop to exit after the current tick.  Does not block."""
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    # ---- work ----

    def tick(self, now: float | None = None) -> bool:
        """Run one drain/merge/flush cycle.  Returns True if a batch was dispatched."""
        if now is None:
            now = self._clock()
        self.stats.ticks += 1

        events = self._journal.drain_all()
        if events:
            self.stats.events_drained += len(events)
            for event in events:
                logger.debug("Event: %s %s", event.kind.value, event.path)
            added = self._accumulator.merge((e.path for e in events), now)
            logger.debug(
                "Drained %d event(s), %d new path(s), %d pending",
                len(events),
                added,
                self._accumulator.pending_count,
            )

        reason = self._accumulator.flush_reason(now)
        if reason is None:
            return False

        batch = self._accumulator.take()
        self.stats.flushes += 1
        logger.debug("Flushing %d path(s) (reason: %s)", len(batch), reason.value)
        self._dispatcher.dispatch(sorted(batch))
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                self.stats.errors += 1
                logger.exception("Error in sync loop tick")
            self._stop.wait(timeout=self._tick_interval)
        logger.info(
            "Sync loop stopped after %d flush(es), %d event(s)",
            self.stats.flushes,
            self.stats.events_drained,
        )
