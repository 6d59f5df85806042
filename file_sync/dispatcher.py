"""Sync dispatcher: turns a flushed batch into rsync invocations.

A batch is sent as one full mirror when it touches a direct child of the
watched root (often a structural change, such as a directory added or
removed) or when it holds more than ``selective_limit`` unique paths.
Otherwise each path is synced on its own, in sorted order.  A selective
batch naming a path that is gone locally (deleted or moved away) is
escalated to one full mirror, which is what propagates the removal.
"""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Union

from file_sync.rsync import SyncRunner

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when a mandatory sync (the initial mirror) fails."""


@dataclass(frozen=True)
class FullResync:
    """Mirror the whole root, deletions included."""


@dataclass(frozen=True)
class Selective:
    """Sync each listed path individually."""

    paths: tuple[str, ...]


SyncDecision = Union[FullResync, Selective]


def _normalize(path: str, root: str | None = None) -> str:
    """Return *path* relative to *root*, forward slashes, no leading ``./``."""
    if root and os.path.isabs(path):
        path = os.path.relpath(path, root)
    path = path.replace("\\", "/")
    return posixpath.normpath(path).strip("/") or "."


def is_top_level(path: str, root: str | None = None) -> bool:
    """Return True for the root itself or a direct child of it."""
    rel = _normalize(path, root)
    return rel == "." or "/" not in rel


def classify(
    paths: Iterable[str],
    selective_limit: int = 5,
    root: str | None = None,
) -> SyncDecision:
    """Decide between a full mirror and per-path syncs for *paths*."""
    unique = sorted({_normalize(p, root) for p in paths})
    if any(is_top_level(p) for p in unique):
        return FullResync()
    if len(unique) > selective_limit:
        return FullResync()
    return Selective(tuple(unique))


class SyncDispatcher:
    """Applies :func:`classify` and drives the runner for each batch."""

    def __init__(
        self,
        runner: SyncRunner,
        selective_limit: int = 5,
        root: str | None = None,
    ) -> None:
        self._runner = runner
        self._selective_limit = selective_limit
        self._root = root

    def initial_sync(self) -> None:
        """Mirror the whole root once; raise :class:`SyncError` on failure."""
        logger.info("Starting initial full sync…")
        rec = self._runner.sync()
        if not rec.success:
            raise SyncError(f"Initial sync failed: {rec.error or 'unknown error'}")

    def dispatch(self, paths: Iterable[str]) -> SyncDecision | None:
        """Sync one flushed batch.  Returns the decision, or None if empty.

        Failures are logged and the batch is dropped; nothing is retried.
        """
        batch = list(paths)
        if not batch:
            return None
        decision = classify(batch, self._selective_limit, self._root)
        if isinstance(decision, Selective):
            vanished = self._vanished(decision.paths)
            if vanished:
                logger.info(
                    "%s no longer exists locally; mirroring full tree", vanished[0]
                )
                decision = FullResync()
        if isinstance(decision, FullResync):
            logger.info("Batch of %d path(s): full sync", len(set(batch)))
            self._run(None)
        else:
            logger.info(
                "Batch of %d path(s): selective sync", len(decision.paths)
            )
            for path in decision.paths:
                self._run(path)
        return decision

    def _vanished(self, paths: tuple[str, ...]) -> list[str]:
        # Without a root there is nothing to check against
        if not self._root:
            return []
        return [p for p in paths if not os.path.lexists(os.path.join(self._root, p))]

    def _run(self, path: str | None) -> bool:
        try:
            return self._runner.sync(path).success
        except Exception:
            logger.exception("Unexpected error syncing %s", path or "full tree")
            return False
