"""Shared fixtures for the File Sync test suite."""

from __future__ import annotations

import pytest

from file_sync.events import ChangeEvent, ChangeKind
from file_sync.journal import EventJournal
from file_sync.rsync import SyncRecord


class FakeRunner:
    """Records sync calls instead of running rsync."""

    def __init__(
        self,
        connected: bool = True,
        fail_paths: tuple[str | None, ...] = (),
        raise_paths: tuple[str | None, ...] = (),
    ) -> None:
        self.connected = connected
        self.fail_paths = set(fail_paths)
        self.raise_paths = set(raise_paths)
        self.calls: list[str | None] = []
        self.connection_checks = 0

    def check_connection(self) -> bool:
        self.connection_checks += 1
        return self.connected

    def sync(self, path: str | None = None) -> SyncRecord:
        self.calls.append(path)
        if path in self.raise_paths:
            raise RuntimeError(f"runner exploded on {path}")
        ok = path not in self.fail_paths
        return SyncRecord(
            path=path,
            success=ok,
            full_mirror=path is None,
            error="" if ok else "connection refused",
        )


def feed(journal: EventJournal, *paths: str, kind: ChangeKind = ChangeKind.MODIFY) -> None:
    """Append one event per path to *journal*."""
    for path in paths:
        journal.append(ChangeEvent(path, kind))


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def journal() -> EventJournal:
    return EventJournal(name="test-journal")
