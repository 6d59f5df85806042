"""Tests for the watchdog adapter."""

from __future__ import annotations

import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from file_sync.events import ChangeKind
from file_sync.journal import EventJournal
from file_sync.watcher import FolderWatcher, JournalEventHandler


@pytest.fixture
def handler(tmp_path: Path, journal: EventJournal) -> JournalEventHandler:
    return JournalEventHandler(str(tmp_path), journal, exclude_patterns=["*.tmp", ".git/"])


def drained(journal: EventJournal) -> list[tuple[str, ChangeKind]]:
    return [(e.path, e.kind) for e in journal.drain_all()]


def handler_with(root: Path, journal: EventJournal, *patterns: str) -> JournalEventHandler:
    return JournalEventHandler(str(root), journal, exclude_patterns=list(patterns))


class TestJournalEventHandler:
    """Tests for event normalisation and filtering."""

    def test_created_file(self, tmp_path: Path, handler, journal) -> None:
        """Created files are recorded relative to the root."""
        handler.dispatch(FileCreatedEvent(str(tmp_path / "sub" / "a.txt")))

        assert drained(journal) == [("sub/a.txt", ChangeKind.CREATE)]

    def test_created_directory(self, tmp_path: Path, handler, journal) -> None:
        """Directory creation is a structural change and is kept."""
        handler.dispatch(DirCreatedEvent(str(tmp_path / "newdir")))

        assert drained(journal) == [("newdir", ChangeKind.CREATE)]

    def test_modified_and_deleted(self, tmp_path: Path, handler, journal) -> None:
        """Modify and delete map to their kinds."""
        handler.dispatch(FileModifiedEvent(str(tmp_path / "sub" / "a.txt")))
        handler.dispatch(FileDeletedEvent(str(tmp_path / "sub" / "b.txt")))

        assert drained(journal) == [
            ("sub/a.txt", ChangeKind.MODIFY),
            ("sub/b.txt", ChangeKind.DELETE),
        ]

    def test_directory_modified_ignored(self, tmp_path: Path, handler, journal) -> None:
        """Parent-directory modified noise does not reach the journal."""
        handler.dispatch(DirModifiedEvent(str(tmp_path / "sub")))

        assert drained(journal) == []

    def test_move_records_both_ends(self, tmp_path: Path, handler, journal) -> None:
        """A rename touches the old and the new path."""
        handler.dispatch(
            FileMovedEvent(str(tmp_path / "sub" / "old.txt"), str(tmp_path / "sub" / "new.txt"))
        )

        assert drained(journal) == [
            ("sub/old.txt", ChangeKind.MOVE),
            ("sub/new.txt", ChangeKind.MOVE),
        ]

    def test_excluded_name(self, tmp_path: Path, handler, journal) -> None:
        """Files matching an exclude pattern are dropped."""
        handler.dispatch(FileCreatedEvent(str(tmp_path / "sub" / "scratch.tmp")))

        assert drained(journal) == []

    def test_excluded_parent_directory(self, tmp_path: Path, handler, journal) -> None:
        """Anything under an excluded directory is dropped."""
        handler.dispatch(FileModifiedEvent(str(tmp_path / ".git" / "objects" / "ab")))

        assert drained(journal) == []

    def test_root_and_outside_paths_ignored(self, tmp_path: Path, handler, journal) -> None:
        """Events for the root itself or outside it are not recorded."""
        handler.dispatch(FileDeletedEvent(str(tmp_path)))
        handler.dispatch(FileCreatedEvent(str(tmp_path.parent / "elsewhere.txt")))

        assert drained(journal) == []


class TestExcludeRules:
    """Exclude patterns follow rsync anchoring and directory-only rules."""

    def test_anchored_pattern_only_matches_at_root(self, tmp_path: Path, journal) -> None:
        """`/build` excludes the root build directory, not sub/build."""
        handler = handler_with(tmp_path, journal, "/build")
        handler.dispatch(FileModifiedEvent(str(tmp_path / "build" / "out.o")))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "src" / "build" / "out.o")))

        assert drained(journal) == [("src/build/out.o", ChangeKind.MODIFY)]

    def test_directory_only_pattern_skips_files(self, tmp_path: Path, journal) -> None:
        """`build/` excludes a build directory but not a file named build."""
        handler = handler_with(tmp_path, journal, "build/")
        handler.dispatch(FileCreatedEvent(str(tmp_path / "sub" / "build")))
        handler.dispatch(DirCreatedEvent(str(tmp_path / "lib" / "build")))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "build" / "x")))

        assert drained(journal) == [("sub/build", ChangeKind.CREATE)]

    def test_star_does_not_cross_slash(self, tmp_path: Path, journal) -> None:
        """`/*.log` only matches logs directly under the root."""
        handler = handler_with(tmp_path, journal, "/*.log")
        handler.dispatch(FileModifiedEvent(str(tmp_path / "app.log")))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "sub" / "app.log")))

        assert drained(journal) == [("sub/app.log", ChangeKind.MODIFY)]

    def test_multi_component_pattern_matches_path_tail(self, tmp_path: Path, journal) -> None:
        """`cache/*.bin` matches at any depth, component by component."""
        handler = handler_with(tmp_path, journal, "cache/*.bin")
        handler.dispatch(FileModifiedEvent(str(tmp_path / "a" / "cache" / "x.bin")))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "a" / "cache" / "d" / "x.bin")))

        assert drained(journal) == [("a/cache/d/x.bin", ChangeKind.MODIFY)]


class TestFolderWatcher:
    """Tests for the observer wrapper."""

    def test_missing_root(self, tmp_path: Path, journal: EventJournal) -> None:
        """Starting on a missing directory fails loudly."""
        watcher = FolderWatcher(str(tmp_path / "missing"), journal)

        with pytest.raises(FileNotFoundError):
            watcher.start()
        assert watcher.is_running is False

    def test_real_changes_reach_journal(self, tmp_path: Path, journal: EventJournal) -> None:
        """A file written under the root shows up as a relative path."""
        (tmp_path / "sub").mkdir()
        watcher = FolderWatcher(str(tmp_path), journal)
        watcher.start()
        try:
            assert watcher.is_running is True
            (tmp_path / "sub" / "note.txt").write_text("hi")

            seen: set[str] = set()
            deadline = time.monotonic() + 5
            while "sub/note.txt" not in seen and time.monotonic() < deadline:
                seen.update(e.path for e in journal.drain_all())
                time.sleep(0.05)
        finally:
            watcher.stop()

        assert "sub/note.txt" in seen
        assert watcher.is_running is False
