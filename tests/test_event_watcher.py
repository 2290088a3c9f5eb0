"""Tests for event watcher module."""

import queue
import re
import threading
from pathlib import Path

from syncwatch.event_watcher import EventWatcher
from syncwatch.models import EventType, NodeType, Op, RawFSEvent, WorkItem
from syncwatch.queue import HandoffQueue


class FakeNotifier:
    """Records watch changes and exposes a plain event queue."""

    def __init__(self):
        self.events = queue.Queue()
        self.added = []
        self.discarded = []

    def add_tree(self, root):
        self.added.append(root)
        return 1

    def discard_tree(self, path):
        self.discarded.append(path)
        return 0


def make_watcher(excludes=()):
    notifier = FakeNotifier()
    items = HandoffQueue("items", poll_interval=0.01)
    stop = threading.Event()
    watcher = EventWatcher(notifier, items, [re.compile(p) for p in excludes], stop)
    return watcher, notifier, items, stop


class TestTranslate:
    """Tests for EventWatcher.translate."""

    def test_created_file(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x")
        watcher, notifier, _, _ = make_watcher()

        item = watcher.translate(RawFSEvent(path, Op.CREATE))

        assert item == WorkItem(path, NodeType.FILE, EventType.MODIFIED)
        assert notifier.added == []

    def test_created_directory_is_watched(self, tmp_path):
        path = tmp_path / "sub"
        path.mkdir()
        watcher, notifier, _, _ = make_watcher()

        item = watcher.translate(RawFSEvent(path, Op.CREATE))

        assert item == WorkItem(path, NodeType.DIRECTORY, EventType.MODIFIED)
        assert notifier.added == [path]

    def test_written_directory_not_rewatched(self, tmp_path):
        watcher, notifier, _, _ = make_watcher()

        item = watcher.translate(RawFSEvent(tmp_path, Op.CHMOD))

        assert item.node_type == NodeType.DIRECTORY
        assert notifier.added == []

    def test_vanished_path_is_unknown(self, tmp_path):
        watcher, _, _, _ = make_watcher()

        item = watcher.translate(RawFSEvent(tmp_path / "gone", Op.WRITE))

        assert item == WorkItem(tmp_path / "gone", NodeType.UNKNOWN, EventType.MODIFIED)

    def test_removed(self, tmp_path):
        watcher, notifier, _, _ = make_watcher()

        item = watcher.translate(RawFSEvent(tmp_path / "a.txt", Op.REMOVE))

        assert item == WorkItem(tmp_path / "a.txt", NodeType.UNKNOWN, EventType.DELETED)
        assert notifier.discarded == [tmp_path / "a.txt"]

    def test_renamed_is_deleted(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x")
        watcher, _, _, _ = make_watcher()

        item = watcher.translate(RawFSEvent(path, Op.RENAME))

        assert item.event_type == EventType.DELETED
        assert item.node_type == NodeType.UNKNOWN

    def test_excluded(self):
        watcher, notifier, _, _ = make_watcher(excludes=[r"^R/a\.txt$"])

        assert watcher.translate(RawFSEvent(Path("R/a.txt"), Op.WRITE)) is None
        assert watcher.translate(RawFSEvent(Path("R/a.txt"), Op.REMOVE)) is None
        assert notifier.added == []

    def test_excluded_directory_still_watched(self, tmp_path):
        build = tmp_path / "build"
        build.mkdir()
        watcher, notifier, _, _ = make_watcher(excludes=[r"/build$"])

        assert watcher.translate(RawFSEvent(build, Op.CREATE)) is None
        assert notifier.added == [build]

        assert watcher.translate(RawFSEvent(build, Op.REMOVE)) is None
        assert notifier.discarded == [build]


class TestRun:
    """Tests for the EventWatcher loop."""

    def test_forwards_items_and_survives_errors(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x")
        watcher, notifier, items, stop = make_watcher(excludes=[r"\.swp$"])
        thread = threading.Thread(target=watcher.run, daemon=True)
        thread.start()

        notifier.events.put(OSError("queue overflow"))
        notifier.events.put(RawFSEvent(tmp_path / "a.txt.swp", Op.WRITE))
        notifier.events.put(RawFSEvent(path, Op.WRITE))
        notifier.events.put(RawFSEvent(path, Op.REMOVE))

        try:
            assert items.get(timeout=2.0) == WorkItem(path, NodeType.FILE, EventType.MODIFIED)
            assert items.get(timeout=2.0) == WorkItem(path, event_type=EventType.DELETED)
        finally:
            stop.set()
            thread.join(timeout=2.0)

        assert not thread.is_alive()

    def test_stops_while_blocked_on_send(self, tmp_path):
        watcher, notifier, _, stop = make_watcher()
        thread = threading.Thread(target=watcher.run, daemon=True)
        thread.start()

        notifier.events.put(RawFSEvent(tmp_path, Op.WRITE))
        stop.set()
        thread.join(timeout=2.0)

        assert not thread.is_alive()
