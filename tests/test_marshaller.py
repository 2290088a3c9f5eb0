"""Tests for marshaller module."""

import threading
import time
from pathlib import Path

import pytest

from syncwatch.marshaller import WorkMarshaller, append_work_item
from syncwatch.models import EventType, NodeType, WorkItem, WorkPackage
from syncwatch.queue import HandoffQueue

from conftest import wait_for


def modified(path, node_type=NodeType.FILE):
    return WorkItem(Path(path), node_type, EventType.MODIFIED)


def deleted(path):
    return WorkItem(Path(path), event_type=EventType.DELETED)


class TestAppendWorkItem:
    """Tests for append_work_item function."""

    def test_append_to_empty(self):
        batch = append_work_item([], modified("R/a"))
        assert batch == [modified("R/a")]

    def test_duplicate_dropped(self):
        batch = [modified("R/a"), modified("R/b")]
        append_work_item(batch, modified("R/a"))
        assert batch == [modified("R/a"), modified("R/b")]

    def test_same_path_different_node_type_appended(self):
        batch = [modified("R/a", NodeType.FILE)]
        append_work_item(batch, modified("R/a", NodeType.UNKNOWN))
        assert len(batch) == 2

    def test_delete_replaces_modify_in_place(self):
        batch = [modified("R/a"), modified("R/b")]
        append_work_item(batch, deleted("R/a"))
        assert batch == [deleted("R/a"), modified("R/b")]

    def test_modify_after_delete_appended(self):
        batch = [deleted("R/a")]
        append_work_item(batch, modified("R/a"))
        assert batch == [deleted("R/a"), modified("R/a")]

    def test_newest_entry_is_replaced(self):
        batch = [modified("R/a"), deleted("R/a"), modified("R/a", NodeType.UNKNOWN)]
        append_work_item(batch, deleted("R/a"))
        assert batch == [modified("R/a"), deleted("R/a"), deleted("R/a")]

    def test_newest_duplicate_wins_over_older_modify(self):
        batch = [modified("R/a"), deleted("R/a")]
        append_work_item(batch, deleted("R/a"))
        assert batch == [modified("R/a"), deleted("R/a")]

    def test_no_exact_duplicates(self):
        batch = []
        for item in [modified("R/a"), modified("R/b"), modified("R/a"), deleted("R/b"), deleted("R/b")]:
            append_work_item(batch, item)
        assert len(batch) == len(set(batch))
        assert batch == [modified("R/a"), deleted("R/b")]

    def test_returns_same_list(self):
        batch = []
        assert append_work_item(batch, modified("R/a")) is batch


class MarshallerHarness:
    """Runs a WorkMarshaller in a thread with a controllable consumer."""

    def __init__(self, agglomeration_ms):
        condition = threading.Condition()
        self.items = HandoffQueue("items", condition, poll_interval=0.01)
        self.packages = HandoffQueue("packages", condition, poll_interval=0.01)
        self.stop_event = threading.Event()
        self.marshaller = WorkMarshaller(self.items, self.packages, agglomeration_ms, self.stop_event)
        self.thread = threading.Thread(target=self.marshaller.run, daemon=True)
        self.thread.start()

    def send(self, *items):
        for item in items:
            assert self.items.put(item, self.stop_event)

    def receive(self, timeout=2.0) -> WorkPackage:
        return self.packages.get(timeout=timeout)

    def stop(self):
        self.stop_event.set()
        self.thread.join(timeout=2.0)


class TestWorkMarshaller:
    """Tests for WorkMarshaller class."""

    def test_burst_agglomerated(self):
        harness = MarshallerHarness(agglomeration_ms=100)
        try:
            harness.send(modified("R/a.txt"), modified("R/a.txt"), modified("R/a.txt"))
            package = harness.receive()
            assert list(package) == [modified("R/a.txt")]
        finally:
            harness.stop()

    def test_distinct_items_in_one_package(self):
        harness = MarshallerHarness(agglomeration_ms=100)
        try:
            harness.send(modified("R/x/a"), modified("R/x/b"), modified("R/y/c"))
            package = harness.receive()
            assert package.paths == [Path("R/x/a"), Path("R/x/b"), Path("R/y/c")]
        finally:
            harness.stop()

    def test_delete_subsumes_modify(self):
        harness = MarshallerHarness(agglomeration_ms=100)
        try:
            harness.send(modified("R/a.txt"), deleted("R/a.txt"))
            package = harness.receive()
            assert list(package) == [deleted("R/a.txt")]
        finally:
            harness.stop()

    def test_waits_for_window_while_items_arrive(self):
        harness = MarshallerHarness(agglomeration_ms=150)
        try:
            started = time.monotonic()
            harness.send(modified("R/a"))
            time.sleep(0.05)
            harness.send(modified("R/b"))
            package = harness.receive()
            assert time.monotonic() - started >= 0.15
            assert len(package) == 2
        finally:
            harness.stop()

    def test_zero_window_flushes_each_item(self):
        harness = MarshallerHarness(agglomeration_ms=0)
        try:
            harness.send(modified("R/a"))
            assert list(harness.receive()) == [modified("R/a")]
            harness.send(modified("R/b"))
            assert list(harness.receive()) == [modified("R/b")]
        finally:
            harness.stop()

    def test_busy_consumer_keeps_collecting(self):
        harness = MarshallerHarness(agglomeration_ms=10)
        try:
            harness.send(modified("R/a"))
            time.sleep(0.1)
            harness.send(modified("R/b"))
            time.sleep(0.1)
            package = harness.receive()
            assert package.paths == [Path("R/a"), Path("R/b")]
        finally:
            harness.stop()

    def test_flushed_batch_not_shared(self):
        harness = MarshallerHarness(agglomeration_ms=0)
        try:
            harness.send(modified("R/a"))
            first = harness.receive()
            first.items.append(modified("R/intruder"))

            harness.send(modified("R/b"))
            second = harness.receive()
            assert list(second) == [modified("R/b")]
            assert second.items is not first.items
        finally:
            harness.stop()

    def test_stop_closes_packages(self):
        harness = MarshallerHarness(agglomeration_ms=1000)
        harness.send(modified("R/a"))
        harness.stop()

        assert not harness.thread.is_alive()
        assert harness.packages.closed

    def test_stop_when_idle(self):
        harness = MarshallerHarness(agglomeration_ms=10)
        time.sleep(0.05)
        harness.stop()

        assert not harness.thread.is_alive()
        assert wait_for(lambda: harness.packages.closed)
