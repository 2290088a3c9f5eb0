"""First pipeline stage: raw notifications to classified work items."""

import logging
import queue
import threading
from pathlib import Path
from typing import Optional, Pattern, Sequence

from .fs_watcher import Notifier
from .models import EventType, NodeType, RawFSEvent, WorkItem
from .paths import classify, is_excluded
from .queue import POLL_INTERVAL, HandoffQueue

logger = logging.getLogger(__name__)


class EventWatcher:
    """
    Consumes the notifier's event stream and produces WorkItems.

    Directories created inside the tree are watched as soon as their
    creation is seen; deleted or renamed directories lose their watches.
    """

    def __init__(
        self,
        notifier: Notifier,
        items: HandoffQueue,
        excludes: Sequence[Pattern],
        stop_event: threading.Event,
    ):
        self.notifier = notifier
        self.items = items
        self.excludes = list(excludes)
        self.stop_event = stop_event

    def translate(self, raw_event: RawFSEvent) -> Optional[WorkItem]:
        """
        Turn a raw event into a work item.

        Args:
            raw_event: Event from the notifier

        Returns:
            The work item, or None if the path is excluded
        """
        path = raw_event.path
        if is_excluded(path, self.excludes):
            logger.debug(f"Ignored {path}")
            if raw_event.is_create and path.is_dir():
                self._watch_new_directory(path)
            elif raw_event.event_type == EventType.DELETED:
                self._forget_directory(path)
            return None

        event_type = raw_event.event_type
        if event_type == EventType.DELETED:
            self._forget_directory(path)
            return WorkItem(path=path, event_type=EventType.DELETED)

        node_type = classify(path)
        if node_type == NodeType.DIRECTORY and raw_event.is_create:
            self._watch_new_directory(path)
        return WorkItem(path=path, node_type=node_type, event_type=EventType.MODIFIED)

    def _watch_new_directory(self, path: Path) -> None:
        added = self.notifier.add_tree(path)
        logger.info(f"Watching new directory {path} ({added} watch(es) added)")

    def _forget_directory(self, path: Path) -> None:
        removed = self.notifier.discard_tree(path)
        if removed:
            logger.debug(f"Dropped {removed} watch(es) under {path}")

    def run(self) -> None:
        """Event loop; returns once the stop event is set."""
        logger.info("EventWatcher: Starting")
        try:
            while not self.stop_event.is_set():
                try:
                    raw_event = self.notifier.events.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    continue

                # Conversion failures inside the handler; watchdog itself
                # does not report errors through this stream
                if isinstance(raw_event, Exception):
                    logger.error(f"Notifier error: {raw_event}")
                    continue

                logger.debug(f"{raw_event.op} {raw_event.path}")
                item = self.translate(raw_event)
                if item is None:
                    continue

                if not self.items.put(item, self.stop_event):
                    break
        finally:
            logger.info("EventWatcher: Shutting down")
