"""Wiring of the three stages for one watched tree."""

import logging
import threading
from pathlib import Path
from typing import List

from .config import DEFAULT_KILL_DELAY_MS, WatchedDirConfig
from .event_watcher import EventWatcher
from .fs_watcher import Notifier
from .marshaller import WorkMarshaller
from .queue import HandoffQueue
from .worker import Worker

logger = logging.getLogger(__name__)


class TreePipeline:
    """
    EventWatcher -> WorkMarshaller -> Worker for a single watched tree.

    The stages share nothing but the two handoff queues, which share one
    condition so the marshaller can wait on both at once.
    """

    def __init__(
        self,
        watched_dir: WatchedDirConfig,
        scripts_dir: Path,
        stop_event: threading.Event,
        kill_delay_ms: int = DEFAULT_KILL_DELAY_MS,
    ):
        self.watched_dir = watched_dir
        self.stop_event = stop_event

        condition = threading.Condition()
        self.items = HandoffQueue("items", condition)
        self.packages = HandoffQueue("packages", condition)
        self.notifier = Notifier()

        self.event_watcher = EventWatcher(
            self.notifier, self.items, watched_dir.excludes, stop_event
        )
        self.marshaller = WorkMarshaller(
            self.items, self.packages, watched_dir.agglomeration_ms, stop_event
        )
        self.worker = Worker(self.packages, scripts_dir, stop_event, kill_delay_ms)
        self._threads: List[threading.Thread] = []

    @property
    def root(self) -> Path:
        return self.watched_dir.root

    def start(self) -> List[threading.Thread]:
        """
        Install the initial watches and start the three stage threads.

        Returns:
            The started threads

        Raises:
            WatcherStartError: If the notifier or the root watch cannot be created
            RootNotFoundError: If the root is not a directory
        """
        self.notifier.start()
        try:
            count = self.notifier.watch_root(self.root)
        except Exception:
            self.notifier.stop()
            raise
        logger.info(f"Watching {self.root} ({count} director{'y' if count == 1 else 'ies'})")

        name = str(self.root)
        self._threads = [
            threading.Thread(target=self.marshaller.run, name=f"WorkMarshaller[{name}]"),
            threading.Thread(target=self.worker.run, name=f"Worker[{name}]"),
            threading.Thread(target=self.event_watcher.run, name=f"EventWatcher[{name}]"),
        ]
        for thread in self._threads:
            thread.daemon = True
            thread.start()
        return list(self._threads)

    def join(self) -> None:
        """Wait for all stage threads, then release the notifier."""
        for thread in self._threads:
            thread.join()
        self._threads.clear()
        self.notifier.stop()

    def is_alive(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)
