"""File system notifications using the watchdog library."""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)

from .exceptions import RootNotFoundError, WatcherStartError
from .models import Op, RawFSEvent

logger = logging.getLogger(__name__)


class FSEventHandler(FileSystemEventHandler):
    """
    Handler that converts watchdog events to RawFSEvent.

    One handler serves one watch. watchdog follows every created, deleted,
    moved or written-and-closed entry with a modification of its parent
    directory; that companion event is dropped, while any other directory
    modification (chmod, touch) is reported as a write.

    Exceptions raised while converting an event are passed to the callback
    instead of escaping into the observer thread.
    """

    def __init__(self, callback: Callable[[Union[RawFSEvent, Exception]], None]):
        super().__init__()
        self.callback = callback
        self._expected_parents: List[str] = []

    def _emit(self, path: Union[str, bytes], op: Op) -> None:
        self.callback(RawFSEvent(path=Path(os.fsdecode(path)), op=op, timestamp=time.time()))

    def _expect_parent_of(self, *paths: Union[str, bytes]) -> None:
        self._expected_parents = [os.path.dirname(os.fsdecode(p)) for p in paths]

    def _on_directory_modified(self, path: str) -> None:
        if path in self._expected_parents:
            self._expected_parents.remove(path)
            return
        self._emit(path, Op.WRITE)

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            if event.event_type == EVENT_TYPE_MODIFIED and event.is_directory:
                self._on_directory_modified(os.fsdecode(event.src_path))
                return

            self._expected_parents = []
            if event.event_type == EVENT_TYPE_CREATED:
                self._emit(event.src_path, Op.CREATE)
                self._expect_parent_of(event.src_path)
            elif event.event_type == EVENT_TYPE_MODIFIED:
                self._emit(event.src_path, Op.WRITE)
            elif event.event_type == EVENT_TYPE_DELETED:
                self._emit(event.src_path, Op.REMOVE)
                self._expect_parent_of(event.src_path)
            elif event.event_type == EVENT_TYPE_MOVED:
                self._emit(event.src_path, Op.RENAME)
                self._emit(event.dest_path, Op.CREATE)
                self._expect_parent_of(event.src_path, event.dest_path)
            elif event.event_type == EVENT_TYPE_CLOSED:
                self._expect_parent_of(event.src_path)
        except Exception as e:
            self.callback(e)


class Notifier:
    """
    Per-directory, non-recursive watches over one tree.

    Every directory of the tree is watched, excluded or not; exclusion
    applies to event paths only. Events and handler errors are delivered
    through the unbounded `events` queue. Only the owning EventWatcher
    thread adds or discards watches once the tree is running.
    """

    def __init__(self):
        self.events: "queue.Queue[Union[RawFSEvent, Exception]]" = queue.Queue()
        self._observer: Optional[Observer] = None
        self._watches: Dict[Path, ObservedWatch] = {}
        self._lock = threading.Lock()

    def start(self) -> None:
        """
        Create the OS notification handle.

        Raises:
            WatcherStartError: If the observer cannot be started
        """
        observer = Observer()
        try:
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatcherStartError(f"Cannot create file system watcher: {e}") from e
        self._observer = observer

    def add(self, directory: Path) -> bool:
        """
        Watch a single directory, non-recursively.

        Args:
            directory: Directory to watch

        Returns:
            True if a new watch was installed, False if already watched

        Raises:
            OSError: If the watch cannot be installed
        """
        if self._observer is None:
            raise WatcherStartError("Notifier is not started")

        with self._lock:
            if directory in self._watches:
                return False
            handler = FSEventHandler(self.events.put)
            watch = self._observer.schedule(handler, str(directory), recursive=False)
            self._watches[directory] = watch
            return True

    def add_tree(self, root: Path) -> int:
        """
        Watch a directory and every existing subdirectory beneath it.

        Subdirectories that cannot be watched are logged and skipped.

        Args:
            root: Top of the subtree

        Returns:
            Number of watches installed
        """
        count = 0

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Cannot list {error.filename}: {error}")

        for dirpath, _, _ in os.walk(root, onerror=on_walk_error):
            directory = Path(dirpath)
            try:
                if self.add(directory):
                    count += 1
            except OSError as e:
                logger.warning(f"Cannot watch {directory}: {e}")

        return count

    def watch_root(self, root: Path) -> int:
        """
        Install the initial watches of a tree.

        Raises:
            RootNotFoundError: If root is not a directory
            WatcherStartError: If root itself cannot be watched
        """
        if not root.is_dir():
            raise RootNotFoundError(f"Watched root is not a directory: {root}")
        try:
            self.add(root)
        except OSError as e:
            raise WatcherStartError(f"Cannot watch root {root}: {e}") from e
        return 1 + self.add_tree(root)

    def discard_tree(self, path: Path) -> int:
        """
        Drop the watches on a removed directory and on everything below it.

        Args:
            path: Path that was deleted or renamed away

        Returns:
            Number of watches removed
        """
        if self._observer is None:
            return 0

        with self._lock:
            stale = [d for d in self._watches if d == path or path in d.parents]
            for directory in stale:
                watch = self._watches.pop(directory)
                try:
                    self._observer.unschedule(watch)
                except (KeyError, OSError) as e:
                    logger.debug(f"Unscheduling {directory} failed: {e}")
            return len(stale)

    def is_watching(self, directory: Path) -> bool:
        with self._lock:
            return directory in self._watches

    def get_watched_dirs(self) -> list:
        with self._lock:
            return list(self._watches.keys())

    def stop(self) -> None:
        """Stop the observer and drop all watches."""
        with self._lock:
            observer, self._observer = self._observer, None
            self._watches.clear()

        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)

    def __len__(self) -> int:
        """Return the number of active watches."""
        with self._lock:
            return len(self._watches)
