"""Second pipeline stage: deduplication and agglomeration of work items."""

import logging
import threading
import time
from typing import List, Optional

from .exceptions import PipelineCancelled, QueueTimeout
from .models import EventType, WorkItem, WorkPackage
from .queue import HandoffQueue

logger = logging.getLogger(__name__)


def append_work_item(work_items: List[WorkItem], work_item: WorkItem) -> List[WorkItem]:
    """
    Admit a work item into the current batch.

    The batch is scanned from newest to oldest:
    - an exact duplicate is dropped
    - a DELETED item replaces a MODIFIED item on the same path, in place
    - anything else is appended

    Args:
        work_items: Current batch, mutated in place
        work_item: Newly arrived item

    Returns:
        The batch
    """
    for i in range(len(work_items) - 1, -1, -1):
        item = work_items[i]
        if item == work_item:
            logger.debug(f"Ignored duplicate {work_item}")
            return work_items
        if (
            item.path == work_item.path
            and work_item.event_type == EventType.DELETED
            and item.event_type == EventType.MODIFIED
        ):
            logger.debug(f"\"modified\" replaced with \"deleted\" for {work_item.path}")
            work_items[i] = work_item
            return work_items

    logger.debug(f"Appended new work item {work_item}")
    work_items.append(work_item)
    return work_items


class WorkMarshaller:
    """
    Coalesces work items into packages.

    A batch is flushed once no new item arrived for the agglomeration
    window, or earlier whenever the Worker is idle and no timer is pending.
    A pending batch is discarded on shutdown.
    """

    def __init__(
        self,
        items: HandoffQueue,
        packages: HandoffQueue,
        agglomeration_ms: int,
        stop_event: threading.Event,
    ):
        """
        Initialize the marshaller.

        Args:
            items: Queue fed by the EventWatcher
            packages: Queue consumed by the Worker
            agglomeration_ms: Debounce window in milliseconds
            stop_event: Supervision stop event
        """
        self.items = items
        self.packages = packages
        self.agglomeration_ms = agglomeration_ms
        self.stop_event = stop_event
        self._batch: List[WorkItem] = []
        self._deadline: Optional[float] = None

    @property
    def window(self) -> float:
        return self.agglomeration_ms / 1000.0

    def _admit(self, work_item: WorkItem) -> None:
        append_work_item(self._batch, work_item)
        self._deadline = time.monotonic() + self.window

    def _try_flush(self) -> bool:
        if not self.packages.try_put(WorkPackage(items=self._batch)):
            return False
        logger.debug(f"Flushed package of {len(self._batch)} item(s)")
        self._batch = []
        return True

    def _ready_to_act(self) -> bool:
        return (
            self.stop_event.is_set()
            or self.packages.has_waiting_receiver()
            or self.items.has_waiting_sender()
        )

    def step(self) -> None:
        """
        Perform one scheduling decision.

        Raises:
            PipelineCancelled: If the stop event is set while waiting
        """
        if not self._batch:
            self._admit(self.items.get(self.stop_event))
            return

        if self._deadline is None:
            # Worker idle wins over a waiting item
            self.items.wait_until(self._ready_to_act, timeout=self.items.poll_interval)
            if self.stop_event.is_set():
                raise PipelineCancelled("marshaller stopped")
            if self._try_flush():
                return
            if self.items.has_waiting_sender():
                try:
                    self._admit(self.items.get(self.stop_event, timeout=self.items.poll_interval))
                except QueueTimeout:
                    pass
            return

        remaining = self._deadline - time.monotonic()
        try:
            self._admit(self.items.get(self.stop_event, timeout=max(remaining, 0.0)))
        except QueueTimeout:
            self._deadline = None
            self._try_flush()

    def run(self) -> None:
        """Marshaller loop; closes the packages queue on return."""
        logger.info("WorkMarshaller: Starting")
        try:
            while True:
                self.step()
        except PipelineCancelled:
            if self._batch:
                logger.info(f"Discarding {len(self._batch)} pending work item(s)")
        finally:
            self.packages.close()
            logger.info("WorkMarshaller: Shutting down")
