"""Unbuffered, closeable handoff queue connecting the pipeline stages."""

import threading
import time
from typing import Any, Iterator, Optional

from .exceptions import PipelineCancelled, QueueClosedError, QueueTimeout


POLL_INTERVAL = 0.05

_EMPTY = object()


class HandoffQueue:
    """
    Synchronous handoff between one producer and one consumer thread.

    A put only completes once a consumer is waiting in get, so a busy
    consumer slows its producer down. Every blocking call re-checks the
    caller's stop event at least every poll_interval seconds.

    Several queues may share one condition so that a thread can wait for
    readiness on any of them at once (see wait_until).
    """

    def __init__(
        self,
        name: str,
        condition: Optional[threading.Condition] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        """
        Initialize the queue.

        Args:
            name: Name used in log and error messages
            condition: Condition shared with sibling queues
            poll_interval: Seconds between stop event checks
        """
        self.name = name
        self.condition = condition or threading.Condition()
        self.poll_interval = poll_interval
        self._item: Any = _EMPTY
        self._senders = 0
        self._receivers = 0
        self._closed = False

    def _can_deposit(self) -> bool:
        return self._item is _EMPTY and self._receivers > 0

    def put(self, item: Any, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Hand an item to the consumer, blocking until it is accepted.

        Args:
            item: Item to hand over
            stop_event: Event that cancels the wait

        Returns:
            True if the item was handed over, False if cancelled

        Raises:
            QueueClosedError: If the queue is closed
        """
        with self.condition:
            self._senders += 1
            self.condition.notify_all()
            try:
                while not self._can_deposit():
                    if self._closed:
                        raise QueueClosedError(f"{self.name} queue is closed")
                    if stop_event is not None and stop_event.is_set():
                        return False
                    self.condition.wait(self.poll_interval)
                self._item = item
                self.condition.notify_all()
                return True
            finally:
                self._senders -= 1

    def try_put(self, item: Any) -> bool:
        """
        Hand an item over only if a consumer is waiting right now.

        Returns:
            True if the item was handed over
        """
        with self.condition:
            if self._closed:
                raise QueueClosedError(f"{self.name} queue is closed")
            if not self._can_deposit():
                return False
            self._item = item
            self.condition.notify_all()
            return True

    def get(
        self,
        stop_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Receive the next item.

        Args:
            stop_event: Event that cancels the wait
            timeout: Maximum seconds to wait, None to wait forever

        Returns:
            The received item

        Raises:
            PipelineCancelled: If the stop event is set first
            QueueTimeout: If the timeout expires first
            QueueClosedError: If the queue is closed and empty
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self.condition:
            self._receivers += 1
            self.condition.notify_all()
            try:
                while self._item is _EMPTY:
                    if self._closed:
                        raise QueueClosedError(f"{self.name} queue is closed")
                    if stop_event is not None and stop_event.is_set():
                        raise PipelineCancelled(f"cancelled while waiting on {self.name}")
                    wait = self.poll_interval
                    if deadline is not None:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            raise QueueTimeout(f"no item on {self.name} within {timeout}s")
                        wait = min(wait, remaining)
                    self.condition.wait(wait)
                item, self._item = self._item, _EMPTY
                self.condition.notify_all()
                return item
            finally:
                self._receivers -= 1

    def close(self) -> None:
        """Close the queue; consumers stop once the pending item is taken."""
        with self.condition:
            self._closed = True
            self.condition.notify_all()

    def has_waiting_sender(self) -> bool:
        """Check if a producer is blocked in put."""
        with self.condition:
            return self._senders > 0

    def has_waiting_receiver(self) -> bool:
        """Check if a consumer is blocked in get with nothing handed over yet."""
        with self.condition:
            return self._can_deposit()

    @property
    def closed(self) -> bool:
        with self.condition:
            return self._closed

    def wait_until(self, predicate, timeout: float) -> bool:
        """
        Wait on the shared condition until predicate() holds or timeout.

        Returns:
            The last value of predicate()
        """
        with self.condition:
            return self.condition.wait_for(predicate, timeout=timeout)

    def __iter__(self) -> Iterator[Any]:
        """Yield items until the queue is closed."""
        while True:
            try:
                yield self.get()
            except QueueClosedError:
                return
