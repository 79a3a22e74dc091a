"""Registry of live-stream subscribers and their delivery sinks."""
from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

from .errors import DeliveryError, DuplicateSubscriberError

logger = logging.getLogger(__name__)


class Sink(Protocol):
    """Delivers serialized events to one subscriber."""

    def send(self, message: str) -> None:
        """Push one message; raise :class:`DeliveryError` on failure."""

    def close(self) -> None:
        """Release the sink; called once when the subscriber is removed."""


_CLOSED = object()


class QueueSink:
    """Sink backed by a bounded asyncio queue drained by a stream response.

    ``send`` and ``close`` may be called from any thread. Off the owning loop
    the message is handed over with ``call_soon_threadsafe``; if the queue has
    filled up by the time it lands, the sink closes itself.
    """

    def __init__(self, max_queue_size: int = 100, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(max_queue_size)
        self._loop = loop or asyncio.get_running_loop()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def max_queue_size(self) -> int:
        return self._queue.maxsize

    def send(self, message: str) -> None:
        if self._closed:
            raise DeliveryError("sink is closed")
        if self._queue.full():
            raise DeliveryError("subscriber queue is full")
        if _running_loop() is self._loop:
            self._queue.put_nowait(message)
            return
        try:
            self._loop.call_soon_threadsafe(self._deliver, message)
        except RuntimeError as exc:
            raise DeliveryError("subscriber loop is closed") from exc

    def _deliver(self, message: str) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Subscriber queue filled up; closing stream")
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._push_sentinel)

    def _push_sentinel(self) -> None:
        # Pending messages are dropped if the queue has no room left.
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()

    async def messages(self) -> AsyncIterator[str]:
        """Yield queued messages until the sink is closed."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]


@dataclass(slots=True, eq=False)
class Subscription:
    """Handle for one registered subscriber."""

    id: str
    sink: Sink
    done: threading.Event = field(default_factory=threading.Event)
    reason: str | None = None

    @property
    def closed(self) -> bool:
        return self.done.is_set()


class SubscriberRegistry:
    """Thread-safe map of subscriber id to :class:`Subscription`."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

    def new_id(self) -> str:
        return f"client_{time.time_ns()}_{next(self._sequence)}"

    def register(self, subscriber_id: str, sink: Sink) -> Subscription:
        subscription = Subscription(subscriber_id, sink)
        with self._lock:
            if subscriber_id in self._subscriptions:
                logger.error("Rejected duplicate subscriber %s", subscriber_id)
                raise DuplicateSubscriberError(subscriber_id)
            self._subscriptions[subscriber_id] = subscription
            total = len(self._subscriptions)
        logger.info("Subscriber %s connected (%d active)", subscriber_id, total)
        return subscription

    def unregister(self, subscriber_id: str, *, reason: str = "disconnect") -> bool:
        """Remove a subscriber; returns False if it was not registered."""
        with self._lock:
            subscription = self._subscriptions.pop(subscriber_id, None)
            total = len(self._subscriptions)
        if subscription is None:
            return False
        subscription.reason = reason
        subscription.done.set()
        try:
            subscription.sink.close()
        except Exception:
            logger.exception("Failed to close sink for subscriber %s", subscriber_id)
        logger.info("Subscriber %s removed: %s (%d active)", subscriber_id, reason, total)
        return True

    def snapshot(self) -> dict[str, Subscription]:
        with self._lock:
            return dict(self._subscriptions)

    def __contains__(self, subscriber_id: object) -> bool:
        with self._lock:
            return subscriber_id in self._subscriptions

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
