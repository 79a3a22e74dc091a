"""Fan-out of stored events to live subscribers."""
from __future__ import annotations

import asyncio
import json
import logging
import queue
import threading
from collections.abc import Callable

from .events import Event
from .subscribers import SubscriberRegistry

logger = logging.getLogger(__name__)

Transformer = Callable[[Event], Event]


class Broadcaster:
    """Pushes each new event to every registered subscriber.

    Delivery is best effort: a subscriber whose sink fails is unregistered and
    the remaining subscribers still receive the event. ``submit`` only queues
    the event. While the app lifespan runs, a task on the event loop publishes
    it; otherwise a background thread does.
    """

    def __init__(self, registry: SubscriberRegistry, *, transformer: Transformer | None = None) -> None:
        self._registry = registry
        self._transformer = transformer
        self._queue: asyncio.Queue[Event | None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._backlog: queue.SimpleQueue[Event] = queue.SimpleQueue()
        self._worker: threading.Thread | None = None
        self._idle = threading.Condition()
        self._pending = 0

    def set_transformer(self, transformer: Transformer | None) -> None:
        self._transformer = transformer

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def publish(self, event: Event) -> int:
        """Deliver ``event`` to a snapshot of subscribers; returns deliveries."""
        message = self._encode(event)
        delivered = 0
        for subscriber_id, subscription in self._registry.snapshot().items():
            if subscription.closed:
                self._registry.unregister(subscriber_id, reason="closed")
                continue
            try:
                subscription.sink.send(message)
            except Exception as exc:
                logger.warning("Error sending event %s to %s: %s", event.id, subscriber_id, exc)
                self._registry.unregister(subscriber_id, reason="error")
                continue
            delivered += 1
        return delivered

    def _encode(self, event: Event) -> str:
        outgoing = event
        if self._transformer is not None:
            try:
                outgoing = self._transformer(event)
            except Exception:
                logger.exception("Transformer failed for event %s; sending raw event", event.id)
        return json.dumps(outgoing.to_dict(), default=str)

    def _publish_logged(self, event: Event) -> None:
        try:
            self.publish(event)
        except Exception:
            logger.exception("Broadcast of event %s failed", event.id)

    def submit(self, event: Event) -> None:
        """Queue ``event`` for publishing; never blocks, safe from any thread."""
        loop, dispatch = self._loop, self._queue
        if dispatch is not None and loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(dispatch.put_nowait, event)
            return
        with self._idle:
            self._pending += 1
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._drain_backlog, name="plowline-broadcaster", daemon=True
                )
                self._worker.start()
        self._backlog.put(event)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until the background thread has published everything queued.

        Returns False if ``timeout`` expired first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def _drain_backlog(self) -> None:
        while True:
            event = self._backlog.get()
            self._publish_logged(event)
            with self._idle:
                self._pending -= 1
                self._idle.notify_all()

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(self._queue), name="plowline-dispatcher")
        logger.debug("Broadcast dispatcher started")

    async def stop(self) -> None:
        """Drain pending events, then stop the dispatcher."""
        task, dispatch = self._task, self._queue
        if task is None or dispatch is None:
            return
        self._queue = None
        # Queued behind any hand-offs already scheduled on the loop.
        asyncio.get_running_loop().call_soon(dispatch.put_nowait, None)
        try:
            await task
        finally:
            self._task = None
            self._loop = None
        logger.debug("Broadcast dispatcher stopped")

    async def _run(self, dispatch: asyncio.Queue[Event | None]) -> None:
        while True:
            event = await dispatch.get()
            if event is None:
                return
            self._publish_logged(event)
