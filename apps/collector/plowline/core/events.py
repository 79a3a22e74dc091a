"""Bounded in-memory event buffer."""
from __future__ import annotations

import copy
import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Event:
    """Analytics event envelope."""

    id: int
    schema: str
    data: list[dict[str, Any]]
    occurred_at: datetime
    received_at: datetime
    # Display hint: emit a single-item batch as a bare object.
    unwrap_single_item: bool = field(default=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        data: Any = self.data
        if self.unwrap_single_item and len(self.data) == 1:
            data = self.data[0]
        return {
            "id": self.id,
            "schema": self.schema,
            "data": data,
            "timestamp": self.occurred_at.isoformat(),
            "receivedAt": self.received_at.isoformat(),
        }


AppendListener = Callable[[Event], None]


class EventStore:
    """Capacity-limited, oldest-first event buffer with monotonic ids.

    ``append`` and ``list`` are safe to call from any thread. When the buffer
    is full the oldest event is evicted; ids keep counting regardless.
    """

    def __init__(self, capacity: int, *, on_append: AppendListener | None = None) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(f"Event store capacity must be a positive integer, got {capacity!r}")
        self._events: deque[Event] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        # Serializes append plus hand-off so listeners see events in id order.
        self._handoff_lock = threading.Lock()
        self._last_id = 0
        self._on_append = on_append

    @property
    def capacity(self) -> int:
        return self._events.maxlen or 0

    def append(
        self,
        schema: str,
        data: Iterable[Mapping[str, Any]],
        occurred_at: datetime | None = None,
    ) -> Event:
        """Store a new event and hand it to the append listener.

        The listener runs after the buffer lock is released, so it may read
        the store. It must not block or append.
        """
        items = [copy.deepcopy(dict(item)) for item in data]
        with self._handoff_lock:
            with self._lock:
                received_at = datetime.now(UTC)
                self._last_id += 1
                event = Event(
                    id=self._last_id,
                    schema=schema,
                    data=items,
                    occurred_at=occurred_at or received_at,
                    received_at=received_at,
                )
                self._events.append(event)
            if self._on_append is not None:
                try:
                    self._on_append(_detached(event))
                except Exception:
                    logger.exception("Append listener failed for event %s", event.id)
        return _detached(event)

    def list(self) -> list[Event]:
        """Return a detached copy of the retained events, oldest first."""
        with self._lock:
            events = list(self._events)
        return [_detached(event) for event in events]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def _detached(event: Event) -> Event:
    return replace(event, data=copy.deepcopy(event.data))
