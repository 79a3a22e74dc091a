"""Server-sent events endpoint."""
from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from ..core.subscribers import QueueSink, SubscriberRegistry

router = APIRouter(tags=["stream"])


async def stream_messages(registry: SubscriberRegistry, *, max_queue_size: int = 100) -> AsyncIterator[dict[str, str]]:
    """Register a subscriber and yield one SSE frame per published event.

    Ends when the sink is closed server-side; a client disconnect cancels the
    generator. The subscriber is unregistered either way.
    """
    sink = QueueSink(max_queue_size)
    subscriber_id = registry.new_id()
    registry.register(subscriber_id, sink)
    try:
        async for message in sink.messages():
            yield {"data": message}
    finally:
        registry.unregister(subscriber_id)


@router.get("/api/events")
async def stream_events(request: Request) -> EventSourceResponse:
    """Subscribe to newly ingested events."""
    state = request.app.state
    return EventSourceResponse(
        stream_messages(state.registry, max_queue_size=state.settings.subscriber_queue_size)
    )
