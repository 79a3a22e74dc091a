"""Event ingestion and backlog endpoints."""
from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from ..core.events import EventStore
from ..models.events import EventOut, IngestResponse

FORM_MESSAGE_SCHEMA = "form/message"


class PayloadError(ValueError):
    """Raised for payloads rejected before they reach the store."""


def parse_payload(payload: Any) -> tuple[str, list[list[dict[str, Any]]]]:
    """Split a Snowplow payload into its schema and per-event data lists.

    Each element of an array ``data`` becomes its own event; a single object
    becomes one event. Non-object array elements are skipped.
    """
    if not isinstance(payload, dict):
        raise PayloadError("Invalid JSON payload")
    schema = payload.get("schema")
    if not isinstance(schema, str):
        raise PayloadError("Missing schema field")
    if "data" not in payload:
        raise PayloadError("Missing data field")

    data = payload["data"]
    if isinstance(data, list):
        batches = [[item] for item in data if isinstance(item, dict)]
        if not batches:
            raise PayloadError("Invalid data format")
        return schema, batches
    if isinstance(data, dict):
        return schema, [[data]]
    raise PayloadError("Invalid data format - must be an object or array")


def _store(request: Request) -> EventStore:
    return request.app.state.store


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def build_router(events_path: str) -> APIRouter:
    """Routes for the configured ingestion path and its ``/list`` backlog."""
    router = APIRouter(tags=["events"])

    @router.post(events_path, response_model=IngestResponse)
    async def ingest_events(request: Request) -> IngestResponse:
        """Accept a JSON Snowplow payload or a legacy form message."""
        store = _store(request)
        content_type = request.headers.get("content-type", "")

        if "application/json" in content_type:
            try:
                payload = json.loads(await request.body())
            except ValueError as exc:
                raise _bad_request("Invalid JSON payload") from exc
            try:
                schema, batches = parse_payload(payload)
            except PayloadError as exc:
                raise _bad_request(str(exc)) from exc

            occurred_at = datetime.now(UTC) if isinstance(payload["data"], list) else None
            for data in batches:
                store.append(schema, data, occurred_at)
            return IngestResponse()

        form = await request.form()
        message = form.get("message")
        if not isinstance(message, str) or not message:
            raise _bad_request("Message cannot be empty")
        store.append(FORM_MESSAGE_SCHEMA, [{"message": message}])
        return IngestResponse()

    @router.get(f"{events_path}/list", response_model=list[EventOut])
    async def list_events(request: Request) -> list[EventOut]:
        """Return every retained event, oldest first."""
        return [EventOut.from_event(event) for event in _store(request).list()]

    return router
