"""Plowline FastAPI application entrypoint."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.ingest import build_router as build_ingest_router
from .api.schema import router as schema_router
from .api.stream import router as stream_router
from .config import Settings, load_settings
from .core.broadcast import Broadcaster
from .core.events import EventStore
from .core.schema_registry import RegistryClient, SchemaRegistry
from .core.subscribers import SubscriberRegistry
from .util.display import transform_event_for_display

logger = logging.getLogger(__name__)


class CORSPathMiddleware(CORSMiddleware):
    """CORS limited to the ingestion routes; the SSE stream is left alone."""

    def __init__(self, app, *, path_prefix: str, **options) -> None:
        super().__init__(app, **options)
        self._path_prefix = path_prefix

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http" and not scope["path"].startswith(self._path_prefix):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build an app with its own store, subscriber registry and broadcaster."""
    settings = settings or load_settings()

    registry = SubscriberRegistry()
    broadcaster = Broadcaster(registry, transformer=transform_event_for_display)
    store = EventStore(settings.max_messages, on_append=broadcaster.submit)
    client = RegistryClient(settings.schema_registry_url) if settings.schema_registry_url else None
    schemas = SchemaRegistry(Path(settings.schemas_dir), client)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await broadcaster.start()
        logger.info("Accepting events on %s (retaining %d)", settings.events_path, store.capacity)
        try:
            yield
        finally:
            await broadcaster.stop()
            await schemas.close()

    app = FastAPI(title="Plowline", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.schemas = schemas

    if settings.origins:
        app.add_middleware(
            CORSPathMiddleware,
            path_prefix=settings.events_path,
            allow_origins=settings.origins,
            allow_methods=["POST", "GET", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
            allow_credentials=True,
        )

    app.include_router(build_ingest_router(settings.events_path))
    app.include_router(stream_router)
    app.include_router(schema_router)

    @app.get("/healthz")
    def healthcheck() -> dict[str, str]:
        """Basic health endpoint for readiness probes."""
        return {"status": "ok"}

    return app

