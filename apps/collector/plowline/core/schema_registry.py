"""Schema resolution from the local schema directory and a remote registry."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..util.schema import SchemaNotFoundError, load_schema, resolve_local

logger = logging.getLogger(__name__)


class RegistryClient:
    """Helper for fetching schemas from a remote Iglu-style registry."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=5.0,
            transport=transport,
        )

    @retry(
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def get(self, path: str) -> httpx.Response:
        return await self._client.get(path)

    async def fetch_schema(self, relative: str) -> dict[str, Any] | None:
        response = await self.get(f"/schemas/{relative}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        await self._client.aclose()


class SchemaRegistry:
    """Resolves schema paths, local files first, caching remote hits."""

    def __init__(self, schemas_dir: Path, client: RegistryClient | None = None) -> None:
        self.schemas_dir = schemas_dir
        self._client = client
        self._cache: dict[str, dict[str, Any]] = {}

    async def resolve(self, relative: str) -> dict[str, Any]:
        local = resolve_local(self.schemas_dir, relative)
        if local is not None:
            return await asyncio.to_thread(load_schema, local)
        if self._client is None:
            raise SchemaNotFoundError(relative)
        cached = self._cache.get(relative)
        if cached is not None:
            return cached
        try:
            schema = await self._client.fetch_schema(relative)
        except httpx.HTTPError as exc:
            logger.warning("Schema registry lookup for %s failed: %s", relative, exc)
            raise SchemaNotFoundError(relative) from exc
        if schema is None:
            raise SchemaNotFoundError(relative)
        return self._cache.setdefault(relative, schema)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
