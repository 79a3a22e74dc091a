"""Serve JSON schemas and validate documents against them."""
from __future__ import annotations

import json
from asyncio import to_thread

from fastapi import APIRouter, HTTPException, Request, status

from ..core.schema_registry import SchemaRegistry
from ..models.events import SchemaListResponse, ValidationIssue, ValidationRequest, ValidationResponse
from ..util.schema import SchemaNotFoundError, list_schemas, resolve_local, schema_path, validate

router = APIRouter(tags=["schema"])


def _registry(request: Request) -> SchemaRegistry:
    return request.app.state.schemas


@router.get("/schemas", response_model=SchemaListResponse)
async def get_schema_list(request: Request) -> SchemaListResponse:
    schemas = await to_thread(list_schemas, _registry(request).schemas_dir)
    return SchemaListResponse(schemas=schemas)


@router.get("/schemas/{path:path}")
async def get_schema(request: Request, path: str) -> dict:
    target = resolve_local(_registry(request).schemas_dir, path)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schema not found")
    try:
        return json.loads(await to_thread(target.read_text, encoding="utf-8"))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Schema is not valid JSON") from exc


@router.post("/api/validate", response_model=ValidationResponse)
async def validate_document(request: Request, payload: ValidationRequest) -> ValidationResponse:
    """Validate ``data`` against the Iglu schema named by ``schema``."""
    relative = schema_path(payload.schema_)
    if relative is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Schema must be an Iglu URI")
    try:
        schema = await _registry(request).resolve(relative)
    except SchemaNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schema not found") from exc

    errors = validate(payload.data, schema)
    return ValidationResponse(
        valid=not errors,
        errors=[ValidationIssue(**error.to_dict()) for error in errors],
    )
