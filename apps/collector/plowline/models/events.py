"""Pydantic models for event and schema APIs."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..core.events import Event


class EventOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    schema_: str = Field(alias="schema")
    data: list[dict[str, Any]] | dict[str, Any]
    timestamp: datetime
    received_at: datetime = Field(alias="receivedAt")

    @classmethod
    def from_event(cls, event: Event) -> "EventOut":
        return cls.model_validate(event.to_dict())


class IngestResponse(BaseModel):
    status: str = "success"


class SchemaListResponse(BaseModel):
    schemas: list[str] = Field(default_factory=list)


class ValidationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_: str = Field(alias="schema")
    data: Any = None


class ValidationIssue(BaseModel):
    path: str
    message: str


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
