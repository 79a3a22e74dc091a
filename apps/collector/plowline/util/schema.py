"""Helpers for loading Iglu JSON schemas and validating payloads."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator, ValidationError

IGLU_PREFIX = "iglu:"


def schema_path(schema_uri: str) -> str | None:
    """Return ``vendor/name/format/version`` for an Iglu URI, else None."""
    if not schema_uri.startswith(IGLU_PREFIX):
        return None
    path = schema_uri[len(IGLU_PREFIX):]
    parts = path.split("/")
    if len(parts) != 4 or not all(parts) or ".." in parts:
        return None
    return path


def resolve_local(schemas_dir: Path, relative: str) -> Path | None:
    """Resolve ``relative`` inside ``schemas_dir``; None if it escapes or is missing."""
    root = schemas_dir.resolve()
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root) or not candidate.is_file():
        return None
    return candidate


def list_schemas(schemas_dir: Path) -> list[str]:
    if not schemas_dir.is_dir():
        return []
    return sorted(
        path.relative_to(schemas_dir).as_posix()
        for path in schemas_dir.rglob("*")
        if path.is_file()
    )


def load_schema(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def validate(document: Any, schema: dict[str, Any]) -> list["SchemaValidationError"]:
    """Validate ``document`` and return every violation found."""
    # Iglu metaschema references are not resolvable offline.
    schema = {key: value for key, value in schema.items() if key != "$schema"}
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(document), key=lambda err: [str(elem) for elem in err.path])
    return [SchemaValidationError(error) for error in errors]


class SchemaValidationError(Exception):
    """One schema violation found in a document."""

    def __init__(self, error: ValidationError) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def path(self) -> str:
        return ".".join(str(elem) for elem in self.error.path)

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.error.message}


class SchemaNotFoundError(LookupError):
    """Raised when a schema cannot be resolved locally or remotely."""
