"""Decoding helpers for Snowplow encoded fields."""
from __future__ import annotations

import base64
import binascii
import json
from typing import Any


def decode_base64(value: str) -> str:
    """Decode standard or URL-safe base64, tolerating missing padding."""
    normalized = value.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        raw = base64.b64decode(normalized, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"unable to decode base64: {exc}") from exc
    return raw.decode("utf-8")


def decode_json_field(value: Any) -> Any:
    """Best-effort decode of a JSON string or base64-encoded JSON string.

    Non-string values and undecodable strings are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        pass
    try:
        return json.loads(decode_base64(value))
    except (ValueError, UnicodeDecodeError):
        return value
