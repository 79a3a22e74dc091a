"""Reshape Snowplow tracker payloads for the live viewer."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from ..core.events import Event
from .decode import decode_json_field

ItemTransform = Callable[[Mapping[str, Any]], dict[str, Any]]

_COMMON_FIELDS: tuple[tuple[str, str], ...] = (
    ("url", "url"),
    ("aid", "app_id"),
    ("duid", "device_id"),
)


def _copy_fields(source: Mapping[str, Any], target: dict[str, Any], fields: tuple[tuple[str, str], ...]) -> None:
    for key, name in fields:
        if key in source:
            target[name] = source[key]


def _context(source: Mapping[str, Any], target: dict[str, Any]) -> None:
    for key in ("cx", "co"):
        if key in source:
            target["context"] = decode_json_field(source[key])
            return


def _or_na(source: Mapping[str, Any], key: str) -> Any:
    value = source.get(key)
    return "N/A" if value is None else value


def page_view(data: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {"kind": "Page View"}
    _copy_fields(data, result, (("url", "url"), ("page", "page"), ("refr", "referrer"), ("tna", "tracker")))
    _copy_fields(data, result, _COMMON_FIELDS[1:])
    _context(data, result)
    return result


def structured_event(data: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {"kind": "Structured Event"}
    _copy_fields(data, result, (("se_ca", "category"), ("se_ac", "action"), ("se_la", "label")))
    result["property"] = _or_na(data, "se_pr")
    result["value"] = _or_na(data, "se_va")
    _copy_fields(data, result, _COMMON_FIELDS)
    _context(data, result)
    return result


def self_describing_event(data: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {"kind": "Self-Describing Event"}
    _copy_fields(data, result, _COMMON_FIELDS[:1])
    for key in ("ue_px", "ue_pr"):
        if key in data:
            result["payload"] = decode_json_field(data[key])
            break
    _copy_fields(data, result, _COMMON_FIELDS[1:])
    _context(data, result)
    return result


HANDLERS: dict[str, ItemTransform] = {
    "pv": page_view,
    "se": structured_event,
    "ue": self_describing_event,
}


def transform_item(data: Mapping[str, Any]) -> dict[str, Any]:
    """Reshape one tracker payload by its ``e`` event type.

    Payloads without a known ``e`` value are returned as-is.
    """
    handler = HANDLERS.get(data.get("e")) if isinstance(data.get("e"), str) else None
    if handler is None:
        return dict(data)
    return handler(data)


def transform_event_for_display(event: Event) -> Event:
    return replace(
        event,
        data=[transform_item(item) for item in event.data],
        unwrap_single_item=len(event.data) == 1,
    )
