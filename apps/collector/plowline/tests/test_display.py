"""Tests for the live-display transformer and field decoding."""
from __future__ import annotations

import base64
import json

import pytest

from ..core.events import EventStore
from ..util.decode import decode_base64, decode_json_field
from ..util.display import transform_event_for_display, transform_item

CONTEXTS = {
    "schema": "iglu:com.snowplowanalytics.snowplow/contexts/jsonschema/1-0-0",
    "data": [{"schema": "iglu:com.acme/user/jsonschema/1-0-0", "data": {"id": "u1"}}],
}


def _b64(document: dict, *, urlsafe: bool = False) -> str:
    raw = json.dumps(document).encode("utf-8")
    encoded = base64.urlsafe_b64encode(raw) if urlsafe else base64.b64encode(raw)
    return encoded.decode("ascii").rstrip("=")


def test_decode_base64_variants() -> None:
    assert decode_base64("aGVsbG8gd29ybGQ=") == "hello world"
    assert decode_base64("aGVsbG8gd29ybGQ") == "hello world"
    assert decode_base64(base64.urlsafe_b64encode("ü?>".encode()).decode()) == "ü?>"
    with pytest.raises(ValueError):
        decode_base64("not base64!")


def test_decode_json_field() -> None:
    assert decode_json_field(_b64(CONTEXTS, urlsafe=True)) == CONTEXTS
    assert decode_json_field(json.dumps(CONTEXTS)) == CONTEXTS
    assert decode_json_field("plain text") == "plain text"
    assert decode_json_field({"already": "decoded"}) == {"already": "decoded"}


def test_page_view() -> None:
    item = {
        "e": "pv",
        "url": "https://example.com/",
        "page": "Home",
        "refr": "https://google.com/",
        "tna": "sp",
        "aid": "site",
        "duid": "d-1",
        "cx": _b64(CONTEXTS),
        "ignored": "x",
    }
    assert transform_item(item) == {
        "kind": "Page View",
        "url": "https://example.com/",
        "page": "Home",
        "referrer": "https://google.com/",
        "tracker": "sp",
        "app_id": "site",
        "device_id": "d-1",
        "context": CONTEXTS,
    }


def test_structured_event_defaults() -> None:
    result = transform_item({"e": "se", "se_ca": "cat", "se_ac": "act", "se_la": "lab", "se_pr": None, "se_va": 2})
    assert result == {
        "kind": "Structured Event",
        "category": "cat",
        "action": "act",
        "label": "lab",
        "property": "N/A",
        "value": 2,
    }


def test_self_describing_event() -> None:
    payload = {
        "schema": "iglu:com.snowplowanalytics.snowplow/unstruct_event/jsonschema/1-0-0",
        "data": {"schema": "iglu:com.acme/click/jsonschema/1-0-0", "data": {"target": "nav"}},
    }
    result = transform_item({"e": "ue", "ue_px": _b64(payload), "aid": "site", "co": json.dumps(CONTEXTS)})
    assert result == {
        "kind": "Self-Describing Event",
        "payload": payload,
        "app_id": "site",
        "context": CONTEXTS,
    }


def test_undecodable_payload_kept() -> None:
    assert transform_item({"e": "ue", "ue_px": "%%%"})["payload"] == "%%%"


@pytest.mark.parametrize("item", [{"message": "hello"}, {"e": "pp", "url": "x"}, {"e": 1}])
def test_unknown_items_pass_through(item: dict) -> None:
    assert transform_item(item) == item


def test_transform_event_for_display_unwraps_single_items() -> None:
    store = EventStore(5)
    single = store.append("s", [{"e": "pv", "url": "u"}])
    batch = store.append("s", [{"e": "pv"}, {"message": "m"}])

    shown = transform_event_for_display(single)
    assert shown.to_dict()["data"] == {"kind": "Page View", "url": "u"}
    assert shown.id == single.id

    shown_batch = transform_event_for_display(batch)
    assert shown_batch.to_dict()["data"] == [{"kind": "Page View"}, {"message": "m"}]
    assert store.list()[0].data == [{"e": "pv", "url": "u"}]
