"""
Legacy bulk push events (the pre-webhook callback format).

Body shape: ``{"events": [ {channel, type, thingnotes, reliability?,
timestamp?}, ... ]}``. Processing is best effort; unrecognised elements
are skipped without error.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from .logging_setup import logger
from .ports import HubClient

READING_TYPES = frozenset({1, 2, 3})
SENSOR_EVENT_TYPE = 3
RELIABILITY_MIN = 0x6  # exclusive
RELIABILITY_MAX = 0x47  # exclusive


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def is_reliable(reliability: Any) -> bool:
    try:
        value = float(reliability)
    except (TypeError, ValueError):
        return False
    return RELIABILITY_MIN < value < RELIABILITY_MAX


def parse_bulk_body(raw: bytes | str) -> Any:
    """Decode a bulk body; anything unparseable becomes None."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


class LegacyEventTranslator:
    def __init__(self, hub: HubClient):
        self.hub = hub

    def handle_bulk(self, payload: Any) -> bool:
        if not isinstance(payload, Mapping):
            return True
        events = payload.get("events")
        if isinstance(events, Mapping):
            events = list(events.values())
        if not isinstance(events, list):
            return True
        for item in events:
            if not isinstance(item, Mapping):
                continue
            if "channel" not in item or "type" not in item or "thingnotes" not in item:
                continue
            notes = item["thingnotes"]
            if not isinstance(notes, Mapping):
                continue
            if notes.get("uid") is not None:
                self._handle_transfer(item, notes)
            else:
                self._handle_interrupt(item, notes)
        return True

    def _handle_transfer(self, item: Mapping[str, Any], notes: Mapping[str, Any]) -> None:
        entity_id = self.hub.search_entity_id(notes["uid"])
        if entity_id is None:
            logger.debug({"event": "legacy_transfer_unknown_uid", "uid": notes["uid"]})
            return
        event_type = _as_int(item["type"])
        timestamp = item.get("timestamp")
        if event_type in READING_TYPES:
            for kind, value in self.hub.convert_notes_to_states(notes.get("notes")):
                self.hub.set_state(entity_id, kind, value, timestamp)
        else:
            self.hub.set_state(entity_id, "error", f"error_{item['type']}", timestamp)

    def _handle_interrupt(self, item: Mapping[str, Any], notes: Mapping[str, Any]) -> None:
        if _as_int(item["type"]) != SENSOR_EVENT_TYPE:
            return
        if not is_reliable(item.get("reliability")):
            logger.debug({"event": "legacy_unreliable_discarded", "reliability": item.get("reliability")})
            return
        channel = item["channel"]
        timestamp = item.get("timestamp")
        for kind, value in self.hub.convert_notes_to_states(notes.get("notes")):
            entities = self.hub.search_entities(channel, kind)
            for entity_id in entities:
                self.hub.set_state(entity_id, kind, value, timestamp)
            if not entities:
                logger.info(
                    {
                        "event": "legacy_new_channel",
                        "channel": json.dumps(channel, default=str),
                        "type": kind,
                        "value": value,
                    }
                )
                self.hub.set_state(None, kind, value, timestamp, channel)


__all__ = ["LegacyEventTranslator", "is_reliable", "parse_bulk_body"]
