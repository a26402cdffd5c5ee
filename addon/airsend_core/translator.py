"""
Webhook radio events -> Home Assistant states.

A radio event names the channel and source a physical remote transmitted
on. The first configured device bound to that (channel, source) pair is
updated; its entity id is derived from the device name.
"""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .config_resolver import DeviceConfig
from .core_types import ROLLER_SHUTTER_TYPE
from .logging_setup import logger
from .ports import HubClient

REMOTE_PRESSED_EVENT = "airsend_remote_pressed"
UNKNOWN_STATE = "unknown"

# Somfy RTS keywords
COMMAND_MAPPING: Mapping[str, str] = {
    "up": "open",
    "down": "closed",
    "stop": "stopped",
    "my": "preset",
    "prog": "programming",
}

_INVALID_ID_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def map_command_to_state(command: Any) -> str:
    return COMMAND_MAPPING.get(str(command).lower(), UNKNOWN_STATE)


def derive_entity_id(device_name: str, device_type: int | None = None) -> str:
    """``Living Room!!`` -> ``cover.airsend_living_room_`` (type 4099)."""
    slug = _INVALID_ID_CHARS.sub("_", device_name.lower())
    slug = _UNDERSCORE_RUNS.sub("_", slug)
    if device_type is None or device_type == ROLLER_SHUTTER_TYPE:
        return f"cover.airsend_{slug}"
    return f"switch.airsend_{slug}"


# epoch values above this are taken to be milliseconds
MS_EPOCH_THRESHOLD = 1e11


def _epoch(value: Any) -> int:
    try:
        ts = float(value)
        if ts > MS_EPOCH_THRESHOLD:
            ts /= 1000
        datetime.fromtimestamp(ts, tz=timezone.utc)
        return int(ts)
    except (TypeError, ValueError, OverflowError, OSError):
        return int(time.time())


def _iso_utc(timestamp: int) -> str:
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return datetime.now(tz=timezone.utc).isoformat()


def _missing(value: Any) -> bool:
    return value is None or str(value).strip() in ("", "0")


@dataclass(frozen=True)
class RadioEvent:
    method: Any
    channel: Any
    source: Any
    command: Any
    timestamp: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> RadioEvent:
        return cls(
            method=payload.get("method"),
            channel=payload.get("channel"),
            source=payload.get("source"),
            command=payload.get("command"),
            timestamp=_epoch(payload.get("timestamp")),
        )

    def is_valid(self) -> bool:
        return self.method == "radio" and all(
            not _missing(v) for v in (self.channel, self.source, self.command)
        )


class RadioEventTranslator:
    def __init__(self, config: DeviceConfig, hub: HubClient):
        self.config = config
        self.hub = hub

    def handle(self, payload: Mapping[str, Any]) -> bool:
        """Translate one webhook event. Returns the primary state-push result."""
        logger.info({"event": "radio_event_received", "payload": dict(payload)})
        event = RadioEvent.from_payload(payload)
        if not event.is_valid():
            logger.warning({"event": "radio_event_invalid", "payload": dict(payload)})
            return False

        device = self.config.find_by_channel(event.channel, event.source)
        if device is None:
            logger.warning(
                {"event": "radio_event_unmatched", "channel": event.channel, "source": event.source}
            )
            return False

        state = map_command_to_state(event.command)
        entity_id = derive_entity_id(device.name, device.type)
        attributes = {
            "source": "physical_remote",
            "channel": event.channel,
            "command": event.command,
            "last_updated": _iso_utc(event.timestamp),
        }

        ok = self.hub.set_state(entity_id, state, state, event.timestamp, None, attributes)
        if not ok:
            logger.warning({"event": "radio_state_push_failed", "entity_id": entity_id})
            return False

        logger.info(
            {"event": "radio_state_updated", "entity_id": entity_id, "state": state, "device": device.name}
        )
        self._notify(entity_id, state, event.command, device.name)
        return True

    def _notify(self, entity_id: str, state: str, command: Any, device_name: str) -> None:
        data = {
            "entity_id": entity_id,
            "state": state,
            "command": command,
            "device_name": device_name,
            "source": "airsend_reception",
        }
        if self.hub.fire_event(REMOTE_PRESSED_EVENT, data):
            logger.debug({"event": "remote_pressed_fired", **data})
        else:
            logger.warning({"event": "remote_pressed_not_delivered", "entity_id": entity_id})


__all__ = [
    "COMMAND_MAPPING",
    "REMOTE_PRESSED_EVENT",
    "RadioEvent",
    "RadioEventTranslator",
    "derive_entity_id",
    "map_command_to_state",
]
