"""
Home Assistant REST client used by the translators.

Talks to the Supervisor proxy (``http://supervisor/core/api``) with the
add-on token. Every call has a short timeout and is never retried;
failures are logged and reported as False / None / [] to the caller.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import requests

from .core_types import AuthorizationError, StateReading
from .logging_setup import logger

HUB_TIMEOUT_S = 5
TOKEN_ENV_VARS = ("SUPERVISOR_TOKEN", "HASS_API_TOKEN")

# AirSend note type codes
NOTE_TYPES = {
    0: "state",
    1: "data",
    2: "temperature",
    3: "illuminance",
    4: "r_humidity",
}

_SLUG_RE = re.compile(r"[^a-z0-9_]+")


def load_token(token_file: str | Path | None = "hass_api.token") -> str:
    """Read the hub token from file, then the environment.

    Raises AuthorizationError when none is available.
    """
    if token_file:
        p = Path(token_file)
        try:
            token = p.read_text(encoding="utf-8").strip()
        except OSError:
            token = ""
        if token:
            return token
    for var in TOKEN_ENV_VARS:
        token = os.environ.get(var, "").strip()
        if token:
            return token
    raise AuthorizationError("missing Home Assistant API token")


def _slug(value: Any) -> str:
    return _SLUG_RE.sub("_", str(value).lower()).strip("_")


def _same_channel(a: Any, b: Any) -> bool:
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return str(a.get("id")) == str(b.get("id")) and str(a.get("source")) == str(b.get("source"))
    return str(a) == str(b)


def new_entity_id(channel: Any, kind: str) -> str:
    if isinstance(channel, Mapping):
        parts = [channel.get("id"), channel.get("source")]
        base = "_".join(_slug(p) for p in parts if p is not None)
    else:
        base = _slug(channel)
    return f"sensor.airsend_{base}_{_slug(kind)}"


class HassClient:
    def __init__(
        self,
        base_url: str,
        token: str | None,
        timeout: float = HUB_TIMEOUT_S,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def is_authorized(self) -> bool:
        return bool(self.token)

    def _post(self, path: str, payload: Mapping[str, Any]) -> bool:
        try:
            resp = self.session.post(
                f"{self.base_url}{path}",
                json=dict(payload),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error({"event": "hass_request_failed", "path": path, "error": str(exc)})
            return False
        if resp.status_code not in (200, 201):
            logger.error(
                {"event": "hass_http_error", "path": path, "http_code": resp.status_code, "response": resp.text[:200]}
            )
            return False
        return True

    def _states(self) -> list[dict[str, Any]]:
        try:
            resp = self.session.get(
                f"{self.base_url}/states", headers=self._headers(), timeout=self.timeout
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error({"event": "hass_states_failed", "error": str(exc)})
            return []
        return [s for s in data if isinstance(s, dict)] if isinstance(data, list) else []

    def set_state(
        self,
        entity_id: str | None,
        kind: str,
        value: Any,
        timestamp: Any = None,
        channel: Mapping[str, Any] | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> bool:
        """Write ``value`` as the entity state; create the entity when id is None."""
        attrs: dict[str, Any] = dict(attributes or {})
        attrs["airsend_kind"] = kind
        if timestamp is not None:
            attrs["timestamp"] = timestamp
        if entity_id is None:
            if channel is None:
                logger.warning({"event": "hass_set_state_no_target", "kind": kind})
                return False
            entity_id = new_entity_id(channel, kind)
        if channel is not None:
            attrs["channel"] = channel
        ok = self._post(f"/states/{entity_id}", {"state": value, "attributes": attrs})
        if ok:
            logger.debug({"event": "hass_state_set", "entity_id": entity_id, "state": value})
        return ok

    def fire_event(self, event_type: str, data: Mapping[str, Any]) -> bool:
        return self._post(f"/events/{event_type}", data)

    def search_entity_id(self, uid: Any) -> str | None:
        for state in self._states():
            attrs = state.get("attributes") or {}
            if "uid" in attrs and str(attrs["uid"]) == str(uid):
                return state.get("entity_id")
        return None

    def search_entities(self, channel: Any, kind: str) -> list[str]:
        found = []
        for state in self._states():
            attrs = state.get("attributes") or {}
            if attrs.get("airsend_kind") != kind or "channel" not in attrs:
                continue
            if _same_channel(attrs["channel"], channel):
                found.append(state.get("entity_id"))
        return found

    def convert_notes_to_states(self, notes: Any) -> list[StateReading]:
        """Decode notes into (kind, value) pairs; malformed notes are skipped.

        Accepts a list of ``{"type": <code|name>, "value": v}`` or a plain
        ``{kind: value}`` mapping.
        """
        if isinstance(notes, Mapping):
            return [(str(k).lower(), v) for k, v in notes.items()]
        if not isinstance(notes, list):
            return []
        readings: list[StateReading] = []
        for note in notes:
            if not isinstance(note, Mapping) or "type" not in note or "value" not in note:
                continue
            code = note["type"]
            if isinstance(code, int) and not isinstance(code, bool):
                kind = NOTE_TYPES.get(code, f"type_{code}")
            else:
                kind = str(code).lower()
            readings.append((kind, note["value"]))
        return readings


__all__ = ["HassClient", "load_token", "new_entity_id", "NOTE_TYPES"]
