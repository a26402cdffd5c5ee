import requests

from addon.airsend_core.device_rpc import DeviceRpcError
from addon.airsend_core.hass_client import HassClient


class FakeHub:
    """In-memory stand-in for the Home Assistant client."""

    def __init__(
        self,
        authorized=True,
        set_state_ok=True,
        fire_ok=True,
        uid_map=None,
        entities=None,
    ):
        self.authorized = authorized
        self.set_state_ok = set_state_ok
        self.fire_ok = fire_ok
        self.uid_map = uid_map or {}
        # kind -> list of entity ids returned by search_entities
        self.entities = entities or {}
        self.states = []
        self.events = []
        self.searches = []
        self._decoder = HassClient("http://hub.invalid/api", "token")

    def is_authorized(self):
        return self.authorized

    def set_state(self, entity_id, kind, value, timestamp=None, channel=None, attributes=None):
        self.states.append(
            {
                "entity_id": entity_id,
                "kind": kind,
                "value": value,
                "timestamp": timestamp,
                "channel": channel,
                "attributes": dict(attributes or {}),
            }
        )
        return self.set_state_ok

    def fire_event(self, event_type, data):
        self.events.append((event_type, dict(data)))
        return self.fire_ok

    def search_entity_id(self, uid):
        self.searches.append(("uid", uid))
        return self.uid_map.get(str(uid))

    def search_entities(self, channel, kind):
        self.searches.append(("channel", channel, kind))
        return list(self.entities.get(kind, []))

    def convert_notes_to_states(self, notes):
        return self._decoder.convert_notes_to_states(notes)


class FakeTransport:
    """Records device RPCs; (device, method) pairs in ``fail`` raise."""

    def __init__(self, fail=None):
        self.calls = []
        self.fail = set(fail or ())

    def call(self, device, method, params=None):
        self.calls.append((device.name, method, dict(params or {})))
        if (device.name, method) in self.fail:
            raise DeviceRpcError("simulated failure", method)
        return {"status": "ok"}


class FakeResponse:
    def __init__(self, status_code=200, text="", json_data=None):
        self.status_code = status_code
        self.text = text
        self._json = json_data

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")
