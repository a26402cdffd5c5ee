from unittest.mock import MagicMock

import pytest
import requests

from addon.airsend_core.core_types import AuthorizationError
from addon.airsend_core.hass_client import HassClient, load_token, new_entity_id
from addon.tests.helpers.fakes import FakeResponse

BASE = "http://supervisor/core/api"

STATES = [
    {"entity_id": "sensor.kitchen", "state": "20", "attributes": {"uid": 123}},
    {
        "entity_id": "sensor.airsend_4242_7_temperature",
        "state": "21",
        "attributes": {"airsend_kind": "temperature", "channel": {"id": 4242, "source": 7}},
    },
    {
        "entity_id": "sensor.airsend_4242_7_illuminance",
        "state": "300",
        "attributes": {"airsend_kind": "illuminance", "channel": {"id": 4242, "source": 7}},
    },
    "not-a-state",
]


def _client(post=None, get=None):
    session = MagicMock()
    session.post.return_value = post or FakeResponse(200, "{}")
    session.get.return_value = get or FakeResponse(200, "[]", json_data=STATES)
    return HassClient(BASE + "/", "tok", session=session), session


def test_set_state_posts_state_and_attributes():
    client, session = _client()
    assert client.set_state("cover.airsend_x", "open", "open", 1700, None, {"source": "physical_remote"})
    args, kwargs = session.post.call_args
    assert args[0] == f"{BASE}/states/cover.airsend_x"
    assert kwargs["json"] == {
        "state": "open",
        "attributes": {"source": "physical_remote", "airsend_kind": "open", "timestamp": 1700},
    }
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["timeout"] == 5


def test_set_state_without_entity_creates_from_channel():
    client, session = _client(post=FakeResponse(201, "{}"))
    assert client.set_state(None, "temperature", 21.5, 9, {"id": 4242, "source": 7})
    args, kwargs = session.post.call_args
    assert args[0] == f"{BASE}/states/sensor.airsend_4242_7_temperature"
    assert kwargs["json"]["attributes"]["channel"] == {"id": 4242, "source": 7}


def test_set_state_without_entity_or_channel_fails():
    client, session = _client()
    assert client.set_state(None, "temperature", 1) is False
    session.post.assert_not_called()


@pytest.mark.parametrize("response", [FakeResponse(500, "boom"), FakeResponse(401, "")])
def test_set_state_http_error(response):
    client, _ = _client(post=response)
    assert client.set_state("switch.a", "on", "on") is False


def test_transport_error_reported_as_false():
    client, session = _client()
    session.post.side_effect = requests.Timeout("slow")
    assert client.fire_event("airsend_remote_pressed", {"a": 1}) is False


def test_fire_event_path():
    client, session = _client()
    assert client.fire_event("airsend_remote_pressed", {"entity_id": "cover.x"}) is True
    assert session.post.call_args[0][0] == f"{BASE}/events/airsend_remote_pressed"


def test_search_entity_id_by_uid():
    client, _ = _client()
    assert client.search_entity_id("123") == "sensor.kitchen"
    assert client.search_entity_id(999) is None


def test_search_entities_by_channel_and_kind():
    client, _ = _client()
    assert client.search_entities({"id": "4242", "source": 7}, "temperature") == [
        "sensor.airsend_4242_7_temperature"
    ]
    assert client.search_entities({"id": 1, "source": 7}, "temperature") == []


def test_search_tolerates_hub_failure():
    client, session = _client(get=FakeResponse(502, "bad gateway"))
    assert client.search_entities({"id": 1}, "temperature") == []
    session.get.side_effect = requests.ConnectionError("down")
    assert client.search_entity_id(1) is None


def test_convert_notes_to_states():
    client, _ = _client()
    notes = [
        {"type": 0, "value": "on"},
        {"type": "ILLUMINANCE", "value": 120},
        {"type": 99, "value": 1},
        {"value": 3},
        "junk",
    ]
    assert client.convert_notes_to_states(notes) == [
        ("state", "on"),
        ("illuminance", 120),
        ("type_99", 1),
    ]
    assert client.convert_notes_to_states({"Temperature": 20}) == [("temperature", 20)]
    assert client.convert_notes_to_states(None) == []


def test_new_entity_id():
    assert new_entity_id({"id": 12, "source": "AB"}, "Temperature") == "sensor.airsend_12_ab_temperature"
    assert new_entity_id(55, "state") == "sensor.airsend_55_state"


def test_is_authorized():
    assert HassClient(BASE, "t").is_authorized()
    assert not HassClient(BASE, "").is_authorized()


def test_load_token_from_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SUPERVISOR_TOKEN", raising=False)
    token_file = tmp_path / "hass_api.token"
    token_file.write_text("abc\n")
    assert load_token(token_file) == "abc"


def test_load_token_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SUPERVISOR_TOKEN", "from-env")
    assert load_token(tmp_path / "missing.token") == "from-env"


def test_load_token_missing_is_fatal(tmp_path, monkeypatch):
    monkeypatch.delenv("SUPERVISOR_TOKEN", raising=False)
    monkeypatch.delenv("HASS_API_TOKEN", raising=False)
    with pytest.raises(AuthorizationError):
        load_token(tmp_path / "missing.token")
