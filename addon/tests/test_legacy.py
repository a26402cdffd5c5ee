import pytest

from addon.airsend_core.legacy import LegacyEventTranslator, is_reliable, parse_bulk_body
from addon.tests.helpers.fakes import FakeHub

CHANNEL = {"id": 4242, "source": 7}
TEMPERATURE_NOTES = [{"method": 1, "type": 2, "value": 21.5}]


def _interrupt(reliability, event_type=3, notes=None):
    return {
        "channel": CHANNEL,
        "type": event_type,
        "reliability": reliability,
        "timestamp": 1700000000,
        "thingnotes": {"notes": notes if notes is not None else TEMPERATURE_NOTES},
    }


@pytest.mark.parametrize("value", [6, 71, 0, 200, None, "abc"])
def test_unreliable_values(value):
    assert is_reliable(value) is False


@pytest.mark.parametrize("value", [7, 30, 70, "42"])
def test_reliable_values(value):
    assert is_reliable(value) is True


@pytest.mark.parametrize("payload", [None, [], "text", {}, {"events": "nope"}, {"other": []}])
def test_unrecognised_shapes_are_silent_success(payload):
    hub = FakeHub()
    assert LegacyEventTranslator(hub).handle_bulk(payload) is True
    assert hub.states == [] and hub.searches == []


def test_elements_missing_fields_are_skipped():
    hub = FakeHub()
    events = [
        {"type": 3, "thingnotes": {}},
        {"channel": CHANNEL, "thingnotes": {}},
        {"channel": CHANNEL, "type": 3},
        "garbage",
    ]
    assert LegacyEventTranslator(hub).handle_bulk({"events": events}) is True
    assert hub.states == []


def test_transfer_event_updates_entity_per_reading():
    hub = FakeHub(uid_map={"abc": "sensor.airsend_kitchen"})
    notes = [{"type": 2, "value": 19}, {"type": 4, "value": 55}]
    payload = {
        "events": [
            {"channel": CHANNEL, "type": 2, "timestamp": 5, "thingnotes": {"uid": "abc", "notes": notes}}
        ]
    }
    LegacyEventTranslator(hub).handle_bulk(payload)
    assert [(s["entity_id"], s["kind"], s["value"], s["timestamp"]) for s in hub.states] == [
        ("sensor.airsend_kitchen", "temperature", 19, 5),
        ("sensor.airsend_kitchen", "r_humidity", 55, 5),
    ]


def test_transfer_event_other_type_sets_error_state():
    hub = FakeHub(uid_map={"abc": "switch.airsend_lamp"})
    payload = {"events": [{"channel": CHANNEL, "type": 5, "thingnotes": {"uid": "abc"}}]}
    LegacyEventTranslator(hub).handle_bulk(payload)
    assert [(s["entity_id"], s["kind"], s["value"]) for s in hub.states] == [
        ("switch.airsend_lamp", "error", "error_5")
    ]


def test_transfer_event_unknown_uid_ignored():
    hub = FakeHub()
    payload = {"events": [{"channel": CHANNEL, "type": 1, "thingnotes": {"uid": "zzz", "notes": []}}]}
    LegacyEventTranslator(hub).handle_bulk(payload)
    assert hub.searches == [("uid", "zzz")]
    assert hub.states == []


def test_interrupt_updates_every_matching_entity():
    hub = FakeHub(entities={"temperature": ["sensor.a", "sensor.b"]})
    LegacyEventTranslator(hub).handle_bulk({"events": [_interrupt(30)]})
    assert [s["entity_id"] for s in hub.states] == ["sensor.a", "sensor.b"]
    assert hub.searches == [("channel", CHANNEL, "temperature")]


def test_interrupt_without_match_asks_hub_to_create(caplog_level):
    hub = FakeHub()
    LegacyEventTranslator(hub).handle_bulk({"events": [_interrupt(30)]})
    assert hub.states == [
        {
            "entity_id": None,
            "kind": "temperature",
            "value": 21.5,
            "timestamp": 1700000000,
            "channel": CHANNEL,
            "attributes": {},
        }
    ]
    assert any(
        isinstance(r.msg, dict) and r.msg.get("event") == "legacy_new_channel" for r in caplog_level.records
    )


@pytest.mark.parametrize("reliability,processed", [(6, False), (7, True), (70, True), (71, False)])
def test_interrupt_reliability_band(reliability, processed):
    hub = FakeHub()
    LegacyEventTranslator(hub).handle_bulk({"events": [_interrupt(reliability)]})
    assert bool(hub.states) is processed


def test_interrupt_non_sensor_type_ignored():
    hub = FakeHub()
    LegacyEventTranslator(hub).handle_bulk({"events": [_interrupt(30, event_type=1)]})
    assert hub.states == [] and hub.searches == []


def test_events_mapping_is_iterated():
    hub = FakeHub()
    LegacyEventTranslator(hub).handle_bulk({"events": {"0": _interrupt(30)}})
    assert len(hub.states) == 1


def test_parse_bulk_body():
    assert parse_bulk_body(b'{"events": []}') == {"events": []}
    assert parse_bulk_body(b"not json") is None
    assert parse_bulk_body(b"") is None
