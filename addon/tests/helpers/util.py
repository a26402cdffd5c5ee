import json


def assert_contains_log(caplog, needle):
    # Relaxed: allow substring match, not exact message
    assert any(
        needle in r.getMessage() or needle in r.name for r in caplog.records
    ), f"Log missing: {needle}"


def logged_events(caplog):
    """Event names of the structured (dict) records captured so far."""
    return [r.msg.get("event") for r in caplog.records if isinstance(r.msg, dict)]


def assert_json_schema(payload, required_keys):
    obj = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
    for k in required_keys:
        assert k in obj, f"Missing key: {k}"
    return obj
