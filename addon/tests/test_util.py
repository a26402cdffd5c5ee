import types

import pytest

import addon.airsend_core.util as util


def test_clamp_within_range(monkeypatch):
    logs = []
    dummy_logger = types.SimpleNamespace(debug=lambda msg: logs.append(msg))
    monkeypatch.setattr(util, "logger", dummy_logger)
    assert util.clamp(5, 1, 10) == 5
    assert logs[-1]["event"] == "util_clamp"
    assert logs[-1]["x"] == 5
    assert logs[-1]["lo"] == 1
    assert logs[-1]["hi"] == 10


def test_clamp_outside_range():
    assert util.clamp(-5, 1, 1000) == 1
    assert util.clamp(5000, 1, 1000) == 1000


def test_clamp_edge_cases():
    # x == lo
    assert util.clamp(1, 1, 10) == 1
    # x == hi
    assert util.clamp(10, 1, 10) == 10
    assert util.clamp(0, 5, 5) == 5


@pytest.mark.parametrize(
    "value,expected",
    [("12", 12), (" 7 ", 7), ("-3", -3), (4, 4), ("abc", 100), ("", 100), (None, 100), ("1.5", 100)],
)
def test_parse_int(value, expected):
    assert util.parse_int(value, 100) == expected
