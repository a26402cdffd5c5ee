from addon.airsend_core import ports
from addon.airsend_core.device_rpc import DeviceRpcClient
from addon.airsend_core.hass_client import HassClient
from addon.tests.helpers.fakes import FakeHub, FakeTransport


def test_hub_client_protocol():
    assert isinstance(HassClient("http://hub/api", "t"), ports.HubClient)
    assert isinstance(FakeHub(), ports.HubClient)


def test_device_transport_protocol():
    assert isinstance(DeviceRpcClient(), ports.DeviceTransport)
    assert isinstance(FakeTransport(), ports.DeviceTransport)


class Incomplete:
    def is_authorized(self):
        return True


def test_incomplete_hub_rejected():
    assert not isinstance(Incomplete(), ports.HubClient)
