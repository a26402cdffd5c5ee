"""Protocol definitions for external ports used by the add-on.

These small Protocols document the minimal methods the collaborators
(Home Assistant REST API, AirSend device transport) must provide. The
translators and the registration manager depend on these, not on the
concrete ``requests``-backed clients, so tests can pass fakes.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from .core_types import StateReading


@runtime_checkable
class HubClient(Protocol):
    """Home Assistant surface used by the translators."""

    def is_authorized(self) -> bool:
        """Return True when a hub credential is held."""

    def set_state(
        self,
        entity_id: str | None,
        kind: str,
        value: Any,
        timestamp: Any = None,
        channel: Mapping[str, Any] | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> bool:
        """Push a state; a None entity_id asks the hub side to create one."""

    def fire_event(self, event_type: str, data: Mapping[str, Any]) -> bool:
        """Fire a custom hub event."""

    def search_entity_id(self, uid: Any) -> str | None:
        """Find the entity carrying the given AirSend uid."""

    def search_entities(self, channel: Any, kind: str) -> list[str]:
        """Find entities bound to (channel, kind)."""

    def convert_notes_to_states(self, notes: Any) -> list[StateReading]:
        """Decode an AirSend note list into (kind, value) pairs."""


@runtime_checkable
class DeviceTransport(Protocol):
    """Sends one RPC to a bridge device and returns the parsed response.

    Implementations raise ``TransportFailure`` on any failure.
    """

    def call(self, device: Any, method: str, params: Mapping[str, Any] | None = None) -> Any:
        """Call ``/api/<method>`` on the device."""


__all__ = ["DeviceTransport", "HubClient"]
