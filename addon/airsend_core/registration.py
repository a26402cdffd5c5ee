"""
Listening registration: arms each configured device to forward radio
events to this add-on.

Per device: ``setListenChannel`` then ``setCallback``. Only a device for
which both calls succeed is recorded as enabled. A device that accepted the
channel but rejected the callback stays armed on the bridge while the
snapshot does not list it; nothing reconciles the two.
"""

from __future__ import annotations

import socket
import threading
import time
from typing import Any

from .config_resolver import DeviceConfig
from .core_types import DEFAULT_RPC_PORT, RegistrationSummary, TransportFailure
from .logging_setup import logger
from .ports import DeviceTransport
from .state_store import RegistrationStore

WEBHOOK_PATH = "/webhook"


def default_callback_url(port: int = DEFAULT_RPC_PORT, host: str | None = None) -> str:
    """Callback target on this add-on's own address."""
    if not host:
        try:
            host = socket.gethostbyname(socket.gethostname())
        except OSError:
            host = "127.0.0.1"
    return f"http://{host}:{port}{WEBHOOK_PATH}"


class ListeningRegistrationManager:
    def __init__(
        self,
        config: DeviceConfig,
        transport: DeviceTransport,
        store: RegistrationStore,
        callback_url: str,
        clock=time.time,
    ):
        self.config = config
        self.transport = transport
        self.store = store
        self.callback_url = callback_url
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: dict[str, Any] = store.load()

    @property
    def snapshot(self) -> dict[str, Any]:
        return dict(self._snapshot)

    def register_all(self) -> RegistrationSummary:
        """Arm every listening device. Never raises; failures are counted."""
        with self._lock:
            return self._register_all()

    def _register_all(self) -> RegistrationSummary:
        initialized = 0
        failed = 0
        snapshot: dict[str, Any] = dict(self._snapshot)

        for device in self.config:
            channel = device.channel
            if channel is None or not channel.listen:
                continue

            credential = self.config.effective_credential(device)
            if not device.host or not credential or channel.id in (None, ""):
                logger.warning({"event": "registration_missing_config", "device": device.name})
                failed += 1
                continue

            try:
                self.transport.call(device, "setListenChannel", {"channel": channel.id})
            except TransportFailure as exc:
                logger.warning(
                    {"event": "registration_listen_failed", "device": device.name, "error": str(exc)}
                )
                failed += 1
                continue

            try:
                self.transport.call(device, "setCallback", {"url": self.callback_url})
            except TransportFailure as exc:
                logger.warning(
                    {"event": "registration_callback_failed", "device": device.name, "error": str(exc)}
                )
                failed += 1
                continue

            snapshot[device.name] = {
                "enabled": True,
                "channel": channel.id,
                "timestamp": int(self._clock()),
            }
            initialized += 1
            logger.info(
                {"event": "registration_initialized", "device": device.name, "channel": channel.id}
            )

        self._snapshot = snapshot
        try:
            self.store.save(snapshot)
        except OSError as exc:
            logger.error({"event": "listening_state_save_failed", "error": str(exc)})

        summary = RegistrationSummary(initialized=initialized, failed=failed, total=len(self.config))
        logger.info({"event": "registration_complete", **summary.as_dict()})
        return summary

    def status(self) -> dict[str, Any]:
        return {
            "devices": len(self.config),
            "listening": self.snapshot,
            "callback_url": self.callback_url,
        }


__all__ = ["ListeningRegistrationManager", "default_callback_url", "WEBHOOK_PATH"]
