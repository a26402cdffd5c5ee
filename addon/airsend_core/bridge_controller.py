"""Wiring: builds the add-on runtime from settings.

Everything here is constructed once at startup and passed by reference
into the HTTP layer; there are no module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

from .addon_config import AddonSettings
from .config_resolver import DeviceConfig, load_device_config_files
from .device_rpc import DeviceRpcClient
from .docparser import Strictness
from .hass_client import HassClient, load_token
from .legacy import LegacyEventTranslator
from .logging_setup import logger
from .ports import HubClient
from .registration import ListeningRegistrationManager, default_callback_url
from .state_store import RegistrationStore
from .translator import RadioEventTranslator


@dataclass
class AirsendBridge:
    settings: AddonSettings
    config: DeviceConfig
    hub: HubClient
    registration: ListeningRegistrationManager
    translator: RadioEventTranslator
    legacy: LegacyEventTranslator
    log_path: str | None = None


def build_bridge(
    settings: AddonSettings,
    config: DeviceConfig,
    hub: HubClient,
    rpc=None,
    log_path: str | None = None,
) -> AirsendBridge:
    rpc = rpc or DeviceRpcClient(default_credential=config.secrets.default_credential)
    callback_url = default_callback_url(settings.port, settings.callback_host)
    registration = ListeningRegistrationManager(
        config,
        rpc,
        RegistrationStore(settings.listening_state_file),
        callback_url,
    )
    return AirsendBridge(
        settings=settings,
        config=config,
        hub=hub,
        registration=registration,
        translator=RadioEventTranslator(config, hub),
        legacy=LegacyEventTranslator(hub),
        log_path=log_path,
    )


def start_bridge_controller(settings: AddonSettings, log_path: str | None = None) -> AirsendBridge:
    """Load token and device configuration, then build the runtime.

    Raises AuthorizationError when no hub token is available.
    """
    token = load_token(settings.token_file)
    hub = HassClient(settings.hass_api_base, token)
    strictness = Strictness.STRICT if settings.strict_config else Strictness.LENIENT
    config = load_device_config_files(settings.devices_file, settings.secrets_file, strictness)
    bridge = build_bridge(settings, config, hub, log_path=log_path)
    logger.info(
        {
            "event": "bridge_started",
            "devices": len(config),
            "callback_url": bridge.registration.callback_url,
        }
    )
    return bridge


__all__ = ["AirsendBridge", "build_bridge", "start_bridge_controller"]
