"""
Configuration resolver: secrets, device definitions and connection strings.

Secrets are parsed first so device definitions can reference them with
``!secret <name>``. The result is an immutable ``DeviceConfig`` that is
built once at startup and handed to every component that needs the
device table.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .core_types import (
    DEFAULT_RPC_PORT,
    DEFAULT_SECRET_NAME,
    ConfigurationWarning,
    Scalar,
)
from .docparser import Strictness, load
from .logging_setup import logger

SECRET_MARKER = "!secret"

# scheme://credential@host[:port]; host may be a bracketed IPv6 literal
CONNECTION_STRING_RE = re.compile(
    r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://"
    r"(?P<credential>[^@\s]+)@"
    r"(?P<host>\[[0-9A-Fa-f:.%\w]+\]|[^:/\s\[\]]+)"
    r"(?::(?P<port>\d+))?"
)


@dataclass(frozen=True)
class Channel:
    id: Scalar | None = None
    source: Scalar | None = None
    listen: bool = False

    def matches(self, channel_id: Any, source: Any) -> bool:
        """Loose match on string forms; ids arrive as int or str."""
        if self.id is None or self.source is None:
            return False
        return str(self.id) == str(channel_id) and str(self.source) == str(source)


@dataclass(frozen=True)
class Device:
    name: str
    host: str | None = None
    credential: str | None = None
    port: int = DEFAULT_RPC_PORT
    spurl: str | None = None
    channel: Channel | None = None
    type: int | None = None


@dataclass(frozen=True)
class ConnectionString:
    scheme: str
    credential: str
    host: str
    port: int | None = None

    @classmethod
    def parse(cls, value: str) -> ConnectionString | None:
        m = CONNECTION_STRING_RE.match(value.strip())
        if not m:
            return None
        host = m.group("host")
        if host.startswith("["):
            host = host[1:-1]
        port = m.group("port")
        return cls(
            scheme=m.group("scheme"),
            credential=m.group("credential"),
            host=host,
            port=int(port) if port else None,
        )


class SecretStore(Mapping[str, Scalar]):
    """Read-only mapping of secret name to scalar value."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values = MappingProxyType(
            {str(k): v for k, v in (values or {}).items() if not isinstance(v, (dict, list))}
        )

    def __getitem__(self, key: str) -> Scalar:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    @property
    def default_credential(self) -> str | None:
        value = self._values.get(DEFAULT_SECRET_NAME)
        return str(value) if value not in (None, "") else None

    def resolve(self, value: Any) -> Any:
        """Replace a ``!secret name`` reference; unknown names stay literal."""
        if not isinstance(value, str) or not value.startswith(SECRET_MARKER):
            return value
        key = value[len(SECRET_MARKER) :].strip()
        if key in self._values:
            return self._values[key]
        logger.warning({"event": "secret_not_found", "secret": key})
        return value


@dataclass(frozen=True)
class DeviceConfig:
    """Immutable device table plus the secrets it was resolved against."""

    devices: Mapping[str, Device] = field(default_factory=lambda: MappingProxyType({}))
    secrets: SecretStore = field(default_factory=SecretStore)
    warnings: tuple[ConfigurationWarning, ...] = ()

    def __len__(self) -> int:
        return len(self.devices)

    def __iter__(self) -> Iterator[Device]:
        return iter(self.devices.values())

    def effective_credential(self, device: Device) -> str | None:
        return device.credential or self.secrets.default_credential

    def find_by_channel(self, channel_id: Any, source: Any) -> Device | None:
        """First device in configuration order whose channel matches."""
        for device in self.devices.values():
            if device.channel is not None and device.channel.matches(channel_id, source):
                return device
        return None


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_channel(raw: Any) -> Channel | None:
    if not isinstance(raw, Mapping):
        return None
    listen = raw.get("listen", False)
    if isinstance(listen, str):
        listen = listen.strip().lower() in {"1", "true", "yes", "on"}
    return Channel(id=raw.get("id"), source=raw.get("source"), listen=bool(listen))


def resolve_device(
    name: str, raw: Mapping[str, Any], secrets: SecretStore
) -> tuple[Device, list[ConfigurationWarning]]:
    """Build one Device; problems are returned as warnings, never raised."""
    warnings: list[ConfigurationWarning] = []
    host = raw.get("ip")
    credential = secrets.resolve(raw.get("password"))
    port = _to_int(raw.get("port")) or DEFAULT_RPC_PORT
    spurl = raw.get("spurl")

    if spurl is not None:
        spurl = str(secrets.resolve(spurl))
        parsed = ConnectionString.parse(spurl)
        if parsed is None:
            warnings.append(
                ConfigurationWarning(name, "connection string does not match scheme://credential@host[:port]")
            )
        else:
            credential = parsed.credential
            host = parsed.host
            if parsed.port is not None:
                port = parsed.port

    if spurl is None and host is None:
        warnings.append(ConfigurationWarning(name, "missing connection info"))

    device = Device(
        name=name,
        host=str(host) if host is not None else None,
        credential=str(credential) if credential not in (None, "") else None,
        port=port,
        spurl=spurl,
        channel=_parse_channel(raw.get("channel")),
        type=_to_int(raw.get("type")),
    )
    return device, warnings


def find_duplicate_routes(devices: Mapping[str, Device]) -> list[ConfigurationWarning]:
    """Warn when several devices share a (channel id, source) pair.

    Routing stays first-match-wins; later devices are shadowed.
    """
    seen: dict[tuple[str, str], str] = {}
    warnings: list[ConfigurationWarning] = []
    for device in devices.values():
        ch = device.channel
        if ch is None or ch.id is None or ch.source is None:
            continue
        route = (str(ch.id), str(ch.source))
        if route in seen:
            warnings.append(
                ConfigurationWarning(
                    device.name,
                    f"channel {route[0]}/source {route[1]} already routed to {seen[route]!r}; device is shadowed",
                )
            )
        else:
            seen[route] = device.name
    return warnings


def build_device_config(
    devices_doc: Any, secrets_doc: Any
) -> DeviceConfig:
    secrets = SecretStore(secrets_doc if isinstance(secrets_doc, Mapping) else {})
    warnings: list[ConfigurationWarning] = []

    if not isinstance(devices_doc, Mapping):
        devices_doc = {}
    entries = devices_doc["devices"] if isinstance(devices_doc.get("devices"), Mapping) else devices_doc

    table: dict[str, Device] = {}
    for name, raw in entries.items():
        if not isinstance(raw, Mapping):
            warnings.append(ConfigurationWarning(str(name), "device definition is not a mapping"))
            continue
        device, device_warnings = resolve_device(str(name), raw, secrets)
        table[device.name] = device
        warnings.extend(device_warnings)

    warnings.extend(find_duplicate_routes(table))
    for w in warnings:
        logger.warning({"event": "configuration_warning", **w.as_dict()})
    logger.info({"event": "device_config_loaded", "devices": len(table), "warnings": len(warnings)})
    return DeviceConfig(
        devices=MappingProxyType(table),
        secrets=secrets,
        warnings=tuple(warnings),
    )


def load_device_config(
    devices_text: str,
    secrets_text: str = "",
    strictness: Strictness = Strictness.LENIENT,
) -> DeviceConfig:
    """Parse secrets first, then device definitions, and resolve them."""
    secrets_doc = load(secrets_text, strictness) if secrets_text else {}
    devices_doc = load(devices_text, strictness) if devices_text else {}
    return build_device_config(devices_doc, secrets_doc)


def _read_text(path: str | Path, kind: str) -> str:
    p = Path(path)
    if not p.exists():
        logger.warning({"event": "config_file_not_found", "kind": kind, "file": str(p)})
        return ""
    return p.read_text(encoding="utf-8")


def load_device_config_files(
    devices_path: str | Path,
    secrets_path: str | Path,
    strictness: Strictness = Strictness.LENIENT,
) -> DeviceConfig:
    return load_device_config(
        _read_text(devices_path, "devices"),
        _read_text(secrets_path, "secrets"),
        strictness,
    )


__all__ = [
    "Channel",
    "ConnectionString",
    "Device",
    "DeviceConfig",
    "SecretStore",
    "build_device_config",
    "find_duplicate_routes",
    "load_device_config",
    "load_device_config_files",
    "resolve_device",
]
