"""
AirSend device RPC client.

Devices are addressed as ``sp://<credential>@<host>:<port>/api/<method>``.
``SpAdapter`` is a ``requests`` transport adapter mounted on ``sp://``:
it strips the credential from the address, sends it as a bearer token and
forwards the call over plain HTTP.
"""

from __future__ import annotations

import ipaddress
import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import requests
from requests.adapters import HTTPAdapter

from .config_resolver import Device
from .core_types import DEFAULT_RPC_PORT, TransportFailure
from .logging_setup import logger

SCHEME = "sp"
CONNECT_TIMEOUT_S = 5
READ_TIMEOUT_S = 10


class DeviceRpcError(TransportFailure):
    """Raised when a device RPC fails (transport, status or body)."""

    def __init__(self, message: str, method: str, status: int | None = None):
        super().__init__(message)
        self.method = method
        self.status = status


def format_host(host: str) -> str:
    """Bracket IPv6 literals for use in a URL authority."""
    try:
        if isinstance(ipaddress.ip_address(host.strip("[]")), ipaddress.IPv6Address):
            return f"[{host.strip('[]')}]"
    except ValueError:
        pass
    return host


def build_device_url(
    host: str, credential: str, method: str, port: int | None = None
) -> str:
    port = port or DEFAULT_RPC_PORT
    return f"{SCHEME}://{quote(credential, safe='')}@{format_host(host)}:{port}/api/{method}"


class SpAdapter(HTTPAdapter):
    """Transport adapter translating ``sp://`` addresses to HTTP."""

    def send(self, request, **kwargs):
        parts = urlsplit(request.url)
        if parts.scheme == SCHEME:
            netloc = parts.netloc
            if "@" in netloc:
                userinfo, netloc = netloc.rsplit("@", 1)
                request.headers["Authorization"] = f"Bearer {unquote(userinfo)}"
            request.url = urlunsplit(("http", netloc, parts.path, parts.query, parts.fragment))
        return super().send(request, **kwargs)


def make_session() -> requests.Session:
    session = requests.Session()
    session.mount(f"{SCHEME}://", SpAdapter())
    return session


class DeviceRpcClient:
    """Authenticated RPCs to AirSend devices. Calls are never retried."""

    def __init__(
        self,
        session: requests.Session | None = None,
        connect_timeout: float = CONNECT_TIMEOUT_S,
        read_timeout: float = READ_TIMEOUT_S,
        default_credential: str | None = None,
    ):
        self.session = session or make_session()
        self.timeout = (connect_timeout, read_timeout)
        self.default_credential = default_credential

    def call(
        self,
        device: Device,
        method: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Call ``/api/<method>`` and return the parsed JSON body.

        Raises DeviceRpcError on transport errors, non-2xx status or a
        body that is not JSON. An empty body parses as ``{}``.
        """
        credential = device.credential or self.default_credential
        if not device.host or not credential:
            raise DeviceRpcError(f"missing configuration for {device.name}", method)

        url = build_device_url(device.host, credential, method, device.port)
        log_ctx = {"device": device.name, "host": format_host(device.host), "method": method}
        try:
            if params:
                resp = self.session.post(
                    url,
                    data=json.dumps(dict(params)),
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
            else:
                resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error({"event": "device_rpc_failed", **log_ctx, "error": str(exc)})
            raise DeviceRpcError(str(exc), method) from exc

        if not 200 <= resp.status_code < 300:
            logger.error(
                {
                    "event": "device_rpc_http_error",
                    **log_ctx,
                    "http_code": resp.status_code,
                    "response": resp.text[:200],
                }
            )
            raise DeviceRpcError(f"HTTP {resp.status_code}", method, resp.status_code)

        body = resp.text
        if not body.strip():
            result: Any = {}
        else:
            try:
                result = json.loads(body)
            except ValueError as exc:
                logger.error({"event": "device_rpc_bad_body", **log_ctx, "response": body[:200]})
                raise DeviceRpcError("malformed response", method, resp.status_code) from exc

        logger.debug({"event": "device_rpc_ok", **log_ctx, "response": body[:200]})
        return result


__all__ = [
    "DeviceRpcClient",
    "DeviceRpcError",
    "SpAdapter",
    "build_device_url",
    "format_host",
    "make_session",
]
