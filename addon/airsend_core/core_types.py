"""Small stable result types and the error taxonomy used across airsend_core.

Docstrings here are intentionally short; these types are imported by
nearly every module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# ---------------------------
# Simple aliases (stable)
# ---------------------------
Scalar = bool | int | float | str
# (kind, value) pair decoded from a note list
StateReading = tuple[str, Any]

ROLLER_SHUTTER_TYPE = 4099
DEFAULT_RPC_PORT = 33863
DEFAULT_SECRET_NAME = "airsend_password"


# ---------------------------
# Error taxonomy
# ---------------------------
class AirsendError(Exception):
    """Base class for add-on errors."""


class TransportFailure(AirsendError):
    """A device RPC or hub call did not complete."""


class MalformedInput(AirsendError):
    """Input could not be parsed or lacks required fields."""


class AuthorizationError(AirsendError):
    """No hub credential is available; the add-on must not serve."""


@dataclass(frozen=True)
class ConfigurationWarning:
    """Non-fatal configuration problem attached to a device (or the file)."""

    device: str | None
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"device": self.device, "message": self.message}


@dataclass(frozen=True)
class RegistrationSummary:
    initialized: int = 0
    failed: int = 0
    total: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "initialized": self.initialized,
            "failed": self.failed,
            "total": self.total,
        }


__all__ = [
    "DEFAULT_RPC_PORT",
    "DEFAULT_SECRET_NAME",
    "ROLLER_SHUTTER_TYPE",
    "AirsendError",
    "AuthorizationError",
    "ConfigurationWarning",
    "MalformedInput",
    "RegistrationSummary",
    "Scalar",
    "StateReading",
    "TransportFailure",
]
