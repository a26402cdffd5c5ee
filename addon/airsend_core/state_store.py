"""Listening-registration snapshot: one JSON object, overwritten atomically."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .logging_setup import logger


def _write_atomic(path: Path, content: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp") if path.suffix else Path(str(path) + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(path)


class RegistrationStore:
    """Reads and overwrites the registration snapshot file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning({"event": "listening_state_unreadable", "file": str(self.path), "error": str(exc)})
            return {}
        if not isinstance(data, dict):
            logger.warning({"event": "listening_state_not_mapping", "file": str(self.path)})
            return {}
        return data

    def save(self, snapshot: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _write_atomic(self.path, json.dumps(snapshot, indent=4))
        logger.debug({"event": "listening_state_saved", "file": str(self.path), "devices": len(snapshot)})


__all__ = ["RegistrationStore"]
