"""Main entrypoint for the AirSend reception add-on.

Loads settings, starts logging, builds the bridge runtime and serves the
HTTP surface. Refuses to serve without a Home Assistant token.
"""

import atexit
import contextlib
import os
import sys
import tempfile
import threading
import time
from pathlib import Path

import uvicorn

from .addon_config import load_settings
from .bridge_controller import start_bridge_controller
from .core_types import AuthorizationError
from .logging_setup import logger, setup_logging
from .webapp import create_app

HB_INTERVAL = int(os.environ.get("HEARTBEAT_INTERVAL_SEC", "5"))
HB_PATH_MAIN = str(Path(tempfile.gettempdir()) / "airsend_heartbeat_main")


# --- Robust health heartbeat (atomic writes + fsync) ---
def _write_atomic(path: str, content: str) -> None:
    p = Path(path)
    tmp = Path(str(p) + ".tmp")
    with tmp.open("w") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
    tmp.replace(p)


def _start_heartbeat(path: str, interval: int) -> threading.Thread:
    interval = max(interval, 2)  # lower bound

    def _hb() -> None:
        while True:
            try:
                _write_atomic(path, f"{time.time()}\n")
            except OSError as e:
                logger.debug("heartbeat write failed: %s", e)
            time.sleep(interval)

    t = threading.Thread(target=_hb, daemon=True)
    t.start()
    return t


def _flush_logs() -> None:
    for h in getattr(logger, "handlers", []):
        if hasattr(h, "flush"):
            with contextlib.suppress(OSError, ValueError):
                h.flush()


def main() -> int:
    settings = load_settings()
    log_path = setup_logging(settings.log_level, settings.log_file)
    logger.info("airsend_core.main started (PID=%s)", os.getpid())
    atexit.register(_flush_logs)

    try:
        bridge = start_bridge_controller(settings, log_path=log_path)
        app = create_app(bridge)
    except AuthorizationError:
        logger.error({"event": "unauthorized", "reason": "missing API token"})
        _flush_logs()
        return 1

    if settings.enable_health_checks:
        logger.info("health check enabled: %s interval=%ss", HB_PATH_MAIN, HB_INTERVAL)
        _start_heartbeat(HB_PATH_MAIN, HB_INTERVAL)

    uvicorn.run(app, host=settings.bind_host, port=settings.port, log_config=None)
    logger.info("main exiting")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception:
        logger.exception("main.py top-level exception")
        _flush_logs()
        sys.exit(1)
