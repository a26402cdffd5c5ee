"""
HTTP surface of the add-on.

| Path          | Behavior                                        |
|---------------|-------------------------------------------------|
| /initialize   | run listening registration                      |
| /webhook      | translate one radio event                       |
| /status       | device count, registration snapshot, callback   |
| /logs         | tail of the add-on log file                     |
| anything else | legacy bulk push events                         |

Every method is accepted on every path. One middleware is the error
boundary: it rejects requests while no hub credential is held and turns
any unrecovered exception into a generic 500.
"""

from __future__ import annotations

import json
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from . import __version__
from .bridge_controller import AirsendBridge
from .core_types import AuthorizationError
from .legacy import parse_bulk_body
from .logging_setup import logger, tail_log_lines
from .util import clamp, parse_int

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
DEFAULT_LOG_LINES = 100
MAX_LOG_LINES = 1000


def create_app(bridge: AirsendBridge) -> FastAPI:
    if not bridge.hub.is_authorized():
        raise AuthorizationError("missing Home Assistant API token")

    app = FastAPI(title="AirSend Reception", version=__version__)
    app.state.bridge = bridge

    @app.middleware("http")
    async def error_boundary(request: Request, call_next):
        if not bridge.hub.is_authorized():
            logger.error({"event": "unauthorized_request", "path": request.url.path})
            return PlainTextResponse("Unauthorized\n", status_code=401)
        logger.debug({"event": "request", "method": request.method, "path": request.url.path})
        try:
            return await call_next(request)
        except Exception:
            logger.exception({"event": "request_failed", "method": request.method, "path": request.url.path})
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.api_route("/initialize", methods=ALL_METHODS)
    def initialize():
        summary = bridge.registration.register_all()
        return {
            "success": summary.failed == 0,
            "result": summary.as_dict(),
            "timestamp": int(time.time()),
        }

    @app.api_route("/webhook", methods=ALL_METHODS)
    async def webhook(request: Request):
        raw = await request.body()
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if not isinstance(data, dict) or not data:
            logger.warning({"event": "webhook_invalid_json", "size": len(raw)})
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)
        result = await run_in_threadpool(bridge.translator.handle, data)
        return {"success": result, "timestamp": int(time.time())}

    @app.api_route("/status", methods=ALL_METHODS)
    def status():
        body = bridge.registration.status()
        body["api_authorized"] = bridge.hub.is_authorized()
        body["timestamp"] = int(time.time())
        return body

    @app.api_route("/logs", methods=ALL_METHODS)
    def logs(lines: str | None = None):
        count = clamp(parse_int(lines, DEFAULT_LOG_LINES), 1, MAX_LOG_LINES)
        content = tail_log_lines(bridge.log_path, count)
        if content is None:
            return PlainTextResponse("No logs available\n")
        return PlainTextResponse(content)

    @app.api_route("/{path:path}", methods=ALL_METHODS)
    async def legacy_events(request: Request, path: str):
        payload = parse_bulk_body(await request.body())
        await run_in_threadpool(bridge.legacy.handle_bulk, payload)
        return {"success": True}

    return app


__all__ = ["create_app"]
