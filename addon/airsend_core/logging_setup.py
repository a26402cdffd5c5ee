import atexit
import json
import logging
import os
import pathlib
import re
import sys
import tempfile
from collections import deque

# Expanded redaction pattern
REDACT = re.compile(
    r"(?i)[\"']?\b(pass(word)?|token|apikey|api_key|secret|bearer|credential)\b[\"']?\s*[:=]\s*[\"']?([^\"',\s]+)[\"']?"
)
# sp://<credential>@host embeds the device password in the address
REDACT_SPURL = re.compile(r"(?i)\b(sp://)[^@\s\"']+@")

DEFAULT_LOG_PATH = "/share/airsend_reception.log"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def redact(s: str) -> str:
    s = REDACT.sub(lambda m: f"{m.group(1)}=***REDACTED***", s)
    return REDACT_SPURL.sub(lambda m: f"{m.group(1)}***REDACTED***@", s)


def render(msg) -> str:
    line = json.dumps(msg, default=str) if isinstance(msg, dict) else str(msg)
    return redact(line)


class JsonRedactingHandler(logging.StreamHandler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = record.msg
            line = render(msg) if isinstance(msg, dict) else redact(record.getMessage())
            stream = self.stream if hasattr(self, "stream") else sys.stdout
            stream.write(f"[{record.levelname}] {line}\n")
        except Exception:
            self.handleError(record)


class RedactingFormatter(logging.Formatter):
    """Formatter for the log file: dict messages become one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            record = logging.makeLogRecord(record.__dict__)
            record.msg = json.dumps(record.msg, default=str)
            record.args = None
        return redact(super().format(record))


logger = logging.getLogger("addon.airsend_core")


def _writable(path: str) -> bool:
    try:
        p = pathlib.Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "a"):
            pass
        return True
    except OSError:
        return False


def resolve_log_path(configured: str | None = None) -> str | None:
    """
    Pref configured path, then AIRSEND_LOG_PATH env, then the default
    share path, then the temp dir. None means stderr only.
    """
    candidate = configured or os.environ.get("AIRSEND_LOG_PATH") or DEFAULT_LOG_PATH
    if _writable(candidate):
        return candidate
    tmp = os.path.join(tempfile.gettempdir(), "airsend_reception.log")
    fallback = tmp if _writable(tmp) else None
    logger.warning(
        {
            "event": "log_path_fallback",
            "requested": candidate,
            "target": fallback or "stderr",
        }
    )
    return fallback


def init_file_handler(configured: str | None = None) -> tuple[logging.Handler, str | None]:
    path = resolve_log_path(configured)
    if path:
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(RedactingFormatter(LOG_FORMAT))
    return handler, path


def get_log_level(override: str | None = None) -> int:
    """Resolve log level from override or environment.

    The function checks, in order: the override, LOG_LEVEL, AIRSEND_LOG_LEVEL
    and falls back to logging.INFO for invalid or missing values.
    """
    lvl = override or os.environ.get("LOG_LEVEL") or os.environ.get("AIRSEND_LOG_LEVEL")
    if not lvl:
        return logging.INFO
    return LOG_LEVEL_MAP.get(str(lvl).upper(), logging.INFO)


def setup_logging(level: str | None = None, log_path: str | None = None) -> str | None:
    """(Re)initialize the add-on handlers and return the active log file path.

    Handlers are replaced, not appended, so a restart does not duplicate lines.
    """
    numeric_level = get_log_level(level)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    console = JsonRedactingHandler(sys.stdout)
    console.setLevel(numeric_level)
    logger.addHandler(console)

    file_handler, path = init_file_handler(log_path)
    file_handler.setLevel(numeric_level)
    logger.addHandler(file_handler)
    logger.propagate = False
    return path


def tail_log_lines(path: str | None, lines: int) -> str | None:
    """Return the last ``lines`` lines of the log file, or None if missing."""
    if not path or not os.path.exists(path):
        return None
    with open(path, encoding="utf-8", errors="replace") as fh:
        tail = deque(fh, maxlen=lines)
    return "".join(tail)


def _flush_all_log_handlers() -> None:
    """Flush handlers safely, skipping streams that are already closed."""
    for h in getattr(logger, "handlers", []):
        stream = getattr(h, "stream", None)
        if stream is not None and getattr(stream, "closed", False) is True:
            continue
        try:
            h.flush()
        except (OSError, ValueError):
            continue


atexit.register(_flush_all_log_handlers)


__all__ = [
    "LOG_LEVEL_MAP",
    "JsonRedactingHandler",
    "RedactingFormatter",
    "get_log_level",
    "init_file_handler",
    "logger",
    "redact",
    "setup_logging",
    "tail_log_lines",
]
