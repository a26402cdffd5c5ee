"""Small utility helpers used by the add-on."""

from .logging_setup import logger


def clamp(x: int, lo: int, hi: int) -> int:
    """Clamp ``x`` to the inclusive range ``[lo, hi]``.

    Returns ``lo`` if ``x < lo``, ``hi`` if ``x > hi``, otherwise ``x``.
    """
    logger.debug({"event": "util_clamp", "x": x, "lo": lo, "hi": hi})
    if x < lo:
        return lo
    if x > hi:
        return hi
    return x


def parse_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
