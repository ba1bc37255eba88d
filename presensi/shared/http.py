from __future__ import annotations

import math
import re

from flask import jsonify, request

# upper bound of the integer primary-key columns
MAX_ID = 2**31 - 1

_DIGITS_RE = re.compile(r"^\d+$")


def json_payload() -> dict | None:
    """The request's JSON object, or ``None`` when the body is not one."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def error_response(code: str, status: int):
    return jsonify({"ok": False, "error": code}), status


def _finite_int(raw) -> int | None:
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


def bounded_int(raw, default: int, *, minimum: int = 1, maximum: int | None = None) -> int:
    """Parse a query-string integer, falling back to ``default`` when unusable."""
    value = default if raw in (None, "") else _finite_int(raw)
    if value is None or value < minimum:
        return default
    if maximum is not None:
        value = min(value, maximum)
    return value


def weeks_param(raw, default: int) -> int:
    """Weeks window in ``1..52``; out-of-range values use ``default``."""
    value = default if raw in (None, "") else _finite_int(raw)
    if value is None or value < 1 or value > 52:
        return default
    return value


def optional_int(raw) -> int | None:
    """A record id from a JSON body or query string.

    Only whole numbers (ints or digit strings) in ``1..MAX_ID`` are ids;
    anything else raises ``ValueError``.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValueError("boolean is not an id")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and _DIGITS_RE.match(raw.strip()):
        value = int(raw.strip())
    else:
        raise ValueError(f"not an id: {raw!r}")
    if value < 1 or value > MAX_ID:
        raise ValueError(f"id out of range: {raw!r}")
    return value
