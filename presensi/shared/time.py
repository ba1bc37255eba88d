"""Calendar helpers for session ("event") dates.

Session dates are calendar concepts, not instants. They are handled as plain
``datetime.date`` values everywhere, so grouping and comparison by ISO key never
drifts with the server's timezone. Only "today" depends on a zone: the
community's local one (``EVENT_TIMEZONE``).
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "Asia/Jakarta"
SUNDAY = 6

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

logger = logging.getLogger("presensi.time")


class InvalidEventDate(ValueError):
    """Raised when a session date string is not a valid ``YYYY-MM-DD`` date."""


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def event_timezone() -> ZoneInfo:
    return ZoneInfo(_config("EVENT_TIMEZONE", DEFAULT_TIMEZONE) or DEFAULT_TIMEZONE)


def event_weekday() -> int:
    return int(_config("EVENT_WEEKDAY", SUNDAY))


def today_in_zone(tz: ZoneInfo | str | None = None) -> date:
    """Today's calendar date as observed in the community's timezone."""
    if tz is None:
        zone = event_timezone()
    elif isinstance(tz, str):
        zone = ZoneInfo(tz)
    else:
        zone = tz
    return datetime.now(zone).date()


def parse_date_key(value: str) -> date:
    text = (value or "").strip()
    if not _DATE_RE.match(text):
        raise InvalidEventDate(f"invalid date: {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidEventDate(f"invalid date: {value!r}") from exc


def to_event_date(
    value: str | None = None,
    *,
    strict: bool | None = None,
    tz: ZoneInfo | str | None = None,
) -> date:
    """Normalize an optional ``YYYY-MM-DD`` string into a session date.

    Without a value, today's date in the event timezone is used. A malformed
    value raises :class:`InvalidEventDate` when ``strict`` (the default, see
    ``STRICT_EVENT_DATES``); otherwise it falls back to today.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        return today_in_zone(tz)
    if strict is None:
        strict = bool(_config("STRICT_EVENT_DATES", True))
    try:
        return parse_date_key(value)
    except InvalidEventDate:
        if strict:
            raise
        logger.warning("[EVENT-DATE] malformed=%r fallback=today", value)
        return today_in_zone(tz)


def event_date_key(value: date | datetime | None) -> str | None:
    """Return the ``YYYY-MM-DD`` key of a session date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return value.isoformat()


def isoformat_utc(value: datetime | None) -> str | None:
    """Render a timestamp as ISO-8601 UTC with millisecond precision.

    Naive values are treated as UTC (SQLite drops the offset on the way back).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def week_start(value: date, weekday: int = SUNDAY) -> date:
    """Most recent ``weekday`` on or before ``value``."""
    return value - timedelta(days=(value.weekday() - weekday) % 7)


def is_occurrence_day(value: date, weekday: int = SUNDAY) -> bool:
    return value.weekday() == weekday
