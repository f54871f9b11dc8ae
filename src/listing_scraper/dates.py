from __future__ import annotations

import re
from datetime import datetime, timezone

from dateutil import parser as date_parser
from dateutil.parser import ParserError

_NUMERIC_DATETIME = re.compile(r"^([0-3]?\d)[/\-]([0-1]?\d)[/\-](\d{4})\s+([0-2]?\d):([0-5]\d)$")
_NUMERIC_DATE = re.compile(r"^([0-3]?\d)[/\-]([0-1]?\d)[/\-](\d{4})$")
_MONTH_DATETIME = re.compile(
    r"^([0-3]?\d)[\- ]([A-Za-z]{3})[\- ](\d{4})\s+([0-1]?\d):([0-5]\d)\s*(AM|PM)$",
    re.IGNORECASE,
)
_MONTH_DATE = re.compile(r"^([0-3]?\d)[\- ]([A-Za-z]{3})[\- ](\d{4})$")

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

# Loose shape check used when scanning free text for something date-like.
DATE_LIKE = re.compile(
    r"\b\d{1,2}[ /\-](?:\d{1,2}|[A-Za-z]{3,9})[ /\-]\d{4}\b"
    r"|\b[A-Za-z]{3,9} \d{1,2}, \d{4}\b"
)


def _parse_iso(text: str) -> datetime | None:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    return _as_utc(parsed)


def _as_utc(parsed: datetime) -> datetime:
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_free_text(text: str) -> datetime | None:
    default = datetime.now(timezone.utc).replace(tzinfo=None, hour=0, minute=0, second=0, microsecond=0)
    try:
        return _as_utc(date_parser.parse(text, dayfirst=True, default=default))
    except (ParserError, ValueError, OverflowError):
        return None


def _utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime | None:
    try:
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        return None


def _to_24h(hour: int, meridiem: str) -> int:
    meridiem = meridiem.upper()
    if meridiem == "PM" and hour != 12:
        return hour + 12
    if meridiem == "AM" and hour == 12:
        return 0
    return hour


def normalize_date(text: str | None) -> datetime | None:
    if not text:
        return None
    value = re.sub(r"\s+", " ", str(text)).strip()
    if not value:
        return None

    parsed = _parse_iso(value)
    if parsed is not None:
        return parsed

    match = _NUMERIC_DATETIME.match(value)
    if match:
        day, month, year, hour, minute = (int(part) for part in match.groups())
        return _utc(year, month, day, hour, minute)

    match = _NUMERIC_DATE.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return _utc(year, month, day)

    match = _MONTH_DATETIME.match(value)
    if match:
        day, mon, year, hour, minute, meridiem = match.groups()
        month = _MONTHS.get(mon.casefold())
        if month is None or int(hour) > 12:
            return None
        return _utc(int(year), month, int(day), _to_24h(int(hour), meridiem), int(minute))

    match = _MONTH_DATE.match(value)
    if match:
        day, mon, year = match.groups()
        month = _MONTHS.get(mon.casefold())
        if month is None:
            return None
        return _utc(int(year), month, int(day))

    return _parse_free_text(value)
