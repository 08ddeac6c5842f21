"""Calendar keys used to bucket and label sensor readings.

Every function here is pure. Datetimes are first moved into a single reference
zone (``DISPLAY_TIMEZONE``) so a reading always lands on the same calendar day
for a given install, whatever the zone of the host.

Month-relative weeks start on Monday, the same as ISO weeks: the 1st of the
month is always in week 1 and week 2 begins on the first Monday after it.
"""

from __future__ import annotations

import logging
import math
from datetime import date as date_type
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DateLike = Union[datetime, date_type]

# Epoch values above this are taken as milliseconds.
_EPOCH_MILLIS_CUTOFF = 10**11


@lru_cache
def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("Unknown time zone %r, using UTC", name)
        return timezone.utc


def parse_timestamp(value: object) -> datetime:
    """Parse a reading timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings (a trailing ``Z`` is allowed, naive values are
    UTC) and numeric epoch seconds or milliseconds.
    """
    if isinstance(value, bool):
        raise ValueError("Invalid timestamp format")
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_CUTOFF else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError("Invalid timestamp format") from exc
    if not isinstance(value, str):
        raise ValueError("Invalid timestamp format")

    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def to_reference_zone(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz or timezone.utc)


def iso_week_number(value: DateLike) -> int:
    """ISO 8601 week of the year (Monday weeks, week 1 holds the first Thursday)."""
    return value.isocalendar()[1]


def month_relative_week(value: DateLike) -> int:
    """1-based week of ``value`` within its month, weeks starting on Monday."""
    first_of_month = date_type(value.year, value.month, 1)
    offset = first_of_month.isoweekday()
    return math.ceil((value.day + offset - 1) / 7)


def day_key(value: DateLike) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def month_key(year: int, month: int) -> str:
    """Key of a month; ``month`` is 0-based."""
    return f"{year}-{month}"


def week_key(year: int, month: int, week: int) -> str:
    return f"{year}-{month}-Week{week}"


def month_name(value: DateLike) -> str:
    return value.strftime("%B")


def display_time(value: datetime) -> str:
    """Reading label such as ``"1 Jan, 09:05 AM"``."""
    return f"{value.day} {value:%b}, {value:%I:%M %p}"


def display_date(value: DateLike) -> str:
    """Short date such as ``"1 Jan"``."""
    return f"{value.day} {value:%b}"


def day_label(value: DateLike) -> str:
    """Day bucket label such as ``"Jan 01"``."""
    return value.strftime("%b %d")
