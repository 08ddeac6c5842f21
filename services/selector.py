"""Narrow aggregated history down to the month, week and day a user picked.

Selection keys come straight from the UI, so a malformed key never raises: it
leaves the data unfiltered.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from models.records import (
    DayBucket,
    FormattedReading,
    MonthWeekBucket,
    SelectOption,
)
from services import calendar_keys

logger = logging.getLogger(__name__)

CURRENT_DAY = "current"

_MONTH_KEY_PATTERN = re.compile(r"(\d{1,4})-(\d{1,2})")
_WEEK_KEY_PATTERN = re.compile(r"(\d{1,4})-(\d{1,2})-Week(\d{1,2})")


@dataclass(frozen=True)
class Selection:
    month_key: str = ""
    week_key: str = ""
    day_key: str = ""


@dataclass(frozen=True)
class MonthSelection:
    daily: List[FormattedReading]
    weekly: List[DayBucket]


@dataclass(frozen=True)
class HistoryData:
    """Everything one data load produces."""

    readings: List[FormattedReading] = field(default_factory=list)
    day_buckets: List[DayBucket] = field(default_factory=list)
    month_week_buckets: List[MonthWeekBucket] = field(default_factory=list)
    months: List[SelectOption] = field(default_factory=list)
    default_month: str = ""


@dataclass(frozen=True)
class HistoryView:
    selection: Selection
    readings: List[FormattedReading]
    day_buckets: List[DayBucket]
    month_week_buckets: List[MonthWeekBucket]
    months: List[SelectOption]
    weeks: List[SelectOption]
    days: List[SelectOption]


def parse_month_key(month_key: Optional[str]) -> Optional[Tuple[int, int]]:
    if not month_key:
        return None
    match = _MONTH_KEY_PATTERN.fullmatch(month_key.strip())
    if match is None:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 0 <= month <= 11:
        return None
    return year, month


def parse_week_key(week_key: Optional[str]) -> Optional[Tuple[int, int, int]]:
    if not week_key:
        return None
    match = _WEEK_KEY_PATTERN.fullmatch(week_key.strip())
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def select_month(
    readings: Sequence[FormattedReading],
    day_buckets: Sequence[DayBucket],
    month_key: Optional[str],
) -> MonthSelection:
    """Readings and day buckets of one ``"{year}-{month}"`` (0-based month).

    An unset or malformed key returns both sets unfiltered.
    """
    parsed = parse_month_key(month_key)
    if parsed is None:
        if month_key:
            logger.debug("Ignoring malformed month key", extra={"invalid_value": month_key})
        return MonthSelection(daily=list(readings), weekly=list(day_buckets))

    year, month = parsed
    return MonthSelection(
        daily=[entry for entry in readings if entry.year == year and entry.month == month],
        weekly=[entry for entry in day_buckets if entry.year == year and entry.month == month],
    )


def select_day(daily: Sequence[FormattedReading], day_key: Optional[str]) -> List[FormattedReading]:
    """Readings of one ``YYYY-MM-DD`` day; ``"current"`` means every day."""
    if not day_key or day_key == CURRENT_DAY:
        return list(daily)
    try:
        wanted = date.fromisoformat(day_key.strip())
    except ValueError:
        logger.debug("Ignoring malformed day key", extra={"invalid_value": day_key})
        return list(daily)
    return [entry for entry in daily if entry.day_key == calendar_keys.day_key(wanted)]


def select_week(weekly: Sequence[DayBucket], week_key: Optional[str]) -> List[DayBucket]:
    """Day buckets of one ``"{year}-{month}-Week{n}"``; malformed keys are a no-op."""
    parsed = parse_week_key(week_key)
    if parsed is None:
        return list(weekly)
    year, month, month_week = parsed
    return [
        entry
        for entry in weekly
        if entry.year == year and entry.month == month and entry.month_week == month_week
    ]


def month_options(
    readings: Iterable[Union[FormattedReading, DayBucket]],
) -> List[SelectOption]:
    months = {}
    for entry in readings:
        key = (entry.year, entry.month)
        if key not in months:
            months[key] = SelectOption(
                id=calendar_keys.month_key(entry.year, entry.month),
                name=f"{entry.month_name} {entry.year}",
            )
    return [months[key] for key in sorted(months)]


def week_options(day_buckets: Iterable[DayBucket]) -> List[SelectOption]:
    weeks = {}
    for entry in day_buckets:
        key = (entry.year, entry.month, entry.month_week)
        if key not in weeks:
            weeks[key] = SelectOption(id=entry.week_key, name=f"Week {entry.month_week}")
    return [weeks[key] for key in sorted(weeks)]


def day_options(daily: Iterable[FormattedReading]) -> List[SelectOption]:
    days = {}
    for entry in daily:
        if entry.day_key not in days:
            days[entry.day_key] = SelectOption(id=entry.day_key, name=entry.formatted_date)
    return [days[key] for key in sorted(days)]


def default_month_key(months: Sequence[SelectOption], now: datetime) -> str:
    """The month containing ``now`` if there is data for it, else the latest month."""
    current = calendar_keys.month_key(now.year, now.month - 1)
    if any(option.id == current for option in months):
        return current
    latest: Optional[Tuple[Tuple[int, int], str]] = None
    for option in months:
        key = parse_month_key(option.id)
        if key is None:
            continue
        if latest is None or key > latest[0]:
            latest = (key, option.id)
    return latest[1] if latest else ""


def resolve_view(history: HistoryData, selection: Selection) -> HistoryView:
    """Apply a selection to a loaded history.

    The month defaults to the one chosen at load time, the week to the first
    week of that month and the day to ``"current"``.
    """
    month_key = selection.month_key or history.default_month
    monthly = select_month(history.readings, history.day_buckets, month_key)

    weeks = week_options(monthly.weekly)
    week_key = selection.week_key or (weeks[0].id if weeks else "")
    day_key = selection.day_key or CURRENT_DAY

    parsed_month = parse_month_key(month_key)
    if parsed_month is None:
        month_weeks = list(history.month_week_buckets)
    else:
        month_weeks = [
            bucket
            for bucket in history.month_week_buckets
            if (bucket.year, bucket.month) == parsed_month
        ]

    return HistoryView(
        selection=Selection(month_key=month_key, week_key=week_key, day_key=day_key),
        readings=select_day(monthly.daily, day_key),
        day_buckets=select_week(monthly.weekly, week_key),
        month_week_buckets=month_weeks,
        months=list(history.months),
        weeks=weeks,
        days=day_options(monthly.daily),
    )
