"""Turn raw sensor-data payloads into calendar-keyed readings."""

from __future__ import annotations

import logging
import math
from datetime import datetime, tzinfo
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from models.records import FormattedReading
from services import calendar_keys

logger = logging.getLogger(__name__)


def _moisture(raw: Mapping[str, Any], field: str) -> float:
    """Missing sensor values count as 0; anything else must be a finite number."""
    value = raw.get(field)
    if value is None:
        return 0.0
    return _number(value)


def _optional(raw: Mapping[str, Any], field: str) -> Optional[float]:
    value = raw.get(field)
    if value is None:
        return None
    try:
        return _number(value)
    except ValueError:
        return None


def _number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("invalid numeric value")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("invalid numeric value") from exc
    if not math.isfinite(parsed):
        raise ValueError("invalid numeric value")
    return parsed


def format_reading(raw: Mapping[str, Any], tz: Optional[tzinfo] = None) -> FormattedReading:
    """Build a :class:`FormattedReading`; raises ``ValueError`` on bad input."""
    try:
        parsed = calendar_keys.parse_timestamp(raw.get("timestamp"))
    except ValueError as exc:
        raise ValueError("invalid timestamp") from exc

    local = calendar_keys.to_reference_zone(parsed, tz)
    return FormattedReading(
        timestamp=str(raw.get("timestamp")),
        date=local,
        moisture1=_moisture(raw, "sensor1"),
        moisture2=_moisture(raw, "sensor2"),
        temperature=_optional(raw, "temperature"),
        humidity=_optional(raw, "humidity"),
        battery_level=_optional(raw, "batteryLevel"),
        year=local.year,
        month=local.month - 1,
        month_name=calendar_keys.month_name(local),
        iso_week=calendar_keys.iso_week_number(local),
        month_week=calendar_keys.month_relative_week(local),
        day_of_month=local.day,
        day_key=calendar_keys.day_key(local),
        time=calendar_keys.display_time(local),
        formatted_date=calendar_keys.display_date(local),
    )


def format_history(
    readings: Iterable[Mapping[str, Any]], tz: Optional[tzinfo] = None
) -> List[FormattedReading]:
    """Format every valid reading and return them oldest first.

    Records with an unparseable timestamp or a non-numeric moisture value are
    skipped and logged; the rest of the batch is kept.
    """
    formatted: List[FormattedReading] = []
    for row_number, raw in enumerate(readings, start=1):
        if not isinstance(raw, Mapping):
            logger.warning(
                "Skipping reading: not an object",
                extra={"row_number": row_number, "reason": "not an object"},
            )
            continue
        try:
            formatted.append(format_reading(raw, tz))
        except ValueError as exc:
            logger.warning(
                "Skipping reading: %s",
                exc,
                extra={
                    "row_number": row_number,
                    "reason": str(exc),
                    "invalid_value": raw.get("timestamp"),
                },
            )

    formatted.sort(key=lambda reading: reading.date)
    return formatted


def latest_reading(readings: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Newest reading by timestamp, without formatting the rest of the history."""
    latest: Optional[Tuple[datetime, Mapping[str, Any]]] = None
    for raw in readings:
        if not isinstance(raw, Mapping):
            continue
        try:
            parsed = calendar_keys.parse_timestamp(raw.get("timestamp"))
        except ValueError:
            continue
        # Ties keep the later record, as the API returns readings in insertion order.
        if latest is None or parsed >= latest[0]:
            latest = (parsed, raw)
    return latest[1] if latest else None
