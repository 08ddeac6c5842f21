"""Aggregation logic for sensor readings.

Aggregation is two-stage: readings are averaged per calendar day, and
month-week buckets average those day means. A day therefore weighs the same
in its week whether it holds one reading or a hundred.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from models.records import DayBucket, FormattedReading, MonthWeekBucket
from services import calendar_keys

logger = logging.getLogger(__name__)


@dataclass
class _DayAccumulator:
    """Running sums for one calendar day."""

    first: FormattedReading
    count: int = 0
    moisture1_total: float = 0.0
    moisture2_total: float = 0.0
    temperature_total: float = 0.0
    temperature_count: int = 0
    humidity_total: float = 0.0
    humidity_count: int = 0

    def add(self, reading: FormattedReading) -> None:
        self.count += 1
        self.moisture1_total += reading.moisture1
        self.moisture2_total += reading.moisture2
        if reading.temperature is not None:
            self.temperature_total += reading.temperature
            self.temperature_count += 1
        if reading.humidity is not None:
            self.humidity_total += reading.humidity
            self.humidity_count += 1

    def to_bucket(self) -> DayBucket:
        first = self.first
        return DayBucket(
            day_key=first.day_key,
            timestamp=first.timestamp,
            date=first.date,
            moisture1=self.moisture1_total / self.count,
            moisture2=self.moisture2_total / self.count,
            temperature=(
                self.temperature_total / self.temperature_count
                if self.temperature_count
                else None
            ),
            humidity=(
                self.humidity_total / self.humidity_count if self.humidity_count else None
            ),
            reading_count=self.count,
            year=first.year,
            month=first.month,
            month_name=first.month_name,
            iso_week=first.iso_week,
            month_week=first.month_week,
            day_of_month=first.day_of_month,
            time=calendar_keys.day_label(first.date),
            formatted_date=first.formatted_date,
        )


def _accumulate(
    accumulators: Dict[str, _DayAccumulator], readings: Iterable[FormattedReading]
) -> None:
    for reading in readings:
        accumulator = accumulators.get(reading.day_key)
        if accumulator is None:
            accumulator = _DayAccumulator(first=reading)
            accumulators[reading.day_key] = accumulator
        accumulator.add(reading)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def to_day_buckets(self, readings: Iterable[FormattedReading]) -> List[DayBucket]:
        ordered = sorted(readings, key=lambda reading: reading.date)
        accumulators: Dict[str, _DayAccumulator] = {}
        _accumulate(accumulators, ordered)
        buckets = [accumulator.to_bucket() for accumulator in accumulators.values()]
        logger.debug(
            "Built day buckets",
            extra={"reading_count": len(ordered), "day_count": len(buckets)},
        )
        return buckets

    def to_month_week_buckets(self, day_buckets: Iterable[DayBucket]) -> List[MonthWeekBucket]:
        """Average day means per ``(year, month, month_week)``, one weight per day."""
        groups: Dict[Tuple[int, int, int], List[DayBucket]] = {}
        for bucket in sorted(day_buckets, key=lambda item: item.date):
            key = (bucket.year, bucket.month, bucket.month_week)
            groups.setdefault(key, []).append(bucket)

        weeks: List[MonthWeekBucket] = []
        for (year, month, month_week), days in sorted(groups.items()):
            weeks.append(
                MonthWeekBucket(
                    week_key=calendar_keys.week_key(year, month, month_week),
                    label=f"Week {month_week}",
                    year=year,
                    month=month,
                    month_week=month_week,
                    iso_week=days[0].iso_week,
                    moisture1=sum(day.moisture1 for day in days) / len(days),
                    moisture2=sum(day.moisture2 for day in days) / len(days),
                    day_count=len(days),
                )
            )
        return weeks


class DayBucketIndex:
    """Day buckets kept up to date by merging only newly arrived readings.

    Readings at or before the newest timestamp already merged are ignored, so
    feeding the full history again is harmless. ``day_buckets()`` gives the
    same values :meth:`Aggregator.to_day_buckets` would for the same readings.
    """

    def __init__(self, readings: Iterable[FormattedReading] = ()) -> None:
        self._days: Dict[str, _DayAccumulator] = {}
        self._watermark: Optional[datetime] = None
        self.merge(readings)

    @property
    def watermark(self) -> Optional[datetime]:
        return self._watermark

    def merge(self, readings: Iterable[FormattedReading]) -> int:
        fresh = sorted(
            (
                reading
                for reading in readings
                if self._watermark is None or reading.date > self._watermark
            ),
            key=lambda reading: reading.date,
        )
        if not fresh:
            return 0
        _accumulate(self._days, fresh)
        self._watermark = fresh[-1].date
        return len(fresh)

    def day_buckets(self) -> List[DayBucket]:
        buckets = [accumulator.to_bucket() for accumulator in self._days.values()]
        buckets.sort(key=lambda bucket: bucket.date)
        return buckets

    def __len__(self) -> int:
        return len(self._days)
