"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TypedDict, Union


class RawReading(TypedDict, total=False):
    """A reading as returned by the sensor-data API, before any parsing."""

    timestamp: str
    sensor1: Union[float, int, str, None]
    sensor2: Union[float, int, str, None]
    temperature: Optional[float]
    humidity: Optional[float]
    batteryLevel: Optional[float]


@dataclass(frozen=True, slots=True)
class FormattedReading:
    """A single reading enriched with its calendar keys."""

    timestamp: str
    date: datetime
    moisture1: float
    moisture2: float
    temperature: Optional[float]
    humidity: Optional[float]
    battery_level: Optional[float]
    year: int
    month: int
    month_name: str
    iso_week: int
    month_week: int
    day_of_month: int
    day_key: str
    time: str
    formatted_date: str

    @property
    def month_key(self) -> str:
        return f"{self.year}-{self.month}"


@dataclass(frozen=True, slots=True)
class DayBucket:
    """Mean sensor values for every reading of one calendar day."""

    day_key: str
    timestamp: str
    date: datetime
    moisture1: float
    moisture2: float
    temperature: Optional[float]
    humidity: Optional[float]
    reading_count: int
    year: int
    month: int
    month_name: str
    iso_week: int
    month_week: int
    day_of_month: int
    time: str
    formatted_date: str

    @property
    def month_key(self) -> str:
        return f"{self.year}-{self.month}"

    @property
    def week_key(self) -> str:
        return f"{self.year}-{self.month}-Week{self.month_week}"


@dataclass(frozen=True, slots=True)
class MonthWeekBucket:
    """Mean of the day buckets sharing a month-relative week."""

    week_key: str
    label: str
    year: int
    month: int
    month_week: int
    iso_week: int
    moisture1: float
    moisture2: float
    day_count: int


@dataclass(frozen=True, slots=True)
class SelectOption:
    """An entry of a month, week or day picker."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class CurrentReading:
    """Point-in-time values the irrigation decision is made on."""

    moisture1: Optional[float]
    moisture2: Optional[float]
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    battery_level: Optional[float] = None
    timestamp: Optional[str] = None
