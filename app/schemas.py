"""Pydantic schemas for threshold configuration and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LoadStatus(str, Enum):
    """Lifecycle of the dashboard's history load."""

    idle = "idle"
    loading = "loading"
    ready = "ready"
    failed = "failed"


class SensorPriority(str, Enum):
    """Which sensor(s) gate irrigation. ``both`` means either sensor may trigger it."""

    sensor1 = "sensor1"
    sensor2 = "sensor2"
    both = "both"


class SensorThresholds(BaseModel):
    """Moisture levels (%) configured for one soil sensor."""

    irrigation_threshold: float = 20.0
    alert_threshold: float = 30.0
    optimal_min: float = 20.0
    optimal_max: float = 80.0


class IrrigationSettings(BaseModel):
    duration: float = Field(default=15.0, description="Irrigation run time in minutes.")
    re_irrigation_delay: float = Field(
        default=120.0, description="Minutes to wait after a run before irrigating again."
    )
    weather_integration: bool = True
    sensor_priority: SensorPriority = SensorPriority.sensor1


class ThresholdConfig(BaseModel):
    """Per-user irrigation configuration; absent fields take their defaults."""

    selected_crop_id: str = "custom"
    sensor1: SensorThresholds = Field(default_factory=SensorThresholds)
    sensor2: SensorThresholds = Field(default_factory=SensorThresholds)
    irrigation: IrrigationSettings = Field(default_factory=IrrigationSettings)


class ThresholdValidationError(ValueError):
    """Raised when a configuration breaks the threshold ordering rules."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def validate_threshold_config(config: ThresholdConfig) -> List[str]:
    """Return human readable problems with ``config``; empty when valid."""
    errors: List[str] = []
    for label, thresholds in (("Sensor 1", config.sensor1), ("Sensor 2", config.sensor2)):
        if thresholds.irrigation_threshold >= thresholds.alert_threshold:
            errors.append(f"{label}: Irrigation threshold must be lower than alert threshold")
        if thresholds.optimal_min >= thresholds.optimal_max:
            errors.append(f"{label}: Optimal minimum must be lower than maximum")
        if thresholds.irrigation_threshold < thresholds.optimal_min:
            errors.append(f"{label}: Irrigation threshold should not be below optimal minimum")

    if config.irrigation.duration < 1 or config.irrigation.duration > 60:
        errors.append("Irrigation duration must be between 1 and 60 minutes")
    if config.irrigation.re_irrigation_delay < 30:
        errors.append("Re-irrigation delay must be at least 30 minutes")
    return errors


class WeatherSnapshot(BaseModel):
    temperature: float
    feels_like: float
    humidity: float
    condition: str
    location: str
    wind_speed: float
    precipitation: float = Field(..., description="Cloud cover (%) used as a rain proxy.")


DEFAULT_WEATHER = WeatherSnapshot(
    temperature=25.0,
    feels_like=25.0,
    humidity=60.0,
    condition="unavailable",
    location="unknown",
    wind_speed=0.0,
    precipitation=0.0,
)


class _AttributeModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class OptionOut(_AttributeModel):
    id: str
    name: str


class ReadingOut(_AttributeModel):
    timestamp: str
    date: datetime
    moisture1: float
    moisture2: float
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    battery_level: Optional[float] = None
    year: int
    month: int
    month_name: str
    iso_week: int
    month_week: int
    day_of_month: int
    day_key: str
    time: str
    formatted_date: str


class DayBucketOut(_AttributeModel):
    day_key: str
    timestamp: str
    date: datetime
    moisture1: float
    moisture2: float
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    reading_count: int = Field(..., ge=1)
    year: int
    month: int
    month_name: str
    iso_week: int
    month_week: int
    day_of_month: int
    time: str
    formatted_date: str


class MonthWeekBucketOut(_AttributeModel):
    week_key: str
    label: str
    year: int
    month: int
    month_week: int
    iso_week: int
    moisture1: float
    moisture2: float
    day_count: int = Field(..., ge=1)


class SelectionOut(_AttributeModel):
    month_key: str
    week_key: str
    day_key: str


class HistoryResponse(_AttributeModel):
    """Readings, day buckets and month-week buckets for one selection."""

    selection: SelectionOut
    readings: List[ReadingOut] = Field(default_factory=list)
    day_buckets: List[DayBucketOut] = Field(default_factory=list)
    month_week_buckets: List[MonthWeekBucketOut] = Field(default_factory=list)
    months: List[OptionOut] = Field(default_factory=list)
    weeks: List[OptionOut] = Field(default_factory=list)
    days: List[OptionOut] = Field(default_factory=list)


class CurrentReadingOut(_AttributeModel):
    moisture1: Optional[float] = None
    moisture2: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    battery_level: Optional[float] = None
    timestamp: Optional[str] = None


class DecisionOut(_AttributeModel):
    active: bool
    reason: str
    priority: SensorPriority


class AlertFlagsOut(_AttributeModel):
    sensor1: bool
    sensor2: bool


class SensorHealthOut(_AttributeModel):
    status: str
    score: int
    description: str


class SoilAnalysisOut(_AttributeModel):
    sensor1: SensorHealthOut
    sensor2: SensorHealthOut
    overall_score: int
    uniformity: str
    hours_to_threshold_sensor1: Optional[int] = None
    hours_to_threshold_sensor2: Optional[int] = None


class EvaluationOut(_AttributeModel):
    decision: DecisionOut
    alerts: AlertFlagsOut
    soil: SoilAnalysisOut


class CurrentSnapshotResponse(_AttributeModel):
    sequence: int
    updated_at: datetime
    reading: CurrentReadingOut
    weather: WeatherSnapshot
    evaluation: EvaluationOut
    pump_state: str


class DashboardStatusResponse(BaseModel):
    status: LoadStatus
    error: Optional[str] = None
    loaded_at: Optional[datetime] = None
    reading_count: int = Field(default=0, ge=0)
    day_count: int = Field(default=0, ge=0)
    default_month: str = ""


class CropProfileOut(_AttributeModel):
    id: str
    name: str
    description: str
    config: ThresholdConfig


class ValidationErrorResponse(BaseModel):
    detail: List[str]
