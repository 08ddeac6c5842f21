"""Predefined crop profiles a user can apply instead of custom thresholds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from app.schemas import (
    IrrigationSettings,
    SensorPriority,
    SensorThresholds,
    ThresholdConfig,
)


@dataclass(frozen=True)
class CropProfile:
    id: str
    name: str
    description: str
    config: ThresholdConfig


def _profile(
    crop_id: str,
    name: str,
    description: str,
    sensor1: tuple,
    sensor2: tuple,
    duration: float,
    delay: float,
    priority: SensorPriority,
) -> CropProfile:
    def thresholds(values: tuple) -> SensorThresholds:
        irrigation, alert, optimal_min, optimal_max = values
        return SensorThresholds(
            irrigation_threshold=irrigation,
            alert_threshold=alert,
            optimal_min=optimal_min,
            optimal_max=optimal_max,
        )

    return CropProfile(
        id=crop_id,
        name=name,
        description=description,
        config=ThresholdConfig(
            selected_crop_id=crop_id,
            sensor1=thresholds(sensor1),
            sensor2=thresholds(sensor2),
            irrigation=IrrigationSettings(
                duration=duration,
                re_irrigation_delay=delay,
                weather_integration=True,
                sensor_priority=priority,
            ),
        ),
    )


# (irrigation, alert, optimal min, optimal max) per sensor
CROP_PROFILES: List[CropProfile] = [
    _profile(
        "tomatoes",
        "Tomatoes",
        "Deep root vegetables requiring consistent moisture",
        (25, 35, 25, 70),
        (30, 40, 30, 75),
        15,
        120,
        SensorPriority.both,
    ),
    _profile(
        "lettuce",
        "Lettuce",
        "Shallow root leafy greens needing frequent watering",
        (30, 40, 30, 75),
        (35, 45, 35, 80),
        10,
        60,
        SensorPriority.sensor2,
    ),
    _profile(
        "peppers",
        "Peppers",
        "Heat-loving plants preferring slightly drier conditions",
        (20, 30, 20, 65),
        (25, 35, 25, 70),
        12,
        180,
        SensorPriority.sensor1,
    ),
    _profile(
        "herbs",
        "Herbs",
        "Mediterranean herbs preferring well-drained soil",
        (15, 25, 15, 60),
        (20, 30, 20, 65),
        8,
        240,
        SensorPriority.sensor1,
    ),
]

_BY_ID: Dict[str, CropProfile] = {profile.id: profile for profile in CROP_PROFILES}


def get_crop_profile(crop_id: str) -> CropProfile:
    profile = _BY_ID.get(crop_id)
    if profile is None:
        raise KeyError(f"Crop profile {crop_id!r} not found.")
    return profile
