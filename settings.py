from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


_SENSOR_API_URL_ENV = "SENSOR_API_URL"
_WEATHER_API_URL_ENV = "WEATHER_API_URL"
_WEATHER_API_KEY_ENV = "WEATHER_API_KEY"
_WEATHER_LATITUDE_ENV = "WEATHER_LATITUDE"
_WEATHER_LONGITUDE_ENV = "WEATHER_LONGITUDE"
_REFRESH_INTERVAL_ENV = "REFRESH_INTERVAL_SECONDS"
_HTTP_TIMEOUT_ENV = "HTTP_TIMEOUT_SECONDS"
_DISPLAY_TIMEZONE_ENV = "DISPLAY_TIMEZONE"
_THRESHOLD_PATH_ENV = "THRESHOLD_CONFIG_PATH"
_INCREMENTAL_HISTORY_ENV = "INCREMENTAL_HISTORY"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    sensor_api_url: str
    weather_api_url: str
    weather_api_key: Optional[str]
    weather_latitude: float
    weather_longitude: float
    refresh_interval: float
    http_timeout: float
    display_timezone: str
    threshold_config_path: Optional[str]
    incremental_history: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_float_env(name: str, default: float, positive: bool = False) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if positive and parsed <= 0:
        return default
    return parsed


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_timezone_env(name: str, default: str) -> str:
    candidate = _read_str_env(name, default)
    if candidate.upper() == "UTC":
        return candidate
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return default
    return candidate


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        sensor_api_url=_read_str_env(
            _SENSOR_API_URL_ENV, "http://localhost:5000/api/sensor-data"
        ),
        weather_api_url=_read_str_env(
            _WEATHER_API_URL_ENV, "https://api.openweathermap.org/data/2.5/weather"
        ),
        weather_api_key=_read_optional_env(_WEATHER_API_KEY_ENV, None),
        weather_latitude=_read_float_env(_WEATHER_LATITUDE_ENV, 12.8421),
        weather_longitude=_read_float_env(_WEATHER_LONGITUDE_ENV, 77.6631),
        refresh_interval=_read_float_env(_REFRESH_INTERVAL_ENV, 30.0, positive=True),
        http_timeout=_read_float_env(_HTTP_TIMEOUT_ENV, 10.0, positive=True),
        display_timezone=_read_timezone_env(_DISPLAY_TIMEZONE_ENV, "UTC"),
        threshold_config_path=_read_optional_env(
            _THRESHOLD_PATH_ENV, "./tmp/threshold_config.json"
        ),
        incremental_history=_read_bool_env(_INCREMENTAL_HISTORY_ENV, False),
        log_level=_read_log_level("INFO"),
    )
