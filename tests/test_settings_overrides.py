from __future__ import annotations

from datetime import timezone
from typing import Iterable

from datastore.threshold_store import build_default_store
from services.dashboard import build_default_dashboard
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    config_path = tmp_path / "thresholds.json"

    monkeypatch.setenv("SENSOR_API_URL", "http://sensors.test/api/sensor-data")
    monkeypatch.setenv("WEATHER_API_KEY", "secret")
    monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("DISPLAY_TIMEZONE", "Asia/Kolkata")
    monkeypatch.setenv("THRESHOLD_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("INCREMENTAL_HISTORY", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    caches = (get_settings, build_default_store, build_default_dashboard)
    _clear_caches(caches)

    try:
        settings = get_settings()
        store = build_default_store()
        dashboard = build_default_dashboard()

        assert settings.sensor_api_url == "http://sensors.test/api/sensor-data"
        assert settings.weather_api_key == "secret"
        assert settings.log_level == "DEBUG"
        assert store.persistence_path == config_path
        assert dashboard.store is store
        assert dashboard.refresh.interval == 5.0
        assert dashboard.incremental_history is True
        assert str(dashboard.tz) == "Asia/Kolkata"
    finally:
        _clear_caches(caches)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "-3")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("INCREMENTAL_HISTORY", "maybe")
    monkeypatch.setenv("WEATHER_API_KEY", "  ")
    monkeypatch.setenv("THRESHOLD_CONFIG_PATH", "")
    monkeypatch.setenv("DISPLAY_TIMEZONE", "Not/AZone")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.refresh_interval == 30.0
        assert settings.http_timeout == 10.0
        assert settings.incremental_history is False
        assert settings.weather_api_key is None
        assert settings.threshold_config_path is None
        assert settings.display_timezone == "UTC"
    finally:
        get_settings.cache_clear()


def test_unknown_display_timezone_does_not_break_dashboard(monkeypatch) -> None:
    monkeypatch.setenv("DISPLAY_TIMEZONE", "Not/AZone")
    monkeypatch.delenv("THRESHOLD_CONFIG_PATH", raising=False)

    caches = (get_settings, build_default_store, build_default_dashboard)
    _clear_caches(caches)

    try:
        dashboard = build_default_dashboard()

        assert get_settings().display_timezone == "UTC"
        assert dashboard.tz is timezone.utc
    finally:
        _clear_caches(caches)
