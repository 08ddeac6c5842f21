"""Dashboard orchestration: history load, live refresh and settings."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Any, Callable, List, Mapping, Optional

from app.schemas import (
    DashboardStatusResponse,
    LoadStatus,
    ThresholdConfig,
)
from datastore.threshold_store import ThresholdConfigStore, build_default_store
from integrations.sensor_api import SensorApiClient, SensorDataError
from integrations.weather_api import WeatherApiClient
from services import calendar_keys
from services.aggregator import Aggregator, DayBucketIndex
from services.crop_profiles import get_crop_profile
from services.decision import IrrigationLatch
from services.formatter import format_history, latest_reading
from services.refresh import CurrentSnapshot, LiveRefreshController, current_reading
from services.selector import (
    HistoryData,
    HistoryView,
    Selection,
    default_month_key,
    month_options,
    resolve_view,
)
from settings import get_settings

logger = logging.getLogger(__name__)


class DashboardService:
    """Loads and aggregates the reading history and keeps the live values fresh.

    The history is rebuilt from scratch by :meth:`load`. Refresh ticks only
    replace the current snapshot, unless ``incremental_history`` is set, in
    which case readings newer than the last merged one are folded into the day
    buckets as they arrive.
    """

    def __init__(
        self,
        sensor_source: Any,
        weather_source: Any,
        store: ThresholdConfigStore,
        aggregator: Optional[Aggregator] = None,
        tz: Optional[tzinfo] = None,
        refresh_interval: float = 30.0,
        incremental_history: bool = False,
        latch: Optional[IrrigationLatch] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.sensors = sensor_source
        self.weather = weather_source
        self.store = store
        self.aggregator = aggregator or Aggregator()
        self.tz = tz or timezone.utc
        self.incremental_history = incremental_history
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.status = LoadStatus.idle
        self.error: Optional[str] = None
        self.loaded_at: Optional[datetime] = None
        self._history = HistoryData()
        self._index: Optional[DayBucketIndex] = None
        self._load_sequence = 0
        self.refresh = LiveRefreshController(
            sensor_source,
            weather_source,
            config_provider=self.store.get_config,
            interval=refresh_interval,
            history_provider=lambda: self._history.readings,
            latch=latch,
            on_readings=self.merge_readings if incremental_history else None,
        )

    @property
    def history(self) -> HistoryData:
        return self._history

    async def load(self) -> LoadStatus:
        """Fetch and aggregate the full history. Safe to call again as a retry."""
        self._load_sequence += 1
        load_id = self._load_sequence
        self.status = LoadStatus.loading
        self.error = None
        started = time.perf_counter()

        try:
            readings = await self.sensors.fetch_readings()
        except SensorDataError as exc:
            if load_id == self._load_sequence:
                self.status = LoadStatus.failed
                self.error = str(exc)
                logger.error(
                    "Dashboard load failed: %s", exc, extra={"status": self.status.value}
                )
            return self.status

        weather = await self.weather.fetch_snapshot()
        if load_id != self._load_sequence:
            logger.debug("Discarding superseded load", extra={"status": "stale"})
            return self.status

        self._history = self._build_history(readings)
        self._index = DayBucketIndex(self._history.readings) if self.incremental_history else None

        latest = latest_reading(readings)
        if latest is not None:
            snapshot = self.refresh.build_snapshot(
                self.refresh.next_sequence(), current_reading(latest, weather), weather
            )
            self.refresh.publish(snapshot)

        self.status = LoadStatus.ready
        self.loaded_at = datetime.now(timezone.utc)
        logger.info(
            "Dashboard data loaded",
            extra={
                "status": self.status.value,
                "reading_count": len(self._history.readings),
                "day_count": len(self._history.day_buckets),
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return self.status

    def _build_history(self, readings: List[Mapping[str, Any]]) -> HistoryData:
        formatted = format_history(readings, self.tz)
        day_buckets = self.aggregator.to_day_buckets(formatted)
        months = month_options(formatted)
        return HistoryData(
            readings=formatted,
            day_buckets=day_buckets,
            month_week_buckets=self.aggregator.to_month_week_buckets(day_buckets),
            months=months,
            default_month=default_month_key(
                months, calendar_keys.to_reference_zone(self._now(), self.tz)
            ),
        )

    def merge_readings(self, readings: List[Mapping[str, Any]]) -> int:
        """Fold readings newer than the last merged one into the history."""
        if self._index is None:
            return 0
        watermark = self._index.watermark
        fresh = [raw for raw in readings if _is_newer(raw, watermark)]
        if not fresh:
            return 0

        formatted = format_history(fresh, self.tz)
        merged = self._index.merge(formatted)
        if not merged:
            return 0

        day_buckets = self._index.day_buckets()
        combined = sorted(
            self._history.readings + formatted, key=lambda reading: reading.date
        )
        self._history = HistoryData(
            readings=combined,
            day_buckets=day_buckets,
            month_week_buckets=self.aggregator.to_month_week_buckets(day_buckets),
            months=month_options(day_buckets),
            default_month=self._history.default_month,
        )
        logger.debug("Merged new readings into history", extra={"reading_count": merged})
        return merged

    def history_view(self, selection: Optional[Selection] = None) -> HistoryView:
        return resolve_view(self._history, selection or Selection())

    def current(self) -> Optional[CurrentSnapshot]:
        return self.refresh.snapshot

    def reevaluate(self) -> Optional[CurrentSnapshot]:
        """Recompute the decision on the last known values without fetching."""
        return self.refresh.reevaluate()

    def get_config(self) -> ThresholdConfig:
        return self.store.get_config()

    def update_config(self, config: ThresholdConfig) -> ThresholdConfig:
        """Validate and save ``config``, then re-run the decision on current values."""
        saved = self.store.set_config(config)
        self.reevaluate()
        return saved

    def apply_crop_profile(self, crop_id: str) -> ThresholdConfig:
        profile = get_crop_profile(crop_id)
        return self.update_config(profile.config)

    def status_report(self) -> DashboardStatusResponse:
        return DashboardStatusResponse(
            status=self.status,
            error=self.error,
            loaded_at=self.loaded_at,
            reading_count=len(self._history.readings),
            day_count=len(self._history.day_buckets),
            default_month=self._history.default_month,
        )

    def start(self) -> None:
        self.refresh.start()

    async def shutdown(self) -> None:
        await self.refresh.stop()
        for client in (self.sensors, self.weather):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()


def _is_newer(raw: Mapping[str, Any], watermark: Optional[datetime]) -> bool:
    if not isinstance(raw, Mapping):
        return False
    if watermark is None:
        return True
    try:
        return calendar_keys.parse_timestamp(raw.get("timestamp")) > watermark
    except ValueError:
        return False


@lru_cache
def build_default_dashboard() -> DashboardService:
    """Factory that wires the dashboard with clients built from settings."""
    settings = get_settings()
    sensors = SensorApiClient(settings.sensor_api_url, timeout=settings.http_timeout)
    weather = WeatherApiClient(
        settings.weather_api_url,
        api_key=settings.weather_api_key,
        latitude=settings.weather_latitude,
        longitude=settings.weather_longitude,
        timeout=settings.http_timeout,
    )
    return DashboardService(
        sensor_source=sensors,
        weather_source=weather,
        store=build_default_store(),
        tz=calendar_keys.resolve_timezone(settings.display_timezone),
        refresh_interval=settings.refresh_interval,
        incremental_history=settings.incremental_history,
        latch=IrrigationLatch(),
    )
