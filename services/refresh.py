"""Periodic refresh of the current-value snapshot.

Every tick re-fetches the weather and the latest reading and re-runs the
irrigation decision. The historical aggregation is left alone.

Ticks run one after another on a fixed cadence measured from the start of
each tick, so a slow fetch delays the next tick rather than overlapping it.
Each tick takes a sequence number and a result is only published if no later
tick has published already. Nothing is published after :meth:`stop`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Sequence

from app.schemas import ThresholdConfig, WeatherSnapshot
from integrations.sensor_api import SensorDataError
from models.records import CurrentReading, FormattedReading
from services.decision import Evaluation, IrrigationLatch, LatchState, evaluate
from services.formatter import latest_reading

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 30.0

Subscriber = Callable[["CurrentSnapshot"], None]


@dataclass(frozen=True)
class CurrentSnapshot:
    sequence: int
    updated_at: datetime
    reading: CurrentReading
    weather: WeatherSnapshot
    evaluation: Evaluation
    pump_state: str


def _optional_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def current_reading(raw: Mapping[str, Any], weather: WeatherSnapshot) -> CurrentReading:
    """Latest sensor values; temperature and humidity fall back to the weather."""
    temperature = _optional_number(raw.get("temperature"))
    humidity = _optional_number(raw.get("humidity"))
    return CurrentReading(
        moisture1=_optional_number(raw.get("sensor1")),
        moisture2=_optional_number(raw.get("sensor2")),
        temperature=temperature if temperature is not None else weather.temperature,
        humidity=humidity if humidity is not None else weather.humidity,
        battery_level=_optional_number(raw.get("batteryLevel")),
        timestamp=None if raw.get("timestamp") is None else str(raw.get("timestamp")),
    )


class LiveRefreshController:
    """Owns the refresh timer and the latest :class:`CurrentSnapshot`."""

    def __init__(
        self,
        sensor_source: Any,
        weather_source: Any,
        config_provider: Callable[[], ThresholdConfig],
        interval: float = DEFAULT_REFRESH_INTERVAL,
        history_provider: Optional[Callable[[], Sequence[FormattedReading]]] = None,
        latch: Optional[IrrigationLatch] = None,
        on_readings: Optional[Callable[[List[Mapping[str, Any]]], None]] = None,
    ) -> None:
        self._sensors = sensor_source
        self._weather = weather_source
        self._config_provider = config_provider
        self.interval = interval
        self._history_provider = history_provider or (lambda: ())
        self._latch = latch
        self._on_readings = on_readings
        self._sequence = itertools.count(1)
        self._published_sequence = 0
        self._snapshot: Optional[CurrentSnapshot] = None
        self._subscribers: List[Subscriber] = []
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def snapshot(self) -> Optional[CurrentSnapshot]:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_sequence(self) -> int:
        return next(self._sequence)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for every published snapshot; returns an unsubscribe."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            with suppress(ValueError):
                self._subscribers.remove(callback)

        return unsubscribe

    def start(self) -> None:
        """Schedule the refresh loop on the running event loop."""
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Live refresh started (every %ss)", self.interval)

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Live refresh stopped")

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        delay = self.interval
        while True:
            await asyncio.sleep(delay)
            started = loop.time()
            try:
                await self.tick()
            except Exception:  # noqa: BLE001 - keep ticking
                logger.exception("Refresh tick failed")
            delay = max(0.0, self.interval - (loop.time() - started))

    async def tick(self) -> Optional[CurrentSnapshot]:
        """Fetch fresh values once; returns the snapshot if it was published."""
        sequence = self.next_sequence()
        started = asyncio.get_running_loop().time()
        weather = await self._weather.fetch_snapshot()
        try:
            readings = await self._sensors.fetch_readings()
        except SensorDataError as exc:
            logger.warning(
                "Skipping refresh tick: %s",
                exc,
                extra={"sequence": sequence, "status": "skipped"},
            )
            return None

        if self._stopped:
            logger.debug("Discarding tick finished after stop", extra={"sequence": sequence})
            return None

        if self._on_readings is not None:
            self._on_readings(readings)

        latest = latest_reading(readings)
        if latest is None:
            logger.warning(
                "Skipping refresh tick: no readings",
                extra={"sequence": sequence, "status": "skipped"},
            )
            return None

        snapshot = self.build_snapshot(sequence, current_reading(latest, weather), weather)
        elapsed_ms = int((asyncio.get_running_loop().time() - started) * 1000)
        if not self.publish(snapshot):
            return None
        logger.debug(
            "Refresh tick published",
            extra={"sequence": sequence, "elapsed_ms": elapsed_ms},
        )
        return snapshot

    def build_snapshot(
        self, sequence: int, reading: CurrentReading, weather: WeatherSnapshot
    ) -> CurrentSnapshot:
        config = self._config_provider()
        evaluation = evaluate(reading, config, self._history_provider())
        if self._latch is not None:
            pump_state = self._latch.update(evaluation.decision, config.irrigation).value
        else:
            pump_state = (
                LatchState.active.value if evaluation.decision.active else LatchState.idle.value
            )
        return CurrentSnapshot(
            sequence=sequence,
            updated_at=datetime.now(timezone.utc),
            reading=reading,
            weather=weather,
            evaluation=evaluation,
            pump_state=pump_state,
        )

    def reevaluate(self) -> Optional[CurrentSnapshot]:
        """Re-run the decision on the last known values, e.g. after a settings change."""
        if self._snapshot is None:
            return None
        snapshot = self.build_snapshot(
            self.next_sequence(), self._snapshot.reading, self._snapshot.weather
        )
        return snapshot if self.publish(snapshot) else None

    def publish(self, snapshot: CurrentSnapshot) -> bool:
        if self._stopped:
            logger.debug("Discarding snapshot after stop", extra={"sequence": snapshot.sequence})
            return False
        if snapshot.sequence <= self._published_sequence:
            logger.debug(
                "Discarding stale snapshot",
                extra={"sequence": snapshot.sequence, "status": "stale"},
            )
            return False

        self._published_sequence = snapshot.sequence
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:  # noqa: BLE001 - isolate subscribers
                logger.exception("Snapshot subscriber failed")
        return True
