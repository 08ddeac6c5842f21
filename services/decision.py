"""Irrigation decision and low-moisture alerts.

``decide`` and ``alert_flags`` are stateless: they look only at the values
they are given and are recomputed for every new reading. They accept any
threshold values, since ordering rules are enforced when settings are saved.
:class:`IrrigationLatch` adds run-time and re-irrigation delay on top of
``decide`` for callers driving a real valve.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union

from app.schemas import IrrigationSettings, SensorPriority, SensorThresholds, ThresholdConfig
from models.records import FormattedReading

logger = logging.getLogger(__name__)

_TREND_WINDOW = 6
_TREND_MIN_READINGS = 3


@dataclass(frozen=True)
class Decision:
    active: bool
    reason: str
    priority: SensorPriority


@dataclass(frozen=True)
class AlertFlags:
    sensor1: bool
    sensor2: bool


@dataclass(frozen=True)
class SensorHealth:
    status: str
    score: int
    description: str


@dataclass(frozen=True)
class SoilAnalysis:
    sensor1: SensorHealth
    sensor2: SensorHealth
    overall_score: int
    uniformity: str
    hours_to_threshold_sensor1: Optional[int] = None
    hours_to_threshold_sensor2: Optional[int] = None


@dataclass(frozen=True)
class Evaluation:
    decision: Decision
    alerts: AlertFlags
    soil: SoilAnalysis


def _value(current: Any, field: str) -> Optional[float]:
    raw = current.get(field) if isinstance(current, Mapping) else getattr(current, field, None)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_priority(priority: Union[SensorPriority, str, None]) -> SensorPriority:
    if isinstance(priority, SensorPriority):
        return priority
    try:
        return SensorPriority(priority)
    except ValueError:
        logger.warning(
            "Unknown sensor priority, falling back to sensor1",
            extra={"priority": priority},
        )
        return SensorPriority.sensor1


def _describe(sensor: str, value: Optional[float], threshold: float) -> str:
    if value is None:
        return f"{sensor} reading unavailable"
    if value < threshold:
        return f"{sensor} moisture {value:g}% below irrigation threshold {threshold:g}%"
    return f"{sensor} moisture {value:g}% at or above irrigation threshold {threshold:g}%"


def decide(
    current: Any,
    thresholds: ThresholdConfig,
    priority: Union[SensorPriority, str, None] = None,
) -> Decision:
    """Decide whether irrigation should be on for the given point-in-time values.

    ``current`` is anything exposing ``moisture1``/``moisture2`` (attributes
    or dict keys). ``priority`` defaults to the configured sensor priority:

    * ``sensor1``: on iff ``moisture1`` is below sensor 1's irrigation threshold.
    * ``sensor2``: on iff ``moisture2`` is below sensor 2's irrigation threshold.
    * ``both``: on if EITHER sensor is below its own threshold. Despite the
      name this is a logical OR, not AND.

    A missing moisture value never turns irrigation on.
    """
    resolved = resolve_priority(
        priority if priority is not None else thresholds.irrigation.sensor_priority
    )
    moisture1 = _value(current, "moisture1")
    moisture2 = _value(current, "moisture2")
    threshold1 = thresholds.sensor1.irrigation_threshold
    threshold2 = thresholds.sensor2.irrigation_threshold

    if resolved is SensorPriority.sensor1:
        return Decision(
            active=_below(moisture1, threshold1),
            reason=_describe("sensor1", moisture1, threshold1),
            priority=resolved,
        )
    if resolved is SensorPriority.sensor2:
        return Decision(
            active=_below(moisture2, threshold2),
            reason=_describe("sensor2", moisture2, threshold2),
            priority=resolved,
        )

    low1 = _below(moisture1, threshold1)
    low2 = _below(moisture2, threshold2)
    triggering = []
    if low1:
        triggering.append(_describe("sensor1", moisture1, threshold1))
    if low2:
        triggering.append(_describe("sensor2", moisture2, threshold2))
    if triggering:
        reason = "; ".join(triggering)
    else:
        reason = "; ".join(
            (
                _describe("sensor1", moisture1, threshold1),
                _describe("sensor2", moisture2, threshold2),
            )
        )
    return Decision(active=low1 or low2, reason=reason, priority=resolved)


def alert_flags(current: Any, thresholds: ThresholdConfig) -> AlertFlags:
    """Low-moisture alerts for both sensors, whatever the sensor priority."""
    return AlertFlags(
        sensor1=_below(_value(current, "moisture1"), thresholds.sensor1.alert_threshold),
        sensor2=_below(_value(current, "moisture2"), thresholds.sensor2.alert_threshold),
    )


def sensor_health(moisture: Optional[float], thresholds: SensorThresholds) -> SensorHealth:
    if moisture is None:
        return SensorHealth(status="unknown", score=0, description="No reading available")
    if thresholds.optimal_min <= moisture <= thresholds.optimal_max:
        return SensorHealth(
            status="optimal", score=100, description="Perfect moisture level for healthy growth"
        )
    if moisture >= thresholds.alert_threshold:
        return SensorHealth(
            status="good", score=80, description="Adequate moisture, monitor regularly"
        )
    if moisture >= thresholds.irrigation_threshold:
        return SensorHealth(
            status="dry", score=60, description="Below optimal, irrigation recommended"
        )
    return SensorHealth(
        status="critical", score=30, description="Critically low, immediate irrigation needed"
    )


def moisture_uniformity(moisture1: Optional[float], moisture2: Optional[float]) -> str:
    if moisture1 is None or moisture2 is None:
        return "unknown"
    difference = abs(moisture1 - moisture2)
    if difference <= 5:
        return "uniform"
    if difference <= 10:
        return "moderate"
    return "high"


def time_to_threshold(
    history: Sequence[FormattedReading],
    current: Any,
    thresholds: ThresholdConfig,
) -> Tuple[Optional[int], Optional[int]]:
    """Hours until each sensor dries down to its irrigation threshold.

    Uses the average drying rate between the last six readings. ``None`` for
    a sensor that is not drying, already below threshold, or when there is not
    enough history.
    """
    if len(history) < _TREND_MIN_READINGS:
        return None, None

    recent = history[-_TREND_WINDOW:]
    rates1 = []
    rates2 = []
    for previous, following in zip(recent, recent[1:]):
        hours = (following.date - previous.date).total_seconds() / 3600
        if hours <= 0:
            continue
        rates1.append((previous.moisture1 - following.moisture1) / hours)
        rates2.append((previous.moisture2 - following.moisture2) / hours)
    if not rates1:
        return None, None

    def _hours(rates, value, threshold):
        rate = sum(rates) / len(rates)
        if value is None or rate <= 0:
            return None
        remaining = (value - threshold) / rate
        return _round_half_up(remaining) if remaining > 0 else None

    return (
        _hours(rates1, _value(current, "moisture1"), thresholds.sensor1.irrigation_threshold),
        _hours(rates2, _value(current, "moisture2"), thresholds.sensor2.irrigation_threshold),
    )


def evaluate(
    current: Any,
    thresholds: ThresholdConfig,
    history: Sequence[FormattedReading] = (),
) -> Evaluation:
    moisture1 = _value(current, "moisture1")
    moisture2 = _value(current, "moisture2")
    health1 = sensor_health(moisture1, thresholds.sensor1)
    health2 = sensor_health(moisture2, thresholds.sensor2)
    hours1, hours2 = time_to_threshold(history, current, thresholds)
    return Evaluation(
        decision=decide(current, thresholds),
        alerts=alert_flags(current, thresholds),
        soil=SoilAnalysis(
            sensor1=health1,
            sensor2=health2,
            overall_score=_round_half_up((health1.score + health2.score) / 2),
            uniformity=moisture_uniformity(moisture1, moisture2),
            hours_to_threshold_sensor1=hours1,
            hours_to_threshold_sensor2=hours2,
        ),
    )


class LatchState(str, Enum):
    idle = "idle"
    active = "active"
    cooldown = "cooldown"


class IrrigationLatch:
    """Hysteresis around :func:`decide` driven by duration and re-irrigation delay.

    ``idle -> active`` when a decision asks for water, ``active -> cooldown``
    after ``duration`` minutes, ``cooldown -> idle`` after
    ``re_irrigation_delay`` minutes. Decisions are ignored outside ``idle``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._state = LatchState.idle
        self._since = clock()

    @property
    def state(self) -> LatchState:
        return self._state

    def update(self, decision: Decision, settings: IrrigationSettings) -> LatchState:
        now = self._clock()
        # Each phase is timed from the end of the previous one.
        if self._state is LatchState.active and now - self._since >= settings.duration * 60:
            self._transition(LatchState.cooldown, self._since + settings.duration * 60)
        if (
            self._state is LatchState.cooldown
            and now - self._since >= settings.re_irrigation_delay * 60
        ):
            self._transition(LatchState.idle, self._since + settings.re_irrigation_delay * 60)
        if self._state is LatchState.idle and decision.active:
            self._transition(LatchState.active, now)
        return self._state

    def _transition(self, state: LatchState, at: float) -> None:
        logger.info(
            "Irrigation latch %s -> %s",
            self._state.value,
            state.value,
            extra={"status": state.value},
        )
        self._state = state
        self._since = at
