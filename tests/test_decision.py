"""Unit tests for the irrigation decision, alerts and soil analysis."""

from __future__ import annotations

import logging

import pytest

from app.schemas import (
    IrrigationSettings,
    SensorPriority,
    SensorThresholds,
    ThresholdConfig,
)
from models.records import CurrentReading
from services.decision import (
    Decision,
    IrrigationLatch,
    LatchState,
    alert_flags,
    decide,
    evaluate,
    moisture_uniformity,
    sensor_health,
    time_to_threshold,
)
from services.formatter import format_history


def _config(
    threshold1: float = 20.0,
    threshold2: float = 25.0,
    priority: SensorPriority = SensorPriority.sensor1,
) -> ThresholdConfig:
    return ThresholdConfig(
        sensor1=SensorThresholds(irrigation_threshold=threshold1, alert_threshold=threshold1 + 10),
        sensor2=SensorThresholds(irrigation_threshold=threshold2, alert_threshold=threshold2 + 10),
        irrigation=IrrigationSettings(sensor_priority=priority),
    )


def test_both_priority_irrigates_when_either_sensor_is_low() -> None:
    config = _config(priority=SensorPriority.both)

    decision = decide({"moisture1": 22, "moisture2": 20}, config)

    assert decision.active is True
    assert decision.priority is SensorPriority.both
    assert "sensor2" in decision.reason
    assert "below" in decision.reason


def test_both_priority_stays_off_when_neither_is_low() -> None:
    decision = decide({"moisture1": 22, "moisture2": 26}, _config(priority=SensorPriority.both))

    assert decision.active is False


def test_sensor1_priority_ignores_sensor2() -> None:
    config = _config(priority=SensorPriority.sensor1)

    assert decide({"moisture1": 25, "moisture2": 0}, config).active is False
    assert decide({"moisture1": 19.5, "moisture2": 90}, config).active is True


def test_sensor2_priority_ignores_sensor1() -> None:
    config = _config(priority=SensorPriority.sensor2)

    assert decide({"moisture1": 0, "moisture2": 30}, config).active is False
    assert decide({"moisture1": 90, "moisture2": 24}, config).active is True


def test_threshold_is_exclusive() -> None:
    decision = decide(CurrentReading(moisture1=20.0, moisture2=50.0), _config())

    assert decision.active is False
    assert decision.reason == "sensor1 moisture 20% at or above irrigation threshold 20%"


def test_missing_value_never_irrigates() -> None:
    decision = decide(CurrentReading(moisture1=None, moisture2=None), _config())

    assert decision.active is False
    assert decision.reason == "sensor1 reading unavailable"


def test_explicit_priority_overrides_config_and_unknown_falls_back(caplog) -> None:
    config = _config(priority=SensorPriority.sensor1)
    current = {"moisture1": 50, "moisture2": 10}

    assert decide(current, config, priority="sensor2").active is True
    with caplog.at_level(logging.WARNING, logger="services.decision"):
        decision = decide(current, config, priority="sensor3")

    assert decision.priority is SensorPriority.sensor1
    assert decision.active is False
    assert "Unknown sensor priority" in caplog.text


def test_alert_flags_ignore_priority() -> None:
    config = _config(priority=SensorPriority.sensor1)

    flags = alert_flags({"moisture1": 50, "moisture2": 30}, config)

    assert flags.sensor1 is False
    assert flags.sensor2 is True


@pytest.mark.parametrize(
    ("moisture", "status", "score"),
    [
        (None, "unknown", 0),
        (50, "optimal", 100),
        (90, "good", 80),
        (27, "dry", 60),
        (10, "critical", 30),
    ],
)
def test_sensor_health(moisture, status, score) -> None:
    thresholds = SensorThresholds(
        irrigation_threshold=25, alert_threshold=35, optimal_min=30, optimal_max=70
    )

    health = sensor_health(moisture, thresholds)

    assert health.status == status
    assert health.score == score


def test_moisture_uniformity() -> None:
    assert moisture_uniformity(40, 44) == "uniform"
    assert moisture_uniformity(40, 50) == "moderate"
    assert moisture_uniformity(40, 60) == "high"
    assert moisture_uniformity(None, 60) == "unknown"


def test_time_to_threshold_uses_recent_drying_rate() -> None:
    history = format_history(
        [
            {"timestamp": f"2024-01-01T{hour:02d}:00:00Z", "sensor1": 50 - 2 * hour, "sensor2": 40}
            for hour in range(6)
        ]
    )
    current = CurrentReading(moisture1=40.0, moisture2=40.0)

    hours1, hours2 = time_to_threshold(history, current, _config())

    # Sensor 1 dries 2% per hour and sits 20% above its threshold.
    assert hours1 == 10
    assert hours2 is None


def test_time_to_threshold_needs_history() -> None:
    assert time_to_threshold([], {"moisture1": 40, "moisture2": 40}, _config()) == (None, None)


def test_evaluate_combines_decision_alerts_and_soil() -> None:
    config = _config(priority=SensorPriority.both)

    evaluation = evaluate(CurrentReading(moisture1=50.0, moisture2=24.0), config)

    assert evaluation.decision.active is True
    assert evaluation.alerts.sensor1 is False
    assert evaluation.alerts.sensor2 is True
    assert evaluation.soil.sensor1.status == "optimal"
    assert evaluation.soil.uniformity == "high"
    assert evaluation.soil.sensor2.status == "optimal"
    assert evaluation.soil.overall_score == 100


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_irrigation_latch_runs_for_duration_then_cools_down() -> None:
    clock = _FakeClock()
    latch = IrrigationLatch(clock=clock)
    settings = IrrigationSettings(duration=15, re_irrigation_delay=120)
    wet = Decision(active=False, reason="wet", priority=SensorPriority.sensor1)
    dry = Decision(active=True, reason="dry", priority=SensorPriority.sensor1)

    assert latch.update(wet, settings) is LatchState.idle
    assert latch.update(dry, settings) is LatchState.active

    clock.now = 14 * 60
    assert latch.update(wet, settings) is LatchState.active

    clock.now = 15 * 60
    assert latch.update(dry, settings) is LatchState.cooldown

    clock.now = 15 * 60 + 119 * 60
    assert latch.update(dry, settings) is LatchState.cooldown

    clock.now = 15 * 60 + 120 * 60
    assert latch.update(dry, settings) is LatchState.active
    assert latch.state is LatchState.active


def test_irrigation_latch_times_phases_from_their_scheduled_end() -> None:
    clock = _FakeClock()
    latch = IrrigationLatch(clock=clock)
    settings = IrrigationSettings(duration=15, re_irrigation_delay=120)
    dry = Decision(active=True, reason="dry", priority=SensorPriority.sensor1)

    assert latch.update(dry, settings) is LatchState.active

    # First update after the run ended arrives five minutes late.
    clock.now = 20 * 60
    assert latch.update(dry, settings) is LatchState.cooldown

    clock.now = 15 * 60 + 120 * 60
    assert latch.update(dry, settings) is LatchState.active


def test_irrigation_latch_catches_up_across_both_phases() -> None:
    clock = _FakeClock()
    latch = IrrigationLatch(clock=clock)
    settings = IrrigationSettings(duration=15, re_irrigation_delay=120)
    wet = Decision(active=False, reason="wet", priority=SensorPriority.sensor1)
    dry = Decision(active=True, reason="dry", priority=SensorPriority.sensor1)

    latch.update(dry, settings)
    clock.now = 15 * 60 + 120 * 60

    assert latch.update(wet, settings) is LatchState.idle
