from __future__ import annotations

import logging

import pytest

from services import calendar_keys
from services.formatter import format_history, format_reading, latest_reading


def test_format_reading_adds_calendar_keys() -> None:
    reading = format_reading(
        {
            "timestamp": "2024-02-05T09:05:00Z",
            "sensor1": 42.5,
            "sensor2": "37",
            "temperature": 21.0,
            "batteryLevel": 88,
        }
    )

    assert reading.moisture1 == 42.5
    assert reading.moisture2 == 37.0
    assert reading.temperature == 21.0
    assert reading.humidity is None
    assert reading.battery_level == 88.0
    assert (reading.year, reading.month, reading.day_of_month) == (2024, 1, 5)
    assert reading.month_name == "February"
    assert reading.month_key == "2024-1"
    assert reading.month_week == 2
    assert reading.iso_week == 6
    assert reading.day_key == "2024-02-05"
    assert reading.time == "5 Feb, 09:05 AM"
    assert reading.formatted_date == "5 Feb"


def test_missing_moisture_counts_as_zero() -> None:
    reading = format_reading({"timestamp": "2024-01-01T00:00:00Z", "sensor1": None})

    assert reading.moisture1 == 0.0
    assert reading.moisture2 == 0.0


def test_format_reading_rejects_bad_values() -> None:
    with pytest.raises(ValueError, match="invalid timestamp"):
        format_reading({"timestamp": "not a date", "sensor1": 1, "sensor2": 2})
    with pytest.raises(ValueError, match="invalid numeric value"):
        format_reading({"timestamp": "2024-01-01T00:00:00Z", "sensor1": "wet", "sensor2": 2})


def test_format_history_sorts_and_skips_invalid_records(caplog) -> None:
    raw = [
        {"timestamp": "2024-01-02T08:00:00Z", "sensor1": 30, "sensor2": 40},
        {"timestamp": "garbage", "sensor1": 30, "sensor2": 40},
        "not a reading",
        {"timestamp": "2024-01-01T08:00:00Z", "sensor1": 10, "sensor2": 20},
        {"timestamp": "2024-01-03T08:00:00Z", "sensor1": float("nan"), "sensor2": 20},
    ]

    with caplog.at_level(logging.WARNING, logger="services.formatter"):
        formatted = format_history(raw)

    assert [reading.day_key for reading in formatted] == ["2024-01-01", "2024-01-02"]
    skipped = [record for record in caplog.records if record.name == "services.formatter"]
    assert len(skipped) == 3
    assert {getattr(record, "row_number", None) for record in skipped} == {2, 3, 5}


def test_format_history_preserves_length_of_valid_input() -> None:
    raw = [
        {"timestamp": f"2024-01-{day:02d}T12:00:00Z", "sensor1": day, "sensor2": day}
        for day in range(31, 0, -1)
    ]

    formatted = format_history(raw)

    assert len(formatted) == len(raw)
    assert [reading.day_of_month for reading in formatted] == list(range(1, 32))


def test_format_history_of_empty_input_is_empty() -> None:
    assert format_history([]) == []


def test_format_history_uses_reference_zone() -> None:
    kolkata = calendar_keys.resolve_timezone("Asia/Kolkata")

    (reading,) = format_history(
        [{"timestamp": "2024-01-31T20:00:00Z", "sensor1": 1, "sensor2": 2}], kolkata
    )

    assert reading.day_key == "2024-02-01"
    assert reading.month == 1
    assert reading.timestamp == "2024-01-31T20:00:00Z"


def test_latest_reading_picks_newest_timestamp() -> None:
    raw = [
        {"timestamp": "2024-01-02T08:00:00Z", "sensor1": 2},
        {"timestamp": "2024-01-03T08:00:00Z", "sensor1": 3},
        {"timestamp": "broken", "sensor1": 4},
        {"timestamp": "2024-01-01T08:00:00Z", "sensor1": 1},
    ]

    assert latest_reading(raw)["sensor1"] == 3
    assert latest_reading([]) is None
