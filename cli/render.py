from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _percent(value: Any) -> str:
    if value is None:
        return "n/a"
    return f"{float(value):.1f}%"


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Dashboard Status")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("loaded_at", payload.get("loaded_at")),
            ("reading_count", payload.get("reading_count")),
            ("day_count", payload.get("day_count")),
            ("default_month", payload.get("default_month") or "-"),
        ]
    )
    if payload.get("error"):
        typer.secho(f"error: {payload['error']}", fg=typer.colors.RED)


def render_current(payload: Dict[str, Any]) -> None:
    reading = payload.get("reading") or {}
    weather = payload.get("weather") or {}
    evaluation = payload.get("evaluation") or {}
    decision = evaluation.get("decision") or {}
    alerts = evaluation.get("alerts") or {}
    soil = evaluation.get("soil") or {}

    echo_heading("Current Reading")
    echo_key_values(
        [
            ("timestamp", reading.get("timestamp")),
            ("sensor1", _percent(reading.get("moisture1"))),
            ("sensor2", _percent(reading.get("moisture2"))),
            ("temperature", reading.get("temperature")),
            ("humidity", reading.get("humidity")),
            ("battery_level", reading.get("battery_level")),
        ]
    )

    typer.echo()
    echo_heading("Irrigation")
    if decision.get("active"):
        typer.secho("IRRIGATE", fg=typer.colors.BLUE, bold=True)
    else:
        typer.echo("no irrigation needed")
    echo_key_values(
        [
            ("reason", decision.get("reason")),
            ("priority", decision.get("priority")),
            ("pump_state", payload.get("pump_state")),
        ]
    )
    for sensor in ("sensor1", "sensor2"):
        if alerts.get(sensor):
            typer.secho(f"alert: {sensor} moisture below alert threshold", fg=typer.colors.YELLOW)

    if soil:
        typer.echo()
        echo_heading("Soil Health")
        for sensor in ("sensor1", "sensor2"):
            health = soil.get(sensor) or {}
            typer.echo(
                f"  - {sensor}: {health.get('status')} ({health.get('score')}) {health.get('description')}"
            )
        echo_key_values(
            [
                ("overall_score", soil.get("overall_score")),
                ("uniformity", soil.get("uniformity")),
            ]
        )

    typer.echo()
    echo_heading("Weather")
    echo_key_values(
        [
            ("location", weather.get("location")),
            ("condition", weather.get("condition")),
            ("temperature", weather.get("temperature")),
            ("humidity", weather.get("humidity")),
        ]
    )


def _render_options(title: str, options: List[Dict[str, Any]], selected: str) -> None:
    typer.echo(f"{title}:")
    if not options:
        typer.echo("  (none)")
        return
    for option in options:
        marker = "*" if option.get("id") == selected else " "
        typer.echo(f" {marker} {option.get('id')}  {option.get('name')}")


def render_history(payload: Dict[str, Any]) -> None:
    selection = payload.get("selection") or {}
    echo_heading("History")
    echo_key_values(
        [
            ("month", selection.get("month_key") or "-"),
            ("week", selection.get("week_key") or "-"),
            ("day", selection.get("day_key") or "-"),
        ]
    )
    _render_options("months", payload.get("months") or [], selection.get("month_key", ""))
    _render_options("weeks", payload.get("weeks") or [], selection.get("week_key", ""))

    typer.echo()
    echo_heading("Weekly Averages")
    buckets = payload.get("month_week_buckets") or []
    if buckets:
        for bucket in buckets:
            typer.echo(
                f"  - {bucket.get('label')}: sensor1 {_percent(bucket.get('moisture1'))}, "
                f"sensor2 {_percent(bucket.get('moisture2'))} ({bucket.get('day_count')} days)"
            )
    else:
        typer.echo("No weekly averages available.")

    typer.echo()
    echo_heading("Daily Averages")
    days = payload.get("day_buckets") or []
    if days:
        for bucket in days:
            typer.echo(
                f"  - {bucket.get('day_key')}: sensor1 {_percent(bucket.get('moisture1'))}, "
                f"sensor2 {_percent(bucket.get('moisture2'))} ({bucket.get('reading_count')} readings)"
            )
    else:
        typer.echo("No daily averages available.")

    readings = payload.get("readings") or []
    typer.echo()
    echo_heading("Readings")
    typer.echo(f"{len(readings)} readings for day {selection.get('day_key') or 'current'}")


def render_settings(payload: Dict[str, Any]) -> None:
    echo_heading("Threshold Settings")
    typer.echo(f"crop: {payload.get('selected_crop_id')}")
    for sensor in ("sensor1", "sensor2"):
        thresholds = payload.get(sensor) or {}
        typer.echo(
            f"  - {sensor}: irrigate below {thresholds.get('irrigation_threshold')}%, "
            f"alert below {thresholds.get('alert_threshold')}%, "
            f"optimal {thresholds.get('optimal_min')}-{thresholds.get('optimal_max')}%"
        )
    irrigation = payload.get("irrigation") or {}
    echo_key_values(
        [
            ("duration", irrigation.get("duration")),
            ("re_irrigation_delay", irrigation.get("re_irrigation_delay")),
            ("weather_integration", irrigation.get("weather_integration")),
            ("sensor_priority", irrigation.get("sensor_priority")),
        ]
    )


def render_profiles(profiles: List[Dict[str, Any]]) -> None:
    echo_heading("Crop Profiles")
    for profile in profiles:
        typer.echo(f"  - {profile.get('id')}: {profile.get('name')}  {profile.get('description')}")
