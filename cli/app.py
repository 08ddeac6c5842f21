from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_current,
    render_history,
    render_profiles,
    render_settings,
    render_status,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Query a running irrigation monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show whether the reading history is loaded."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("reload")
def reload_command(ctx: typer.Context) -> None:
    """Re-fetch the full history, e.g. after a failed load."""
    state = _get_state(ctx)
    typer.echo(f"Reloading history on {state.config.base_url} ...")
    payload = state.client.reload()
    if payload.get("status") == "ready":
        typer.secho("History reloaded.", fg=typer.colors.GREEN)
    render_status(payload)
    if payload.get("status") == "failed":
        raise typer.Exit(code=1)


@app.command("current")
def current_command(ctx: typer.Context) -> None:
    """Show the latest reading and the irrigation decision."""
    state = _get_state(ctx)
    render_current(state.client.get_current())


@app.command("history")
def history_command(
    ctx: typer.Context,
    month: Optional[str] = typer.Option(None, "--month", help='Month key such as "2024-0" (0-based month).'),
    week: Optional[str] = typer.Option(None, "--week", help='Week key such as "2024-0-Week2".'),
    day: Optional[str] = typer.Option(None, "--day", help='Day "YYYY-MM-DD" or "current".'),
) -> None:
    """Show daily and weekly averages for a selection."""
    state = _get_state(ctx)
    render_history(state.client.get_history(month=month, week=week, day=day))


@app.command("settings")
def settings_command(ctx: typer.Context) -> None:
    """Show the threshold configuration."""
    state = _get_state(ctx)
    render_settings(state.client.get_settings())


@app.command("profiles")
def profiles_command(ctx: typer.Context) -> None:
    """List the predefined crop profiles."""
    state = _get_state(ctx)
    render_profiles(state.client.list_profiles())


@app.command("apply-profile")
def apply_profile_command(
    ctx: typer.Context,
    crop_id: str = typer.Argument(..., help="Crop profile id, e.g. tomatoes."),
) -> None:
    """Replace the threshold configuration with a crop profile."""
    state = _get_state(ctx)
    payload = state.client.apply_profile(crop_id)
    typer.secho(f"Applied crop profile {crop_id}.", fg=typer.colors.GREEN)
    render_settings(payload)
