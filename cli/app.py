from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_ingest, render_profile, render_reading


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the vitals alert service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
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
        help="Request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("submit")
def submit_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identifier of the reporting device."),
    heart_rate: int = typer.Option(..., "--heart-rate", "-r", help="Heart rate in bpm."),
    spo2: int = typer.Option(..., "--spo2", "-s", help="Blood oxygen saturation in percent."),
    latitude: float = typer.Option(..., "--lat", help="Latitude of the device."),
    longitude: float = typer.Option(..., "--lon", help="Longitude of the device."),
    battery: Optional[int] = typer.Option(None, "--battery", help="Battery level in percent."),
) -> None:
    """Submit one reading as if sent by a device."""
    state = _get_state(ctx)
    reading: Dict[str, Any] = {
        "deviceId": device_id,
        "heartRate": heart_rate,
        "spO2": spo2,
        "location": {"latitude": latitude, "longitude": longitude},
    }
    if battery is not None:
        reading["batteryLevel"] = battery
    typer.echo(f"Submitting reading for {device_id} to {state.config.base_url} ...")
    render_ingest(state.client.submit_reading(reading))


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identifier of the device."),
) -> None:
    """Show the most recent stored reading for a device."""
    state = _get_state(ctx)
    render_reading(state.client.latest_reading(device_id))


@app.command("register")
def register_command(
    ctx: typer.Context,
    profile: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Path to a profile JSON file."
    ),
) -> None:
    """Create or replace a device owner's profile and emergency contacts."""
    state = _get_state(ctx)
    render_profile(state.client.register_profile(profile))
