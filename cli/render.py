from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_ingest(payload: Dict[str, Any]) -> None:
    echo_heading("Reading Submitted")
    echo_key_values(
        [
            ("readingId", payload.get("readingId")),
            ("accepted", payload.get("accepted")),
            ("emergency", payload.get("emergency")),
        ]
    )
    if payload.get("emergency"):
        typer.secho("Emergency detected; contacts are being notified.", fg=typer.colors.RED)


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    location = payload.get("location") or {}
    echo_key_values(
        [
            ("deviceId", payload.get("deviceId")),
            ("timestamp", payload.get("timestamp")),
            ("heartRate", payload.get("heartRate")),
            ("spO2", payload.get("spO2")),
            ("location", f"{location.get('latitude')}, {location.get('longitude')}"),
            ("batteryLevel", payload.get("batteryLevel")),
            ("emergencyStatus", payload.get("emergencyStatus")),
        ]
    )


def render_profile(payload: Dict[str, Any]) -> None:
    echo_heading("Profile Registered")
    echo_key_values([("deviceId", payload.get("deviceId")), ("name", payload.get("name"))])
    contacts = payload.get("emergencyContacts") or []
    if contacts:
        typer.echo("emergencyContacts:")
        for contact in contacts:
            channels = ", ".join(
                value for value in (contact.get("email"), contact.get("phone")) if value
            )
            typer.echo(f"  - {contact.get('name')}: {channels or 'no address'}")
    else:
        typer.echo("No emergency contacts registered.")
