from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, NoReturn

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the vitals alert service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def submit_reading(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post("/api/readings", json=reading)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def latest_reading(self, device_id: str) -> Dict[str, Any]:
        try:
            response = self._client.get(f"/api/readings/{device_id}/latest")
            if response.status_code == 404:
                raise typer.BadParameter(f"No readings found for device {device_id}.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def register_profile(self, path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise typer.BadParameter(f"Path {path} is not a file.")
        try:
            profile = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"File {path} is not valid JSON: {exc}") from exc
        device_id = profile.get("deviceId") if isinstance(profile, dict) else None
        if not isinstance(device_id, str) or not device_id:
            raise typer.BadParameter("Profile JSON must contain a deviceId.")

        try:
            response = self._client.put(f"/api/users/{device_id}", json=profile)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("message") or data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
