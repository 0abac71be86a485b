from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import load_config


class StubClient:
    def __init__(self, config, emergency: bool = False) -> None:
        self.config = config
        self.emergency = emergency
        self.submitted: List[Dict[str, Any]] = []
        self.registered: List[Path] = []
        self.closed = False

    def submit_reading(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        self.submitted.append(reading)
        return {"accepted": True, "emergency": self.emergency, "readingId": "reading-123"}

    def latest_reading(self, device_id: str) -> Dict[str, Any]:
        return {
            "readingId": "reading-123",
            "deviceId": device_id,
            "timestamp": "2024-01-01T00:00:00Z",
            "heartRate": 72,
            "spO2": 99,
            "location": {"latitude": 1.5, "longitude": 2.5},
            "batteryLevel": 40,
            "emergencyStatus": False,
        }

    def register_profile(self, path: Path) -> Dict[str, Any]:
        self.registered.append(path)
        return json.loads(path.read_text())

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_submit_normal_reading(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        ["submit", "device-1", "--heart-rate", "72", "--spo2", "99", "--lat", "1.5", "--lon", "2.5"],
    )

    assert result.exit_code == 0
    assert "readingId: reading-123" in result.stdout
    assert "emergency: False" in result.stdout
    assert stub.submitted == [
        {
            "deviceId": "device-1",
            "heartRate": 72,
            "spO2": 99,
            "location": {"latitude": 1.5, "longitude": 2.5},
        }
    ]
    assert stub.closed is True


def test_submit_emergency_reading_with_battery(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None, emergency=True)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        [
            "--base-url",
            "http://vitals.test/",
            "submit",
            "device-1",
            "-r",
            "130",
            "-s",
            "90",
            "--lat",
            "1",
            "--lon",
            "2",
            "--battery",
            "15",
        ],
    )

    assert result.exit_code == 0
    assert "contacts are being notified" in result.stdout
    assert stub.submitted[0]["batteryLevel"] == 15
    assert stub.config.base_url == "http://vitals.test"


def test_latest_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["latest", "device-9"])

    assert result.exit_code == 0
    assert "deviceId: device-9" in result.stdout
    assert "location: 1.5, 2.5" in result.stdout
    assert stub.closed is True


def test_register_command(monkeypatch, runner: CliRunner, tmp_path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    profile_path = tmp_path / "profile.json"
    profile_path.write_text(
        json.dumps(
            {
                "deviceId": "device-1",
                "name": "Ada",
                "emergencyContacts": [{"name": "Grace", "email": "grace@example.com"}],
            }
        )
    )

    result = runner.invoke(app, ["register", str(profile_path)])

    assert result.exit_code == 0
    assert "Profile Registered" in result.stdout
    assert "Grace: grace@example.com" in result.stdout
    assert stub.registered == [profile_path]


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://env.test:9000/")
    monkeypatch.setenv("CLI_REQUEST_TIMEOUT", "nonsense")

    config = load_config()

    assert config.base_url == "http://env.test:9000"
    assert config.request_timeout == 30.0
