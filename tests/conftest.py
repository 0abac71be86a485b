from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Sequence

import pytest

from app.schemas import EmergencyContact, Location, Reading, UserProfile
from models.records import AlertMessage, ChannelKind, DeliveryAck, EmergencyEvent
from services.errors import ChannelError


class ScriptedChannel:
    """Channel double that replays a per-target script of outcomes.

    Outcomes are ``"ok"``, ``"transient"``, ``"permanent"`` or ``"hang"``;
    once a target's script runs out every further send succeeds.
    """

    def __init__(self, kind: ChannelKind) -> None:
        self.kind = kind
        self.script: Dict[str, Sequence[str]] = {}
        self.calls: List[tuple[str, AlertMessage]] = []

    def calls_for(self, target: str) -> int:
        return sum(1 for called, _ in self.calls if called == target)

    async def send(self, target: str, message: AlertMessage) -> DeliveryAck:
        self.calls.append((target, message))
        outcomes = self.script.get(target, ())
        index = self.calls_for(target) - 1
        outcome = outcomes[index] if index < len(outcomes) else "ok"
        if outcome == "transient":
            raise ChannelError.transient_error(f"{self.kind.value} rate limited")
        if outcome == "permanent":
            raise ChannelError.permanent_error(f"{self.kind.value} rejected {target}")
        if outcome == "hang":
            await asyncio.sleep(3600)
        return DeliveryAck(channel=self.kind, target=target)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def channels() -> Dict[ChannelKind, ScriptedChannel]:
    return {kind: ScriptedChannel(kind) for kind in ChannelKind}


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_reading():
    def factory(device_id: str = "device-1", heart_rate: int = 75, spo2: int = 98) -> Reading:
        return Reading(
            device_id=device_id,
            timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            heart_rate=heart_rate,
            spo2=spo2,
            location=Location(latitude=40.7128, longitude=-74.006),
            battery_level=80,
        )

    return factory


@pytest.fixture
def make_event(make_reading):
    def factory(heart_rate: int = 110, spo2: int = 97, owner_name: str | None = "Ada") -> EmergencyEvent:
        reading = make_reading(heart_rate=heart_rate, spo2=spo2)
        return EmergencyEvent(
            device_id=reading.device_id,
            reading=reading,
            detected_at=datetime(2024, 1, 1, 12, 0, 1, tzinfo=timezone.utc),
            owner_name=owner_name,
        )

    return factory


@pytest.fixture
def contact() -> EmergencyContact:
    return EmergencyContact(
        name="Grace",
        phone="+15551234567",
        email="grace@example.com",
        relationship="sister",
    )


@pytest.fixture
def profile(contact: EmergencyContact) -> UserProfile:
    return UserProfile(device_id="device-1", name="Ada", emergency_contacts=[contact])
