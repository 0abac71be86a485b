"""Reading and profile storage used by the ingest pipeline."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from app.schemas import Reading, UserProfile
from datastore.tables import ProfileTable, ReadingTable
from settings import get_settings


class VitalsRepository:

    def __init__(self, readings: ReadingTable, profiles: ProfileTable) -> None:
        self.readings = readings
        self.profiles = profiles

    def save_reading(self, reading: Reading) -> Reading:
        self.readings.put_item(reading)
        return reading

    def get_reading(self, reading_id: str) -> Optional[Reading]:
        return self.readings.get_item(reading_id)

    def update_emergency_status(self, reading_id: str, emergency: bool) -> Reading:
        stored = self.readings.get_item(reading_id)
        if stored is None:
            raise KeyError(f"Reading {reading_id!r} not found.")
        updated = stored.model_copy(update={"emergency_status": emergency})
        self.readings.put_item(updated)
        return updated

    def latest_reading(self, device_id: str) -> Optional[Reading]:
        history = self.reading_history(device_id)
        return history[0] if history else None

    def reading_history(self, device_id: str, since: Optional[datetime] = None) -> List[Reading]:
        """Readings for ``device_id`` newest first, optionally bounded by ``since``."""
        matches = [
            reading
            for reading in self.readings.scan()
            if reading.device_id == device_id and (since is None or reading.timestamp >= since)
        ]
        return sorted(matches, key=lambda reading: reading.timestamp, reverse=True)

    def find_user_by_device_id(self, device_id: str) -> Optional[UserProfile]:
        return self.profiles.get_item(device_id)

    def save_profile(self, profile: UserProfile) -> UserProfile:
        self.profiles.put_item(profile)
        return profile


@lru_cache
def build_default_repository(
    readings_path: Optional[str] = None,
    profiles_path: Optional[str] = None,
) -> VitalsRepository:
    settings = get_settings()
    readings_file = settings.readings_table_path if readings_path is None else readings_path
    profiles_file = settings.profiles_table_path if profiles_path is None else profiles_path
    return VitalsRepository(
        readings=ReadingTable(persistence_path=Path(readings_file) if readings_file else None),
        profiles=ProfileTable(persistence_path=Path(profiles_file) if profiles_file else None),
    )
