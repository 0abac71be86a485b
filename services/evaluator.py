"""Vital-sign threshold classification."""

from __future__ import annotations

from dataclasses import dataclass

from app.schemas import Reading
from models.records import Classification
from settings import Settings


@dataclass(frozen=True)
class Thresholds:
    """Inclusive normal band: ``heart_rate_low <= hr <= heart_rate_high`` and ``spo2 >= spo2_low``."""

    heart_rate_low: int = 60
    heart_rate_high: int = 100
    spo2_low: int = 95

    @classmethod
    def from_settings(cls, settings: Settings) -> "Thresholds":
        return cls(
            heart_rate_low=settings.heart_rate_low,
            heart_rate_high=settings.heart_rate_high,
            spo2_low=settings.spo2_low,
        )


class ThresholdEvaluator:
    """Pure classifier that can be unit tested in isolation."""

    def __init__(self, thresholds: Thresholds | None = None) -> None:
        self.thresholds = thresholds or Thresholds()

    def classify(self, reading: Reading) -> Classification:
        limits = self.thresholds
        if (
            reading.heart_rate < limits.heart_rate_low
            or reading.heart_rate > limits.heart_rate_high
            or reading.spo2 < limits.spo2_low
        ):
            return Classification.emergency
        return Classification.normal

    def is_emergency(self, reading: Reading) -> bool:
        return self.classify(reading) is Classification.emergency
