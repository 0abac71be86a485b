from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Iterable

from channels.console import ConsoleChannel
from channels.gateways import EmailChannel
from datastore.repository import build_default_repository
from models.records import ChannelKind
from services.pipeline import (
    build_default_channels,
    build_default_deduplicator,
    build_default_pipeline,
)
from settings import get_settings

_CACHES = (
    get_settings,
    build_default_repository,
    build_default_channels,
    build_default_deduplicator,
    build_default_pipeline,
)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_defaults_match_documented_values(monkeypatch) -> None:
    for name in (
        "HEART_RATE_LOW",
        "HEART_RATE_HIGH",
        "SPO2_LOW",
        "NOTIFY_COOLDOWN_SECONDS",
        "NOTIFY_MAX_ATTEMPTS",
        "NOTIFY_BASE_DELAY_SECONDS",
        "NOTIFY_MAX_DELAY_SECONDS",
        "NOTIFY_ATTEMPT_TIMEOUT_SECONDS",
        "ESCALATE_WITHOUT_PROFILE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert (settings.heart_rate_low, settings.heart_rate_high, settings.spo2_low) == (60, 100, 95)
        assert settings.notify_cooldown_seconds == 300.0
        assert settings.notify_max_attempts == 3
        assert settings.notify_base_delay_seconds == 0.5
        assert settings.notify_max_delay_seconds == 5.0
        assert settings.notify_attempt_timeout_seconds == 10.0
        assert settings.escalate_without_profile is False
    finally:
        get_settings.cache_clear()


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("NOTIFY_MAX_ATTEMPTS", "zero")
    monkeypatch.setenv("NOTIFY_ATTEMPT_TIMEOUT_SECONDS", "-1")
    monkeypatch.setenv("ESCALATE_WITHOUT_PROFILE", "maybe")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.notify_max_attempts == 3
        assert settings.notify_attempt_timeout_seconds == 10.0
        assert settings.escalate_without_profile is False
        assert settings.log_level == "DEBUG"
    finally:
        get_settings.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    readings_path = tmp_path / "readings.json"
    profiles_path = tmp_path / "profiles.json"

    monkeypatch.setenv("HEART_RATE_LOW", "50")
    monkeypatch.setenv("HEART_RATE_HIGH", "120")
    monkeypatch.setenv("SPO2_LOW", "92")
    monkeypatch.setenv("NOTIFY_COOLDOWN_SECONDS", "60")
    monkeypatch.setenv("NOTIFY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("NOTIFY_BASE_DELAY_SECONDS", "0")
    monkeypatch.setenv("NOTIFY_MAX_CONCURRENCY", "2")
    monkeypatch.setenv("ESCALATE_WITHOUT_PROFILE", "yes")
    monkeypatch.setenv("READINGS_TABLE_PATH", str(readings_path))
    monkeypatch.setenv("PROFILES_TABLE_PATH", str(profiles_path))
    monkeypatch.setenv("EMAIL_GATEWAY_URL", "https://mail.test/send")
    monkeypatch.delenv("SMS_GATEWAY_URL", raising=False)

    _clear_caches(_CACHES)

    try:
        pipeline = build_default_pipeline()

        assert pipeline.evaluator.thresholds.heart_rate_low == 50
        assert pipeline.evaluator.thresholds.heart_rate_high == 120
        assert pipeline.evaluator.thresholds.spo2_low == 92
        assert pipeline.deduplicator.cooldown == timedelta(seconds=60)
        assert pipeline.orchestrator.policy.max_attempts == 5
        assert pipeline.orchestrator.policy.base_delay == 0.0
        assert pipeline.orchestrator.max_concurrency == 2
        assert pipeline.escalate_without_profile is True
        assert pipeline.repository.readings.persistence_path == readings_path
        assert pipeline.repository.profiles.persistence_path == profiles_path
        assert isinstance(pipeline.orchestrator.channels[ChannelKind.email], EmailChannel)
        assert isinstance(pipeline.orchestrator.channels[ChannelKind.sms], ConsoleChannel)
    finally:
        asyncio.run(build_default_channels().aclose())
        _clear_caches(_CACHES)
