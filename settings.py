from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_HEART_RATE_LOW_ENV = "HEART_RATE_LOW"
_HEART_RATE_HIGH_ENV = "HEART_RATE_HIGH"
_SPO2_LOW_ENV = "SPO2_LOW"
_COOLDOWN_ENV = "NOTIFY_COOLDOWN_SECONDS"
_MAX_ATTEMPTS_ENV = "NOTIFY_MAX_ATTEMPTS"
_BASE_DELAY_ENV = "NOTIFY_BASE_DELAY_SECONDS"
_MAX_DELAY_ENV = "NOTIFY_MAX_DELAY_SECONDS"
_ATTEMPT_TIMEOUT_ENV = "NOTIFY_ATTEMPT_TIMEOUT_SECONDS"
_MAX_CONCURRENCY_ENV = "NOTIFY_MAX_CONCURRENCY"
_ESCALATE_ENV = "ESCALATE_WITHOUT_PROFILE"
_READINGS_PATH_ENV = "READINGS_TABLE_PATH"
_PROFILES_PATH_ENV = "PROFILES_TABLE_PATH"
_EMAIL_URL_ENV = "EMAIL_GATEWAY_URL"
_SMS_URL_ENV = "SMS_GATEWAY_URL"
_PUSH_URL_ENV = "PUSH_GATEWAY_URL"
_DISPATCH_URL_ENV = "DISPATCH_API_URL"
_GATEWAY_TOKEN_ENV = "GATEWAY_AUTH_TOKEN"
_SENDER_ENV = "ALERT_SENDER"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    heart_rate_low: int
    heart_rate_high: int
    spo2_low: int
    notify_cooldown_seconds: float
    notify_max_attempts: int
    notify_base_delay_seconds: float
    notify_max_delay_seconds: float
    notify_attempt_timeout_seconds: float
    notify_max_concurrency: int
    escalate_without_profile: bool
    readings_table_path: Optional[str]
    profiles_table_path: Optional[str]
    email_gateway_url: Optional[str]
    sms_gateway_url: Optional[str]
    push_gateway_url: Optional[str]
    dispatch_api_url: Optional[str]
    gateway_auth_token: Optional[str]
    alert_sender: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float(name: str, default: float, allow_zero: bool = False) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        heart_rate_low=_read_positive_int(_HEART_RATE_LOW_ENV, 60),
        heart_rate_high=_read_positive_int(_HEART_RATE_HIGH_ENV, 100),
        spo2_low=_read_positive_int(_SPO2_LOW_ENV, 95),
        notify_cooldown_seconds=_read_float(_COOLDOWN_ENV, 300.0, allow_zero=True),
        notify_max_attempts=_read_positive_int(_MAX_ATTEMPTS_ENV, 3),
        notify_base_delay_seconds=_read_float(_BASE_DELAY_ENV, 0.5, allow_zero=True),
        notify_max_delay_seconds=_read_float(_MAX_DELAY_ENV, 5.0, allow_zero=True),
        notify_attempt_timeout_seconds=_read_float(_ATTEMPT_TIMEOUT_ENV, 10.0),
        notify_max_concurrency=_read_positive_int(_MAX_CONCURRENCY_ENV, 8),
        escalate_without_profile=_read_bool(_ESCALATE_ENV, False),
        readings_table_path=_read_optional_env(_READINGS_PATH_ENV, "./tmp/readings.json"),
        profiles_table_path=_read_optional_env(_PROFILES_PATH_ENV, "./tmp/profiles.json"),
        email_gateway_url=_read_optional_env(_EMAIL_URL_ENV, None),
        sms_gateway_url=_read_optional_env(_SMS_URL_ENV, None),
        push_gateway_url=_read_optional_env(_PUSH_URL_ENV, None),
        dispatch_api_url=_read_optional_env(_DISPATCH_URL_ENV, None),
        gateway_auth_token=_read_optional_env(_GATEWAY_TOKEN_ENV, None),
        alert_sender=_read_str_env(_SENDER_ENV, "alerts@vitals-monitor.local"),
        log_level=_read_log_level("INFO"),
    )
