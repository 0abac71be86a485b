"""Concurrent multi-channel fan-out of emergency alerts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Mapping, Sequence

from app.schemas import EmergencyContact
from channels.base import Channel
from channels.gateways import DISPATCH_TARGET
from models.records import (
    AlertMessage,
    AttemptStatus,
    ChannelKind,
    EmergencyEvent,
    NotificationAttempt,
    NotificationSummary,
)
from services.errors import ChannelError
from settings import Settings

logger = logging.getLogger(__name__)

ALERT_SUBJECT = "Emergency Alert"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    attempt_timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.notify_max_attempts,
            base_delay=settings.notify_base_delay_seconds,
            max_delay=settings.notify_max_delay_seconds,
            attempt_timeout=settings.notify_attempt_timeout_seconds,
        )

    def backoff(self, failed_attempts: int) -> float:
        """Delay before the next attempt after ``failed_attempts`` transient failures."""
        return min(self.base_delay * (2 ** (failed_attempts - 1)), self.max_delay)


@dataclass(frozen=True)
class Branch:
    channel: ChannelKind
    target: str
    message: AlertMessage


def _subject_name(event: EmergencyEvent) -> str:
    return event.owner_name or f"device {event.device_id}"


def _location_text(event: EmergencyEvent) -> str:
    location = event.reading.location
    return f"{location.latitude}, {location.longitude}"


def compose_alert(event: EmergencyEvent) -> AlertMessage:
    reading = event.reading
    name = _subject_name(event)
    body = (
        f"Emergency for user {name}\n"
        f"Heart Rate: {reading.heart_rate}\n"
        f"SpO2: {reading.spo2}\n"
        f"Location: {_location_text(event)}"
    )
    return AlertMessage(
        subject=ALERT_SUBJECT,
        body=body,
        payload={"deviceId": event.device_id, "readingId": reading.reading_id},
    )


def compose_sms(event: EmergencyEvent) -> AlertMessage:
    body = f"Emergency for user {_subject_name(event)}. Location: {_location_text(event)}"
    return AlertMessage(subject=ALERT_SUBJECT, body=body)


def compose_dispatch(event: EmergencyEvent) -> AlertMessage:
    reading = event.reading
    details = f"Emergency for user {_subject_name(event)}"
    return AlertMessage(
        subject=ALERT_SUBJECT,
        body=details,
        payload={
            "location": reading.location.model_dump(),
            "details": details,
            "deviceId": event.device_id,
            "heartRate": reading.heart_rate,
            "spO2": reading.spo2,
            "detectedAt": event.detected_at.isoformat(),
        },
    )


class NotificationOrchestrator:
    """Fans an emergency out to every applicable channel and target.

    Branches run concurrently and independently; a failed branch never
    cancels or delays another. ``notify`` returns once every branch has
    succeeded, failed permanently, or exhausted its attempts. It never raises
    for failed deliveries.
    """

    def __init__(
        self,
        channels: Mapping[ChannelKind, Channel],
        policy: RetryPolicy | None = None,
        max_concurrency: int = 8,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.channels = dict(channels)
        self.policy = policy or RetryPolicy()
        self.max_concurrency = max_concurrency
        self._sleep = sleep

    def build_branches(
        self, event: EmergencyEvent, contacts: Sequence[EmergencyContact]
    ) -> List[Branch]:
        contact_message = compose_alert(event)
        sms_message = compose_sms(event)
        branches: List[Branch] = []
        for contact in contacts:
            if contact.email:
                branches.append(Branch(ChannelKind.email, contact.email, contact_message))
            if contact.phone:
                branches.append(Branch(ChannelKind.sms, contact.phone, sms_message))
        branches.append(Branch(ChannelKind.push, event.device_id, contact_message))
        branches.append(Branch(ChannelKind.dispatch, DISPATCH_TARGET, compose_dispatch(event)))
        return branches

    async def notify(
        self, event: EmergencyEvent, contacts: Sequence[EmergencyContact]
    ) -> NotificationSummary:
        branches = self.build_branches(event, contacts)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        attempts = await asyncio.gather(
            *(self._run_branch(branch, semaphore, event.device_id) for branch in branches)
        )

        summary = NotificationSummary(device_id=event.device_id)
        for attempt in attempts:
            if attempt.status is AttemptStatus.succeeded:
                summary.succeeded.append(attempt)
            else:
                summary.failed.append(attempt)

        logger.info(
            "Notification fan-out finished",
            extra={
                "device_id": event.device_id,
                "succeeded": len(summary.succeeded),
                "failed": len(summary.failed),
            },
        )
        return summary

    async def _run_branch(
        self, branch: Branch, semaphore: asyncio.Semaphore, device_id: str
    ) -> NotificationAttempt:
        attempt = NotificationAttempt(channel=branch.channel, target=branch.target)
        log_context = {
            "device_id": device_id,
            "channel": branch.channel.value,
            "target": branch.target,
        }

        channel = self.channels.get(branch.channel)
        if channel is None:
            attempt.status = AttemptStatus.failed_permanent
            attempt.last_error = f"No channel configured for {branch.channel.value}."
            logger.error("Skipping branch without channel", extra=log_context)
            return attempt

        while attempt.attempt_count < self.policy.max_attempts:
            attempt.attempt_count += 1
            try:
                async with semaphore:
                    await asyncio.wait_for(
                        channel.send(branch.target, branch.message),
                        timeout=self.policy.attempt_timeout,
                    )
            except asyncio.TimeoutError:
                error = ChannelError.transient_error(
                    f"Attempt timed out after {self.policy.attempt_timeout}s."
                )
            except ChannelError as exc:
                error = exc
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected channel failure", extra=log_context)
                error = ChannelError.permanent_error(f"Unexpected error: {exc}")
            else:
                attempt.status = AttemptStatus.succeeded
                attempt.last_error = None
                logger.info(
                    "Alert delivered",
                    extra={**log_context, "attempt": attempt.attempt_count},
                )
                return attempt

            attempt.last_error = str(error)
            if not error.transient:
                attempt.status = AttemptStatus.failed_permanent
                logger.error(
                    "Alert rejected",
                    extra={**log_context, "attempt": attempt.attempt_count, "reason": error},
                )
                return attempt

            attempt.status = AttemptStatus.failed_transient
            if attempt.attempt_count >= self.policy.max_attempts:
                break

            delay = self.policy.backoff(attempt.attempt_count)
            logger.warning(
                "Retrying alert after transient failure",
                extra={
                    **log_context,
                    "attempt": attempt.attempt_count,
                    "delay_ms": int(delay * 1000),
                    "reason": error,
                },
            )
            await self._sleep(delay)

        attempt.exhausted = True
        logger.error(
            "Alert retries exhausted",
            extra={**log_context, "attempt": attempt.attempt_count, "reason": attempt.last_error},
        )
        return attempt
