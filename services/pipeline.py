"""Reading ingestion with background emergency notification."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional, Set

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app.schemas import Reading, ReadingSubmission
from channels.gateways import ChannelRegistry, build_channels
from datastore.repository import VitalsRepository, build_default_repository
from models.records import EmergencyEvent, NotificationSummary
from services.deduplicator import EventDeduplicator
from services.errors import DispatchFailure, PersistenceError, ReadingValidationError
from services.evaluator import ThresholdEvaluator, Thresholds
from services.orchestrator import NotificationOrchestrator, RetryPolicy
from settings import get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IngestResult:
    accepted: bool
    emergency: bool
    reading: Reading


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts) or "Invalid reading."


class IngestPipeline:
    """Validates and stores readings, then notifies on emergencies.

    ``submit`` returns once the reading is durably stored and classified.
    Flagging the stored reading and the notification fan-out run as a
    separate task so the device is never held up by third-party latency.
    """

    def __init__(
        self,
        repository: VitalsRepository,
        evaluator: ThresholdEvaluator,
        deduplicator: EventDeduplicator,
        orchestrator: NotificationOrchestrator,
        escalate_without_profile: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repository = repository
        self.evaluator = evaluator
        self.deduplicator = deduplicator
        self.orchestrator = orchestrator
        self.escalate_without_profile = escalate_without_profile
        self._clock = clock
        self._tasks: Set[asyncio.Task[Optional[NotificationSummary]]] = set()

    def validate(self, raw: Mapping[str, Any]) -> Reading:
        try:
            submission = ReadingSubmission.model_validate(raw)
        except ValidationError as exc:
            raise ReadingValidationError(_describe_validation_error(exc)) from exc
        return Reading.from_submission(submission)

    async def submit(self, raw: Mapping[str, Any]) -> IngestResult:
        """Validate, persist, and classify a reading.

        Raises :class:`ReadingValidationError` before any side effect and
        :class:`PersistenceError` if the reading could not be stored; nothing
        is notified in either case.
        """
        try:
            reading = self.validate(raw)
        except ReadingValidationError as exc:
            logger.warning("Rejected reading", extra={"reason": exc})
            raise

        await run_in_threadpool(self.repository.save_reading, reading)

        emergency = self.evaluator.is_emergency(reading)
        log_context = {"device_id": reading.device_id, "reading_id": reading.reading_id}
        if emergency:
            logger.warning(
                "Emergency detected: heart rate %s, SpO2 %s",
                reading.heart_rate,
                reading.spo2,
                extra=log_context,
            )
            task = asyncio.create_task(self.handle_emergency(reading, self._clock()))
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        else:
            logger.info("Reading accepted", extra=log_context)

        return IngestResult(accepted=True, emergency=emergency, reading=reading)

    async def handle_emergency(
        self, reading: Reading, detected_at: datetime
    ) -> Optional[NotificationSummary]:
        """Flag the stored reading and fan out alerts unless deduplicated."""
        log_context = {"device_id": reading.device_id, "reading_id": reading.reading_id}

        try:
            await run_in_threadpool(
                self.repository.update_emergency_status, reading.reading_id, True
            )
        except (PersistenceError, KeyError) as exc:
            logger.error(
                "Failed to flag reading as emergency", extra={**log_context, "reason": exc}
            )

        # A failed lookup propagates before the cooldown is recorded.
        profile = await run_in_threadpool(
            self.repository.find_user_by_device_id, reading.device_id
        )

        if not self.deduplicator.should_notify(reading.device_id, detected_at):
            logger.info("Emergency within cooldown; notification suppressed", extra=log_context)
            return None

        if profile is None:
            if not self.escalate_without_profile:
                logger.error("No profile registered for device; skipping notification", extra=log_context)
                return None
            logger.warning("No profile registered for device; escalating to dispatch", extra=log_context)

        event = EmergencyEvent(
            device_id=reading.device_id,
            reading=reading,
            detected_at=detected_at,
            owner_name=profile.name if profile else None,
        )
        contacts = profile.emergency_contacts if profile else []
        summary = await self.orchestrator.notify(event, contacts)

        try:
            summary.raise_for_total_failure()
        except DispatchFailure as exc:
            logger.critical("Alert delivery failed on every channel: %s", exc, extra=log_context)
        return summary

    def _task_done(self, task: "asyncio.Task[Optional[NotificationSummary]]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Emergency handling crashed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every in-flight notification task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)


@lru_cache
def build_default_channels() -> ChannelRegistry:
    return build_channels(get_settings())


@lru_cache
def build_default_deduplicator() -> EventDeduplicator:
    settings = get_settings()
    return EventDeduplicator(cooldown=timedelta(seconds=settings.notify_cooldown_seconds))


@lru_cache
def build_default_pipeline() -> IngestPipeline:
    """Factory that wires the pipeline from settings."""
    settings = get_settings()
    orchestrator = NotificationOrchestrator(
        channels=build_default_channels().channels,
        policy=RetryPolicy.from_settings(settings),
        max_concurrency=settings.notify_max_concurrency,
    )
    return IngestPipeline(
        repository=build_default_repository(),
        evaluator=ThresholdEvaluator(Thresholds.from_settings(settings)),
        deduplicator=build_default_deduplicator(),
        orchestrator=orchestrator,
        escalate_without_profile=settings.escalate_without_profile,
    )
