"""Domain records used by the emergency evaluation and notification pipeline."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from app.schemas import Reading
from services.errors import DispatchFailure


class Classification(str, Enum):
    normal = "normal"
    emergency = "emergency"


class ChannelKind(str, Enum):
    email = "email"
    sms = "sms"
    push = "push"
    dispatch = "dispatch"


class AttemptStatus(str, Enum):
    pending = "pending"
    succeeded = "succeeded"
    failed_transient = "failed-transient"
    failed_permanent = "failed-permanent"


@dataclass(frozen=True)
class EmergencyEvent:
    """An emergency reading awaiting notification."""

    device_id: str
    reading: Reading
    detected_at: datetime
    owner_name: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        return self.device_id


@dataclass(frozen=True, slots=True)
class AlertMessage:
    """Channel-neutral alert content. ``payload`` carries structured fields."""

    subject: str
    body: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DeliveryAck:
    channel: ChannelKind
    target: str
    reference: Optional[str] = None


@dataclass(slots=True)
class NotificationAttempt:
    """Outcome of one (event, channel, target) branch."""

    channel: ChannelKind
    target: str
    status: AttemptStatus = AttemptStatus.pending
    attempt_count: int = 0
    last_error: Optional[str] = None
    exhausted: bool = False


@dataclass
class NotificationSummary:
    device_id: str
    succeeded: List[NotificationAttempt] = field(default_factory=list)
    failed: List[NotificationAttempt] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_failed(self) -> bool:
        return self.total > 0 and not self.succeeded

    def counts_by_status(self) -> Dict[AttemptStatus, int]:
        return dict(Counter(attempt.status for attempt in self.succeeded + self.failed))

    def raise_for_total_failure(self) -> None:
        if self.all_failed:
            raise DispatchFailure(self.device_id, len(self.failed))
