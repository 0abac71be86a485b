"""Cooldown-based suppression of repeated emergency fan-outs."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventDeduplicator:
    """Tracks the last notification time per device.

    State is process-local; a restart resets every cooldown.
    """

    def __init__(
        self,
        cooldown: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.cooldown = cooldown
        self._clock = clock
        self._last_notified: Dict[str, datetime] = {}
        self._lock = Lock()

    def should_notify(self, device_id: str, now: Optional[datetime] = None) -> bool:
        """Return True and record ``now`` if the device is outside its cooldown.

        The check and the record happen under one lock, so two concurrent
        readings for the same device cannot both win.
        """
        current = now or self._clock()
        with self._lock:
            last = self._last_notified.get(device_id)
            if last is not None and current - last < self.cooldown:
                return False
            self._last_notified[device_id] = current
            return True

    def last_notified(self, device_id: str) -> Optional[datetime]:
        with self._lock:
            return self._last_notified.get(device_id)
