"""Error taxonomy for ingestion and alert delivery."""

from __future__ import annotations

from typing import Optional


class ReadingValidationError(ValueError):
    """A submitted reading is malformed or out of range."""


class PersistenceError(RuntimeError):
    """The reading/profile store failed to read or write."""


class ChannelError(Exception):
    """A single delivery attempt on a notification channel failed.

    ``transient`` errors (timeouts, rate limits, 5xx) are retried by the
    orchestrator; permanent ones (bad address, 4xx) are not.
    """

    def __init__(self, message: str, *, transient: bool, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code

    @classmethod
    def transient_error(cls, message: str, status_code: Optional[int] = None) -> "ChannelError":
        return cls(message, transient=True, status_code=status_code)

    @classmethod
    def permanent_error(cls, message: str, status_code: Optional[int] = None) -> "ChannelError":
        return cls(message, transient=False, status_code=status_code)


class DispatchFailure(Exception):
    """Every branch of one notification fan-out failed."""

    def __init__(self, device_id: str, failed: int) -> None:
        super().__init__(
            f"All {failed} notification branches failed for device {device_id!r}."
        )
        self.device_id = device_id
        self.failed = failed
