from __future__ import annotations

import re
from typing import Callable, Dict, Protocol

from models.records import AlertMessage, ChannelKind, DeliveryAck
from services.errors import ChannelError

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")
_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


class Channel(Protocol):
    """One notification mechanism able to deliver an alert to one target.

    Implementations raise :class:`ChannelError` on failure and classify it as
    transient or permanent. Delivery is at-least-once: a retried send may
    reach the recipient twice.
    """

    kind: ChannelKind

    async def send(self, target: str, message: AlertMessage) -> DeliveryAck:
        ...


def _check_email(target: str) -> str:
    candidate = target.strip()
    if not _EMAIL_PATTERN.match(candidate):
        raise ChannelError.permanent_error(f"Invalid email address {target!r}.")
    return candidate


def _check_phone(target: str) -> str:
    candidate = _PHONE_SEPARATORS.sub("", target)
    if not _PHONE_PATTERN.match(candidate):
        raise ChannelError.permanent_error(f"Invalid phone number {target!r}.")
    return candidate


def _check_non_empty(target: str) -> str:
    candidate = target.strip()
    if not candidate:
        raise ChannelError.permanent_error("Target must not be empty.")
    return candidate


_TARGET_CHECKS: Dict[ChannelKind, Callable[[str], str]] = {
    ChannelKind.email: _check_email,
    ChannelKind.sms: _check_phone,
    ChannelKind.push: _check_non_empty,
    ChannelKind.dispatch: _check_non_empty,
}


def normalize_target(kind: ChannelKind, target: str) -> str:
    """Validate ``target`` for ``kind`` and return its canonical form.

    Raises a permanent :class:`ChannelError` for malformed targets.
    """
    return _TARGET_CHECKS[kind](target)
