from __future__ import annotations

import logging
from uuid import uuid4

from channels.base import normalize_target
from models.records import AlertMessage, ChannelKind, DeliveryAck

logger = logging.getLogger(__name__)


class ConsoleChannel:
    """Logs alerts instead of delivering them; used when no gateway is configured."""

    def __init__(self, kind: ChannelKind) -> None:
        self.kind = kind

    async def send(self, target: str, message: AlertMessage) -> DeliveryAck:
        address = normalize_target(self.kind, target)
        logger.info(
            "%s: %s",
            message.subject,
            message.body,
            extra={"channel": self.kind.value, "target": address},
        )
        return DeliveryAck(channel=self.kind, target=address, reference=f"console-{uuid4()}")
