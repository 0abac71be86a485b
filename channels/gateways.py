"""HTTP gateway channels for email, SMS, push, and responder dispatch."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import httpx

from channels.base import Channel, normalize_target
from channels.console import ConsoleChannel
from models.records import AlertMessage, ChannelKind, DeliveryAck
from services.errors import ChannelError
from settings import Settings

logger = logging.getLogger(__name__)

# Client-side statuses retried alongside 5xx.
_RETRYABLE_STATUS = {408, 425, 429}

DISPATCH_TARGET = "emergency-services"


class GatewayChannel(ABC):
    """Base for channels that POST a JSON body to a third-party gateway."""

    kind: ChannelKind

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient,
        sender: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> None:
        self.url = url
        self.sender = sender
        self._client = client
        self._auth_token = auth_token

    @abstractmethod
    def build_body(self, target: str, message: AlertMessage) -> Dict[str, Any]:
        """Return the JSON request body for one delivery."""

    async def send(self, target: str, message: AlertMessage) -> DeliveryAck:
        address = normalize_target(self.kind, target)
        headers = {"Content-Type": "application/json"}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        try:
            response = await self._client.post(
                self.url, json=self.build_body(address, message), headers=headers
            )
        except httpx.TimeoutException as exc:
            raise ChannelError.transient_error(f"{self.kind.value} gateway timed out") from exc
        except httpx.TransportError as exc:
            raise ChannelError.transient_error(
                f"{self.kind.value} gateway unreachable: {exc}"
            ) from exc

        status_code = response.status_code
        if status_code in _RETRYABLE_STATUS or status_code >= 500:
            raise ChannelError.transient_error(
                f"{self.kind.value} gateway returned {status_code}", status_code=status_code
            )
        if status_code >= 400:
            raise ChannelError.permanent_error(
                f"{self.kind.value} gateway rejected request with {status_code}",
                status_code=status_code,
            )
        return DeliveryAck(channel=self.kind, target=address, reference=_reference_from(response))


class EmailChannel(GatewayChannel):
    kind = ChannelKind.email

    def build_body(self, target: str, message: AlertMessage) -> Dict[str, Any]:
        return {"from": self.sender, "to": target, "subject": message.subject, "text": message.body}


class SmsChannel(GatewayChannel):
    kind = ChannelKind.sms

    def build_body(self, target: str, message: AlertMessage) -> Dict[str, Any]:
        return {"from": self.sender, "to": target, "body": message.body}


class PushChannel(GatewayChannel):
    kind = ChannelKind.push

    def build_body(self, target: str, message: AlertMessage) -> Dict[str, Any]:
        return {
            "token": target,
            "notification": {"title": message.subject, "body": message.body},
            "data": message.payload,
        }


class DispatchChannel(GatewayChannel):
    kind = ChannelKind.dispatch

    def build_body(self, target: str, message: AlertMessage) -> Dict[str, Any]:
        return {"service": target, **message.payload}


def _reference_from(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    return None


class ChannelRegistry:
    """Channels keyed by kind, plus the HTTP client they share."""

    def __init__(
        self,
        channels: Mapping[ChannelKind, Channel],
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.channels: Dict[ChannelKind, Channel] = dict(channels)
        self._client = client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


_GATEWAY_TYPES = {
    ChannelKind.email: EmailChannel,
    ChannelKind.sms: SmsChannel,
    ChannelKind.push: PushChannel,
    ChannelKind.dispatch: DispatchChannel,
}


def build_channels(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> ChannelRegistry:
    """Wire a gateway channel for each configured URL and a console channel otherwise."""
    urls = {
        ChannelKind.email: settings.email_gateway_url,
        ChannelKind.sms: settings.sms_gateway_url,
        ChannelKind.push: settings.push_gateway_url,
        ChannelKind.dispatch: settings.dispatch_api_url,
    }
    if client is None and any(urls.values()):
        # Attempt timeouts are enforced by the orchestrator; this is a backstop.
        client = httpx.AsyncClient(timeout=settings.notify_attempt_timeout_seconds * 2)

    channels: Dict[ChannelKind, Channel] = {}
    for kind, url in urls.items():
        if url and client is not None:
            channels[kind] = _GATEWAY_TYPES[kind](
                url=url,
                client=client,
                sender=settings.alert_sender,
                auth_token=settings.gateway_auth_token,
            )
        else:
            logger.info("No gateway configured; alerts will be logged", extra={"channel": kind.value})
            channels[kind] = ConsoleChannel(kind)
    return ChannelRegistry(channels, client=client)
