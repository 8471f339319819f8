"""Channel senders: the wire-level side of notification delivery.

``NotificationService`` hands each channel of a request to a ``ChannelSender``.
Two implementations are provided:
- ``HttpChannelSender`` posts to a notification gateway (email, in-app, SMS)
- ``LoggingChannelSender`` only logs, for development and dry runs
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from uuid import uuid4

import httpx

from quire.notifications.models import (
    ChannelResult,
    EmailNotification,
    InAppNotification,
    SMSNotification,
)

logger = logging.getLogger(__name__)


class ChannelSender(Protocol):
    async def send_email(self, email: EmailNotification) -> ChannelResult: ...

    async def send_in_app(self, notification: InAppNotification) -> ChannelResult: ...

    async def send_sms(self, sms: SMSNotification) -> ChannelResult: ...

    async def aclose(self) -> None: ...


class LoggingChannelSender:
    """Logs notifications instead of delivering them."""

    async def send_email(self, email: EmailNotification) -> ChannelResult:
        logger.info(f"[dry-run] email to {email.to}: {email.subject}")
        return ChannelResult(success=True, message_id=f"dry-run-{uuid4().hex[:12]}")

    async def send_in_app(self, notification: InAppNotification) -> ChannelResult:
        logger.info(f"[dry-run] in-app to {notification.user_id}: {notification.title}")
        return ChannelResult(success=True, message_id=f"dry-run-{uuid4().hex[:12]}")

    async def send_sms(self, sms: SMSNotification) -> ChannelResult:
        logger.info(f"[dry-run] sms to {sms.to}")
        return ChannelResult(success=True, message_id=f"dry-run-{uuid4().hex[:12]}")

    async def aclose(self) -> None:
        return None


class HttpChannelSender:
    """Delivers notifications through an HTTP notification gateway.

    Each channel maps to ``POST {base_url}/{channel}`` with the notification
    as JSON. The gateway answers ``{"id": ...}`` on success. HTTP and
    transport errors become failed channel results.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def _post(self, channel: str, body: dict[str, Any]) -> ChannelResult:
        url = f"{self.base_url}/{channel}"
        try:
            response = await self._client.post(url, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Gateway rejected {channel} notification: {e.response.status_code}")
            return ChannelResult(
                success=False,
                error=f"Gateway returned {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            logger.warning(f"Gateway unreachable for {channel} notification: {e}")
            return ChannelResult(success=False, error=str(e) or type(e).__name__)

        # The gateway has accepted the message; an unreadable body only loses the id
        try:
            data = response.json() if response.content else None
        except ValueError:
            logger.debug(f"Gateway returned a non-JSON body for {channel} notification")
            data = None
        message_id = data.get("id") if isinstance(data, dict) else None
        return ChannelResult(success=True, message_id=message_id)

    async def send_email(self, email: EmailNotification) -> ChannelResult:
        return await self._post("email", email.model_dump(mode="json", exclude_none=True))

    async def send_in_app(self, notification: InAppNotification) -> ChannelResult:
        return await self._post("in-app", notification.model_dump(mode="json", exclude_none=True))

    async def send_sms(self, sms: SMSNotification) -> ChannelResult:
        return await self._post("sms", sms.model_dump(mode="json", exclude_none=True))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
