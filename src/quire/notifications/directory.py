"""Reviewer invitation lookup."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from quire.notifications.models import ReviewerInvitation

logger = logging.getLogger(__name__)


class InvitationDirectory(Protocol):
    async def get_invitation(self, invitation_token: str) -> ReviewerInvitation | None: ...

    async def aclose(self) -> None: ...


class HttpInvitationDirectory:
    """Reads invitations from the journal API.

    ``GET {base_url}/reviewer-invitations/{token}``; 404 means unknown token.
    Other HTTP errors propagate so the calling job is retried.
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

    async def get_invitation(self, invitation_token: str) -> ReviewerInvitation | None:
        response = await self._client.get(
            f"{self.base_url}/reviewer-invitations/{invitation_token}"
        )
        if response.status_code == 404:
            logger.debug(f"Invitation not found: {invitation_token}")
            return None
        response.raise_for_status()
        return ReviewerInvitation.model_validate(response.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
