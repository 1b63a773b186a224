"""HTTP client for the notification service's /send endpoint."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from common.errors import NotificationError
from common.models import NotificationRequest

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, recipient: str, subject: str, html_body: str) -> str: ...


class HttpNotifier:
    """Posts notifications to the notification service. Returns the delivery id."""

    def __init__(self, base_url: str, timeout_ms: int = 2000, client: httpx.AsyncClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_ms / 1000.0)

    async def send(self, recipient: str, subject: str, html_body: str) -> str:
        body = NotificationRequest(recipient=recipient, subject=subject, html_body=html_body)
        try:
            resp = await self._client.post(f"{self._base_url}/send", json=body.model_dump())
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Notification to {recipient} failed: {e}") from e
        delivery_id = resp.json()["delivery_id"]
        logger.info("Email sent: %s", delivery_id)
        return delivery_id

    async def close(self) -> None:
        await self._client.aclose()
