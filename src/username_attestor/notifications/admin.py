"""Operator notifications — failures an administrator has to act on.

Every notification is logged at ERROR level and, when an admin webhook is
configured, POSTed to it as ``{"subject": ..., "body": ...}`` with retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from username_attestor.config.settings import AdminConfig

logger = logging.getLogger(__name__)

RETRY_DELAY = 1.0  # seconds


class AdminNotifier:
    """Delivers operator notifications to the admin webhook."""

    def __init__(self, config: AdminConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._config.webhook_url)

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def notify(self, subject: str, body: str) -> bool:
        """Report *subject* to the operator. Returns True if the webhook accepted it."""
        logger.error("admin notification: %s: %s", subject, body)
        if not self.is_configured or self._client is None:
            return False

        headers: dict[str, str] = {}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"

        attempts = self._config.max_retries + 1
        for attempt in range(attempts):
            try:
                resp = await self._client.post(
                    self._config.webhook_url,
                    json={"subject": subject, "body": body},
                    headers=headers,
                )
                if resp.status_code < 400:
                    return True
                logger.warning(
                    "Admin webhook returned %d (attempt %d/%d)",
                    resp.status_code,
                    attempt + 1,
                    attempts,
                )
            except httpx.HTTPError as exc:
                logger.warning(
                    "Admin webhook error: %s (attempt %d/%d)", exc, attempt + 1, attempts
                )
            if attempt < attempts - 1:
                await asyncio.sleep(RETRY_DELAY)
        return False
