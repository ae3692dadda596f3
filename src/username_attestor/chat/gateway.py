"""Chat gateway HTTP client.

Outgoing messages are POSTed to the gateway that owns the pairing sessions.
A 2xx answer is the delivery acknowledgement; anything else is a failed
delivery the caller may retry later.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from username_attestor.errors.transport_errors import ChatError

if TYPE_CHECKING:
    from username_attestor.config.settings import ChatConfig

logger = logging.getLogger(__name__)


class ChatGatewayClient:
    """Async HTTP client implementing ``ChatTransport``."""

    def __init__(self, config: ChatConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Chat gateway client not connected. Call connect() first."
            raise ChatError(msg, status_code=500)
        return self._client

    async def send_message(self, requester_id: str, text: str) -> bool:
        """POST *text* to *requester_id*; False if the gateway did not acknowledge it.

        Raises:
            ChatError: If the client is not connected.
        """
        client = self._ensure_connected()
        try:
            response = await client.post(
                "/messages",
                json={"to": requester_id, "type": "text", "body": text},
            )
        except httpx.HTTPError as exc:
            logger.warning("Chat delivery to %s failed: %s", requester_id, exc)
            return False
        if response.status_code >= 400:
            logger.warning(
                "Chat gateway returned %d for %s", response.status_code, requester_id
            )
            return False
        return True
