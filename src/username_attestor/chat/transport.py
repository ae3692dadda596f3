"""Chat collaborator interface."""

from __future__ import annotations

from typing import Protocol


class ChatTransport(Protocol):
    """Delivers text to a paired chat endpoint."""

    async def send_message(self, requester_id: str, text: str) -> bool:
        """Send *text*; True when the gateway acknowledged delivery."""
        ...
