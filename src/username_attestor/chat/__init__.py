"""Chat collaborator — protocol and gateway adapter."""

from username_attestor.chat.gateway import ChatGatewayClient
from username_attestor.chat.transport import ChatTransport

__all__ = ["ChatGatewayClient", "ChatTransport"]
