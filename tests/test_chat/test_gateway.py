"""Tests for the chat gateway client."""

from __future__ import annotations

import json

import httpx
import pytest

from username_attestor.chat.gateway import ChatGatewayClient
from username_attestor.config.settings import ChatConfig
from username_attestor.errors.transport_errors import ChatError


def _gateway(status: int = 200) -> tuple[ChatGatewayClient, list[dict]]:
    posted: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append({"path": request.url.path, **json.loads(request.content)})
        return httpx.Response(status, json={})

    gateway = ChatGatewayClient(ChatConfig(url="http://chat.test"))
    gateway._client = httpx.AsyncClient(
        base_url="http://chat.test", transport=httpx.MockTransport(handler)
    )
    return gateway, posted


class TestChatGatewayClient:
    async def test_send_message(self) -> None:
        gateway, posted = _gateway()
        assert await gateway.send_message("alice-device", "hello") is True
        assert posted == [
            {"path": "/messages", "to": "alice-device", "type": "text", "body": "hello"}
        ]

    async def test_rejected_delivery(self) -> None:
        gateway, _ = _gateway(status=404)
        assert await gateway.send_message("gone-device", "hello") is False

    async def test_transport_error(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        gateway = ChatGatewayClient(ChatConfig())
        gateway._client = httpx.AsyncClient(
            base_url="http://chat.test", transport=httpx.MockTransport(fail)
        )
        assert await gateway.send_message("alice-device", "hello") is False

    async def test_not_connected(self) -> None:
        gateway = ChatGatewayClient(ChatConfig())
        with pytest.raises(ChatError):
            await gateway.send_message("alice-device", "hello")

    async def test_connect_close(self) -> None:
        gateway = ChatGatewayClient(ChatConfig(token="t"))
        await gateway.connect()
        assert gateway.is_connected
        await gateway.close()
        assert not gateway.is_connected
