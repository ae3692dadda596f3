"""Tests for the wallet JSON-RPC client against a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest
from conftest import PAYER_A

from username_attestor.config.settings import LedgerConfig
from username_attestor.errors.transport_errors import LedgerError
from username_attestor.ledger.address import validate_address
from username_attestor.ledger.client import IncomingPayment, Output
from username_attestor.ledger.wallet_rpc import WalletRPCClient


def _client(handler) -> tuple[WalletRPCClient, list[dict]]:
    """WalletRPCClient whose HTTP calls go to *handler*; returns it and the request log."""
    calls: list[dict] = []

    def record(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body)
        return handler(body)

    rpc = WalletRPCClient(LedgerConfig(url="http://wallet.test"))
    rpc._client = httpx.AsyncClient(
        base_url="http://wallet.test", transport=httpx.MockTransport(record)
    )
    return rpc, calls


def _result(value) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": value})


class TestConnection:
    async def test_not_connected(self) -> None:
        rpc = WalletRPCClient(LedgerConfig())
        assert rpc.is_connected is False
        with pytest.raises(LedgerError, match="not connected"):
            await rpc.is_syncing()

    async def test_connect_and_close(self) -> None:
        rpc = WalletRPCClient(LedgerConfig(token="secret"))
        await rpc.connect()
        assert rpc.is_connected
        assert rpc._client.headers["Authorization"] == "Bearer secret"
        await rpc.close()
        assert rpc.is_connected is False


class TestMethods:
    async def test_issue_receiving_address(self) -> None:
        rpc, calls = _client(lambda body: _result(PAYER_A))
        assert await rpc.issue_receiving_address() == PAYER_A
        assert calls[0]["method"] == "issueNextMainAddress"
        assert calls[0]["jsonrpc"] == "2.0"

    async def test_issue_or_select_address(self) -> None:
        rpc, calls = _client(lambda body: _result(PAYER_A))
        await rpc.issue_or_select_address(1)
        assert calls[0]["params"] == [0, 1]

    async def test_compose_and_broadcast(self) -> None:
        rpc, calls = _client(lambda body: _result("unit-1"))
        unit = await rpc.compose_and_broadcast(
            [{"app": "attestation"}], [PAYER_A], [Output(address=PAYER_A, amount=0)]
        )
        assert unit == "unit-1"
        assert calls[0]["params"]["outputs"] == [{"address": PAYER_A, "amount": 0}]

    async def test_read_incoming_payments(self) -> None:
        rows = [{"tx_id": "tx-1", "address": "R", "amount": "1450", "authors": [PAYER_A]}]
        rpc, calls = _client(lambda body: _result(rows))
        payments = await rpc.read_incoming_payments(["tx-1"])
        assert payments == [
            IncomingPayment(tx_id="tx-1", address="R", amount=1450, authors=(PAYER_A,))
        ]
        assert payments[0].is_native

    async def test_read_incoming_payments_empty_skips_call(self) -> None:
        rpc, calls = _client(lambda body: _result([]))
        assert await rpc.read_incoming_payments([]) == []
        assert calls == []

    async def test_read_balance(self) -> None:
        rpc, _ = _client(lambda body: _result({"stable": 10, "pending": 5, "asset": "x"}))
        balance = await rpc.read_balance(PAYER_A)
        assert (balance.stable, balance.pending, balance.extra) == (10, 5, {"asset": "x"})

    async def test_send_payment_params(self) -> None:
        rpc, calls = _client(lambda body: _result("unit-2"))
        await rpc.send_payment(PAYER_A, 900, paying_addresses=["R"], change_address="C")
        params = calls[0]["params"]
        assert params["amount"] == 900
        assert params["change_address"] == "C"
        assert params["spend_unconfirmed"] == "all"

    async def test_send_all_without_change(self) -> None:
        rpc, calls = _client(lambda body: _result("unit-3"))
        await rpc.send_all(PAYER_A, paying_addresses=["R"])
        params = calls[0]["params"]
        assert params["send_all"] is True
        assert "change_address" not in params

    async def test_list_funded_addresses(self) -> None:
        rpc, calls = _client(lambda body: _result(["R1"]))
        assert await rpc.list_funded_addresses(["R1", "R2"], limit=16) == ["R1"]
        assert calls[0]["params"]["limit"] == 16

    def test_is_valid_address(self) -> None:
        rpc = WalletRPCClient(LedgerConfig())
        assert rpc.is_valid_address(PAYER_A)
        assert not rpc.is_valid_address("bob")
        assert validate_address(PAYER_A.lower()) is False


class TestErrors:
    async def test_rpc_error_object(self) -> None:
        rpc, _ = _client(
            lambda body: httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "not enough funds"}}
            )
        )
        with pytest.raises(LedgerError, match="not enough funds"):
            await rpc.compose_and_broadcast([], [PAYER_A], [])

    async def test_http_status(self) -> None:
        rpc, _ = _client(lambda body: httpx.Response(503))
        with pytest.raises(LedgerError) as exc_info:
            await rpc.is_syncing()
        assert exc_info.value.status_code == 503

    async def test_invalid_json(self) -> None:
        rpc, _ = _client(lambda body: httpx.Response(200, content=b"not json"))
        with pytest.raises(LedgerError, match="invalid JSON"):
            await rpc.is_syncing()

    async def test_transport_failure(self) -> None:
        def fail(body):
            raise httpx.ConnectError("refused")

        rpc, _ = _client(fail)
        with pytest.raises(LedgerError, match="refused"):
            await rpc.issue_receiving_address()
