"""Wallet daemon JSON-RPC client.

Talks JSON-RPC 2.0 over HTTP to the headless wallet that owns the attestor's
keys. Each ``LedgerClient`` operation maps to one RPC method.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

import httpx

from username_attestor.errors.transport_errors import LedgerError
from username_attestor.ledger.address import validate_address
from username_attestor.ledger.client import Balance, IncomingPayment

if TYPE_CHECKING:
    from username_attestor.config.settings import LedgerConfig
    from username_attestor.ledger.client import Output

logger = logging.getLogger(__name__)


class WalletRPCClient:
    """Async JSON-RPC client implementing ``LedgerClient``.

    Usage::

        ledger = WalletRPCClient(config)
        await ledger.connect()
        try:
            address = await ledger.issue_receiving_address()
        finally:
            await ledger.close()
    """

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # LedgerClient
    # ------------------------------------------------------------------

    async def issue_receiving_address(self) -> str:
        return str(await self._call("issueNextMainAddress"))

    async def issue_or_select_address(self, index: int) -> str:
        return str(await self._call("issueOrSelectAddressByIndex", [0, index]))

    async def is_syncing(self) -> bool:
        return bool(await self._call("isCatchingUp"))

    async def compose_and_broadcast(
        self,
        messages: list[dict[str, Any]],
        paying_addresses: list[str],
        outputs: list[Output],
    ) -> str:
        result = await self._call(
            "composeAndBroadcast",
            {
                "messages": messages,
                "paying_addresses": paying_addresses,
                "outputs": [o.to_dict() for o in outputs],
            },
        )
        return str(result)

    async def read_balance(self, address: str) -> Balance:
        result = await self._call("readBalance", [address])
        return Balance.from_dict(result or {})

    async def read_incoming_payments(self, tx_ids: list[str]) -> list[IncomingPayment]:
        if not tx_ids:
            return []
        result = await self._call("readIncomingPayments", {"tx_ids": tx_ids})
        return [IncomingPayment.from_dict(item) for item in result or []]

    async def send_payment(
        self,
        to_address: str,
        amount: int,
        *,
        paying_addresses: list[str],
        change_address: str | None = None,
    ) -> str:
        params: dict[str, Any] = {
            "to_address": to_address,
            "amount": amount,
            "paying_addresses": paying_addresses,
            "spend_unconfirmed": "all",
        }
        if change_address:
            params["change_address"] = change_address
        return str(await self._call("sendPayment", params))

    async def send_all(
        self,
        to_address: str,
        *,
        paying_addresses: list[str],
        change_address: str | None = None,
    ) -> str:
        params: dict[str, Any] = {
            "to_address": to_address,
            "send_all": True,
            "paying_addresses": paying_addresses,
        }
        if change_address:
            params["change_address"] = change_address
        return str(await self._call("sendPayment", params))

    async def list_funded_addresses(self, addresses: list[str], *, limit: int) -> list[str]:
        if not addresses:
            return []
        result = await self._call(
            "listStableFundedAddresses", {"addresses": addresses, "limit": limit}
        )
        return [str(a) for a in result or []]

    def is_valid_address(self, address: str) -> bool:
        return validate_address(address)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Wallet RPC client not connected. Call connect() first."
            raise LedgerError(msg, status_code=500)
        return self._client

    async def _call(self, method: str, params: list[Any] | dict[str, Any] | None = None) -> Any:
        """Invoke *method* and return its ``result``.

        Raises:
            LedgerError: On HTTP failure or a JSON-RPC error object.
        """
        client = self._ensure_connected()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params if params is not None else [],
        }
        try:
            response = await client.post("/", json=payload)
        except httpx.HTTPError as exc:
            raise LedgerError(f"wallet {method} failed: {exc}") from exc

        if response.status_code != 200:
            raise LedgerError(
                f"wallet {method} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError(f"wallet {method} returned invalid JSON") from exc

        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise LedgerError(f"wallet {method} error: {message}")
        logger.debug("wallet %s ok", method)
        return body.get("result")
