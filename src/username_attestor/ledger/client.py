"""Ledger collaborator interface.

The attestor never signs or builds transactions itself; everything that
touches the ledger goes through an object implementing ``LedgerClient``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class IncomingPayment:
    """One output of an incoming transaction paying one of our receiving addresses."""

    tx_id: str
    address: str
    amount: int
    asset: str | None = None
    authors: tuple[str, ...] = ()

    @property
    def is_native(self) -> bool:
        """Whether the output is in the ledger's base currency."""
        return self.asset is None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IncomingPayment:
        return cls(
            tx_id=data["tx_id"],
            address=data["address"],
            amount=int(data["amount"]),
            asset=data.get("asset"),
            authors=tuple(data.get("authors") or ()),
        )


@dataclass(frozen=True)
class Output:
    """A payment output: *amount* to *address* (0 sends change back)."""

    address: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "amount": self.amount}


@dataclass(frozen=True)
class Balance:
    """Stable and pending amounts held by an address."""

    stable: int = 0
    pending: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Balance:
        known = {"stable", "pending"}
        return cls(
            stable=int(data.get("stable", 0)),
            pending=int(data.get("pending", 0)),
            extra={k: v for k, v in data.items() if k not in known},
        )


class LedgerClient(Protocol):
    """Operations the attestor needs from the wallet."""

    async def issue_receiving_address(self) -> str: ...

    async def issue_or_select_address(self, index: int) -> str: ...

    async def is_syncing(self) -> bool: ...

    async def compose_and_broadcast(
        self,
        messages: list[dict[str, Any]],
        paying_addresses: list[str],
        outputs: list[Output],
    ) -> str: ...

    async def read_balance(self, address: str) -> Balance: ...

    async def read_incoming_payments(self, tx_ids: list[str]) -> list[IncomingPayment]: ...

    async def send_payment(
        self,
        to_address: str,
        amount: int,
        *,
        paying_addresses: list[str],
        change_address: str | None = None,
    ) -> str: ...

    async def send_all(
        self,
        to_address: str,
        *,
        paying_addresses: list[str],
        change_address: str | None = None,
    ) -> str: ...

    async def list_funded_addresses(self, addresses: list[str], *, limit: int) -> list[str]: ...

    def is_valid_address(self, address: str) -> bool: ...
