"""Inbound event types delivered by the chat and ledger collaborators."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class RawEvent:
    """Generic event envelope."""

    type: str
    content: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return asdict(self)


@dataclass(frozen=True)
class PairedEvent(RawEvent):
    """A chat endpoint paired with the bot."""

    type: str = "paired"
    requester_id: str = ""


@dataclass(frozen=True)
class TextEvent(RawEvent):
    """A chat endpoint sent a text message."""

    type: str = "text"
    requester_id: str = ""
    text: str = ""


@dataclass(frozen=True)
class IncomingPaymentsEvent(RawEvent):
    """New transactions paying our addresses were seen."""

    type: str = "incoming_payments"
    tx_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaymentsFinalizedEvent(RawEvent):
    """Transactions became final on the ledger."""

    type: str = "payments_finalized"
    tx_ids: tuple[str, ...] = ()
