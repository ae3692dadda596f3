"""V1 API request/response Pydantic schemas.

API-layer schemas only; endpoint code maps ORM objects onto them.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error body ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


class AcceptedResponse(BaseModel):
    """Event queued for the dispatcher."""

    status: str = "accepted"


# ---------------------------------------------------------------------------
# Chat callbacks
# ---------------------------------------------------------------------------


class PairedRequest(BaseModel):
    """POST /api/v1/chat/paired"""

    requester_id: str = Field(min_length=1, max_length=64)


class MessageRequest(BaseModel):
    """POST /api/v1/chat/messages"""

    requester_id: str = Field(min_length=1, max_length=64)
    text: str = ""


# ---------------------------------------------------------------------------
# Ledger callbacks
# ---------------------------------------------------------------------------


class TxIdsRequest(BaseModel):
    """POST /api/v1/ledger/incoming and /api/v1/ledger/finalized"""

    tx_ids: list[str] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class PaymentView(BaseModel):
    payment_tx_id: str
    received_amount: int
    is_final: bool
    attestation_tx_id: str | None = None
    attested_at: datetime | None = None


class ReservationView(BaseModel):
    reservation_id: str
    requester_id: str
    payer_address: str
    identifier: str
    price: int
    created_at: datetime
    notified_expiry: bool
    payment: PaymentView | None = None


class RetryResponse(BaseModel):
    posted: int
