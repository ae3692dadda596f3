"""Wallet notifier callbacks — new and finalized transactions."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from username_attestor.api.dependencies import get_engine, require_callback_token
from username_attestor.api.v1.schemas import AcceptedResponse, TxIdsRequest
from username_attestor.engine.client import AttestorEngine  # noqa: TC001
from username_attestor.notifications.events import IncomingPaymentsEvent, PaymentsFinalizedEvent

router = APIRouter(
    prefix="/ledger", tags=["ledger"], dependencies=[Depends(require_callback_token)]
)


@router.post("/incoming", status_code=202)
async def incoming(
    body: TxIdsRequest,
    engine: Annotated[AttestorEngine, Depends(get_engine)],
) -> AcceptedResponse:
    """Transactions paying our receiving addresses were seen (not yet final)."""
    await engine.dispatcher.submit(IncomingPaymentsEvent(tx_ids=tuple(body.tx_ids)))
    return AcceptedResponse()


@router.post("/finalized", status_code=202)
async def finalized(
    body: TxIdsRequest,
    engine: Annotated[AttestorEngine, Depends(get_engine)],
) -> AcceptedResponse:
    await engine.dispatcher.submit(PaymentsFinalizedEvent(tx_ids=tuple(body.tx_ids)))
    return AcceptedResponse()
