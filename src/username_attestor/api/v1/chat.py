"""Chat gateway callbacks — pairing and inbound text."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from username_attestor.api.dependencies import get_engine, require_callback_token
from username_attestor.api.v1.schemas import AcceptedResponse, MessageRequest, PairedRequest
from username_attestor.engine.client import AttestorEngine  # noqa: TC001
from username_attestor.notifications.events import PairedEvent, TextEvent

router = APIRouter(
    prefix="/chat", tags=["chat"], dependencies=[Depends(require_callback_token)]
)


@router.post("/paired", status_code=202)
async def paired(
    body: PairedRequest,
    engine: Annotated[AttestorEngine, Depends(get_engine)],
) -> AcceptedResponse:
    await engine.dispatcher.submit(PairedEvent(requester_id=body.requester_id))
    return AcceptedResponse()


@router.post("/messages", status_code=202)
async def message(
    body: MessageRequest,
    engine: Annotated[AttestorEngine, Depends(get_engine)],
) -> AcceptedResponse:
    await engine.dispatcher.submit(TextEvent(requester_id=body.requester_id, text=body.text))
    return AcceptedResponse()
