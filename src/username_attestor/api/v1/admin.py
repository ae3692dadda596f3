"""Operator endpoints — reservation lookup and manual attestation retry."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from username_attestor.api.dependencies import get_engine, require_callback_token
from username_attestor.api.v1.schemas import PaymentView, ReservationView, RetryResponse
from username_attestor.engine.client import AttestorEngine  # noqa: TC001
from username_attestor.errors.definitions import ErrReservationNotFound
from username_attestor.models.base import as_utc

router = APIRouter(
    prefix="/admin", tags=["admin"], dependencies=[Depends(require_callback_token)]
)


@router.get("/reservations/{identifier}")
async def list_reservations(
    identifier: str,
    engine: Annotated[AttestorEngine, Depends(get_engine)],
) -> list[ReservationView]:
    """All reservations of *identifier*, newest first, with their latest payment."""
    service = engine.reservation_service
    reservations = await service.repository.list_for_identifier(identifier.lower())
    if not reservations:
        raise ErrReservationNotFound.with_params(username=identifier)

    views: list[ReservationView] = []
    for reservation in reservations:
        payment_view = None
        latest = await service.latest_payment(reservation.reservation_id)
        if latest is not None:
            payment, job = latest
            payment_view = PaymentView(
                payment_tx_id=payment.payment_tx_id,
                received_amount=payment.received_amount,
                is_final=payment.is_final,
                attestation_tx_id=job.attestation_tx_id if job else None,
                attested_at=as_utc(job.attested_at) if job and job.attested_at else None,
            )
        views.append(
            ReservationView(
                reservation_id=reservation.reservation_id,
                requester_id=reservation.requester_id,
                payer_address=reservation.payer_address,
                identifier=reservation.identifier,
                price=reservation.price,
                created_at=as_utc(reservation.created_at),
                notified_expiry=reservation.notified_expiry,
                payment=payment_view,
            )
        )
    return views


@router.post("/attestations/retry")
async def retry_attestations(
    engine: Annotated[AttestorEngine, Depends(get_engine)],
) -> RetryResponse:
    posted = await engine.attestation_service.retry_pending_attestations()
    return RetryResponse(posted=posted)
