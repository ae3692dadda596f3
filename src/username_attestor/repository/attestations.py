"""Attestation jobs repository."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from username_attestor.models.attestation_job import AttestationJob
from username_attestor.models.base import utcnow
from username_attestor.models.payment import PaymentRecord
from username_attestor.models.reservation import Reservation

if TYPE_CHECKING:
    from datetime import datetime

    from username_attestor.datastore.client import Datastore


@dataclass(frozen=True)
class AttestationTarget:
    """An attestation job joined with the reservation it attests."""

    payment_id: int
    payment_tx_id: str
    requester_id: str
    payer_address: str
    identifier: str
    attestation_tx_id: str | None
    attested_at: datetime | None


class AttestationRepository:
    """Data access layer for ``attestation_jobs``."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    def _target_query(self):  # noqa: ANN202
        return (
            select(
                AttestationJob.payment_id,
                PaymentRecord.payment_tx_id,
                Reservation.requester_id,
                Reservation.payer_address,
                Reservation.identifier,
                AttestationJob.attestation_tx_id,
                AttestationJob.attested_at,
            )
            .join(PaymentRecord, PaymentRecord.payment_id == AttestationJob.payment_id)
            .join(Reservation, Reservation.reservation_id == PaymentRecord.reservation_id)
        )

    async def get_target(self, payment_id: int) -> AttestationTarget | None:
        async with self._ds.session() as session:
            stmt = self._target_query().where(AttestationJob.payment_id == payment_id)
            row = (await session.execute(stmt)).first()
            return AttestationTarget(*row) if row is not None else None

    async def list_pending(self) -> list[AttestationTarget]:
        """Jobs whose attestation has not been posted yet."""
        async with self._ds.session() as session:
            stmt = (
                self._target_query()
                .where(AttestationJob.attestation_tx_id.is_(None))
                .order_by(AttestationJob.created_at, AttestationJob.payment_id)
            )
            rows = (await session.execute(stmt)).all()
            return [AttestationTarget(*row) for row in rows]

    async def record_attestation(self, payment_id: int, attestation_tx_id: str) -> bool:
        """Write the attestation tx id if none is stored yet. Returns True if written."""
        async with self._ds.session() as session:
            stmt = (
                update(AttestationJob)
                .where(
                    AttestationJob.payment_id == payment_id,
                    AttestationJob.attestation_tx_id.is_(None),
                )
                .values(attestation_tx_id=attestation_tx_id, attested_at=utcnow())
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0  # type: ignore[union-attr]
