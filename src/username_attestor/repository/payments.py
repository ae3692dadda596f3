"""Payments repository — accepted payments, rejections and confirmation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import exists, or_, select

from username_attestor.models.attestation_job import AttestationJob
from username_attestor.models.base import utcnow
from username_attestor.models.payment import CONFIRMED, PaymentRecord, RejectedPayment
from username_attestor.models.reservation import Reservation

if TYPE_CHECKING:
    from username_attestor.datastore.client import Datastore


@dataclass(frozen=True)
class ConfirmedPayment:
    """A payment that reached finality, joined with what its attestation needs."""

    payment_id: int
    payment_tx_id: str
    requester_id: str
    payer_address: str
    identifier: str
    newly_confirmed: bool


class PaymentRepository:
    """Data access layer for ``payments`` and ``rejected_payments``."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def get(self, payment_id: int) -> PaymentRecord | None:
        async with self._ds.session() as session:
            return await session.get(PaymentRecord, payment_id)

    async def list_for_tx(self, payment_tx_id: str) -> list[PaymentRecord]:
        """Accepted payments made by one transaction, one per reservation it paid."""
        async with self._ds.session() as session:
            stmt = (
                select(PaymentRecord)
                .where(PaymentRecord.payment_tx_id == payment_tx_id)
                .order_by(PaymentRecord.payment_id)
            )
            return list((await session.execute(stmt)).scalars().all())

    async def is_recorded(self, payment_tx_id: str, reservation_id: str) -> bool:
        """Whether this transaction's payment to *reservation_id* was accepted or rejected."""
        async with self._ds.session() as session:
            stmt = select(
                or_(
                    exists().where(
                        PaymentRecord.payment_tx_id == payment_tx_id,
                        PaymentRecord.reservation_id == reservation_id,
                    ),
                    exists().where(
                        RejectedPayment.payment_tx_id == payment_tx_id,
                        RejectedPayment.reservation_id == reservation_id,
                    ),
                )
            )
            return bool((await session.execute(stmt)).scalar())

    async def create(self, payment: PaymentRecord) -> PaymentRecord:
        async with self._ds.session() as session:
            session.add(payment)
            await session.commit()
            await session.refresh(payment)
        return payment

    async def create_rejected(self, rejected: RejectedPayment) -> None:
        async with self._ds.session() as session:
            session.add(rejected)
            await session.commit()

    async def latest_for_reservation(
        self, reservation_id: str
    ) -> tuple[PaymentRecord, AttestationJob | None] | None:
        """Most recent payment of a reservation together with its attestation job."""
        async with self._ds.session() as session:
            stmt = (
                select(PaymentRecord, AttestationJob)
                .outerjoin(AttestationJob, AttestationJob.payment_id == PaymentRecord.payment_id)
                .where(PaymentRecord.reservation_id == reservation_id)
                .order_by(PaymentRecord.created_at.desc(), PaymentRecord.payment_id.desc())
                .limit(1)
            )
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            return row[0], row[1]

    async def confirm(self, payment_tx_id: str) -> list[ConfirmedPayment]:
        """Mark every payment of a transaction final and create their attestation jobs.

        Runs in one database transaction. Returns an empty list for unknown
        transactions. Repeated calls leave the original ``confirmed_at``
        untouched and report ``newly_confirmed=False``.
        """
        confirmed: list[ConfirmedPayment] = []
        async with self._ds.session() as session, session.begin():
            stmt = (
                select(PaymentRecord, Reservation)
                .join(Reservation, PaymentRecord.reservation_id == Reservation.reservation_id)
                .where(PaymentRecord.payment_tx_id == payment_tx_id)
                .order_by(PaymentRecord.payment_id)
            )
            for payment, reservation in (await session.execute(stmt)).all():
                newly_confirmed = payment.is_confirmed != CONFIRMED
                if newly_confirmed:
                    payment.is_confirmed = CONFIRMED
                    payment.confirmed_at = utcnow()
                if await session.get(AttestationJob, payment.payment_id) is None:
                    session.add(AttestationJob(payment_id=payment.payment_id))
                confirmed.append(
                    ConfirmedPayment(
                        payment_id=payment.payment_id,
                        payment_tx_id=payment_tx_id,
                        requester_id=reservation.requester_id,
                        payer_address=reservation.payer_address,
                        identifier=reservation.identifier,
                        newly_confirmed=newly_confirmed,
                    )
                )
        return confirmed
