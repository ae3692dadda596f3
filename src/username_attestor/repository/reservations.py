"""Reservations repository.

Every availability query here is meant to run while the caller holds the
identifier lock, so that the answer stays valid until the caller's write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, exists, func, or_, select, update
from sqlalchemy.orm import aliased

from username_attestor.models.attestation_job import AttestationJob
from username_attestor.models.payment import CONFIRMED, PaymentRecord
from username_attestor.models.reservation import Reservation

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from username_attestor.datastore.client import Datastore


def _has_payment(reservation: type[Reservation] = Reservation):  # noqa: ANN202
    return exists().where(PaymentRecord.reservation_id == reservation.reservation_id)


class ReservationRepository:
    """Data access layer for reservations."""

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    async def create(self, reservation: Reservation) -> Reservation:
        """Persist a new reservation."""
        async with self._ds.session() as session:
            session.add(reservation)
            await session.commit()
            await session.refresh(reservation)
        return reservation

    async def get(self, reservation_id: str) -> Reservation | None:
        async with self._ds.session() as session:
            return await session.get(Reservation, reservation_id)

    async def find_exact(
        self, requester_id: str, payer_address: str, identifier: str
    ) -> Reservation | None:
        """Latest reservation for the exact (requester, payer, identifier) triple."""
        async with self._ds.session() as session:
            stmt = (
                select(Reservation)
                .where(
                    Reservation.requester_id == requester_id,
                    Reservation.payer_address == payer_address,
                    Reservation.identifier == identifier,
                )
                .order_by(Reservation.created_at.desc())
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def list_for_identifier(self, identifier: str) -> list[Reservation]:
        async with self._ds.session() as session:
            stmt = (
                select(Reservation)
                .where(Reservation.identifier == identifier)
                .order_by(Reservation.created_at.desc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_ids(self) -> list[str]:
        """All receiving addresses ever issued."""
        async with self._ds.session() as session:
            result = await session.execute(select(Reservation.reservation_id))
            return list(result.scalars().all())

    async def is_blocked_for(
        self,
        identifier: str,
        requester_id: str,
        payer_address: str,
        *,
        fresh_after: datetime,
    ) -> bool:
        """Whether another claimant holds *identifier*.

        Another (requester, payer) pair holds it if one of its reservations
        was paid, or was created after *fresh_after* and is still unpaid.
        """
        async with self._ds.session() as session:
            stmt = select(
                exists().where(
                    Reservation.identifier == identifier,
                    or_(
                        Reservation.requester_id != requester_id,
                        Reservation.payer_address != payer_address,
                    ),
                    or_(_has_payment(), Reservation.created_at > fresh_after),
                )
            )
            return bool((await session.execute(stmt)).scalar())

    async def has_competitor(self, reservation: Reservation, *, fresh_after: datetime) -> bool:
        """Whether a late payment to *reservation* lost the identifier.

        A competitor is any other reservation for the identifier that was paid,
        or an unpaid one from a different requester and a different payer that
        was created after *fresh_after*.
        """
        async with self._ds.session() as session:
            stmt = select(
                exists().where(
                    Reservation.identifier == reservation.identifier,
                    Reservation.reservation_id != reservation.reservation_id,
                    or_(
                        _has_payment(),
                        and_(
                            ~_has_payment(),
                            Reservation.created_at > fresh_after,
                            Reservation.requester_id != reservation.requester_id,
                            Reservation.payer_address != reservation.payer_address,
                        ),
                    ),
                )
            )
            return bool((await session.execute(stmt)).scalar())

    async def is_paid_elsewhere(self, reservation: Reservation) -> bool:
        """Whether another reservation for the same identifier has a payment."""
        async with self._ds.session() as session:
            stmt = select(
                exists().where(
                    Reservation.identifier == reservation.identifier,
                    Reservation.reservation_id != reservation.reservation_id,
                    _has_payment(),
                )
            )
            return bool((await session.execute(stmt)).scalar())

    async def count_paid_for_requester(self, requester_id: str) -> int:
        """Number of distinct reservations of *requester_id* that received a payment."""
        async with self._ds.session() as session:
            stmt = (
                select(func.count(func.distinct(Reservation.reservation_id)))
                .join(PaymentRecord, PaymentRecord.reservation_id == Reservation.reservation_id)
                .where(Reservation.requester_id == requester_id)
            )
            return int((await session.execute(stmt)).scalar() or 0)

    async def count_paid_for_payer(self, payer_address: str) -> int:
        """Number of payments credited to reservations of *payer_address*."""
        async with self._ds.session() as session:
            stmt = (
                select(func.count(PaymentRecord.payment_id))
                .join(Reservation, PaymentRecord.reservation_id == Reservation.reservation_id)
                .where(Reservation.payer_address == payer_address)
            )
            return int((await session.execute(stmt)).scalar() or 0)

    async def find_unsettled_identifier(
        self, requester_id: str, payer_address: str
    ) -> str | None:
        """Identifier whose payment by this requester or payer is not yet attested.

        Covers payments that are still pending finality as well as final ones
        whose attestation has not been written yet.
        """
        async with self._ds.session() as session:
            stmt = (
                select(Reservation.identifier)
                .join(PaymentRecord, PaymentRecord.reservation_id == Reservation.reservation_id)
                .outerjoin(
                    AttestationJob, AttestationJob.payment_id == PaymentRecord.payment_id
                )
                .where(
                    or_(
                        Reservation.requester_id == requester_id,
                        Reservation.payer_address == payer_address,
                    ),
                    or_(
                        PaymentRecord.is_confirmed.is_(None),
                        PaymentRecord.is_confirmed != CONFIRMED,
                        AttestationJob.attested_at.is_(None),
                    ),
                )
                .limit(1)
            )
            return (await session.execute(stmt)).scalar_one_or_none()

    async def list_expiring(self, *, created_before: datetime) -> Sequence[Reservation]:
        """Unpaid, not yet warned reservations created at or before *created_before*.

        Reservations whose payer already paid for any reservation are left out.
        """
        other = aliased(Reservation)
        payer_paid = (
            exists()
            .where(
                other.payer_address == Reservation.payer_address,
                PaymentRecord.reservation_id == other.reservation_id,
            )
        )
        async with self._ds.session() as session:
            stmt = (
                select(Reservation)
                .where(
                    Reservation.notified_expiry.is_(False),
                    Reservation.created_at <= created_before,
                    ~_has_payment(),
                    ~payer_paid,
                )
                .order_by(Reservation.created_at)
            )
            result = await session.execute(stmt)
            return result.scalars().all()

    async def mark_notified(self, reservation_id: str) -> None:
        async with self._ds.session() as session:
            stmt = (
                update(Reservation)
                .where(Reservation.reservation_id == reservation_id)
                .values(notified_expiry=True)
            )
            await session.execute(stmt)
            await session.commit()
