"""Reservation service — availability checks and reservation issuance.

All availability decisions run under the identifier lock for the whole
decide-then-write span; issuing a receiving address additionally holds the
requester lock so one requester never gets two addresses concurrently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from username_attestor.errors.definitions import (
    ErrAwaitingConfirmation,
    ErrIdentifierTaken,
    ErrNotForSale,
)
from username_attestor.locking.keyed_mutex import identifier_key, requester_key
from username_attestor.models.base import utcnow
from username_attestor.models.reservation import Reservation
from username_attestor.repository.payments import PaymentRepository
from username_attestor.repository.reservations import ReservationRepository
from username_attestor.services.limits import check_limits

if TYPE_CHECKING:
    from username_attestor.engine.client import AttestorEngine
    from username_attestor.models.attestation_job import AttestationJob
    from username_attestor.models.payment import PaymentRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentifierClaim:
    """Result of storing a username as a requester's claim."""

    identifier: str
    price: int
    already_paid: bool
    stored: bool


class ReservationService:
    """Creates and looks up identifier reservations."""

    def __init__(self, engine: AttestorEngine) -> None:
        self._engine = engine
        self._repo = ReservationRepository(engine.datastore)
        self._payments = PaymentRepository(engine.datastore)
        self._config = engine.config.reservation

    @property
    def repository(self) -> ReservationRepository:
        return self._repo

    async def get_or_create_reservation(
        self, requester_id: str, payer_address: str, identifier: str
    ) -> Reservation:
        """Return the reservation for the triple, issuing a new one if needed.

        Raises:
            AttestorError: ``NotForSale``, ``IdentifierTaken``,
                ``AwaitingConfirmation`` or ``LimitExceeded``.
        """
        price = self._engine.pricing.price(identifier)
        if price == 0:
            raise ErrNotForSale.with_params(username=identifier)

        async with self._engine.identifier_locks.lock(identifier_key(identifier)):
            await self._check_available(requester_id, payer_address, identifier)

            existing = await self._repo.find_exact(requester_id, payer_address, identifier)
            if existing is not None:
                return existing

            async with self._engine.identifier_locks.lock(requester_key(requester_id)):
                existing = await self._repo.find_exact(requester_id, payer_address, identifier)
                if existing is not None:
                    return existing
                receiving_address = await self._engine.ledger.issue_receiving_address()
                reservation = await self._repo.create(
                    Reservation(
                        reservation_id=receiving_address,
                        requester_id=requester_id,
                        payer_address=payer_address,
                        identifier=identifier,
                        price=price,
                        created_at=utcnow(),
                        notified_expiry=False,
                    )
                )
        if self._engine.metrics:
            self._engine.metrics.inc_reservations()
        logger.info(
            "Reserved %s for %s at %s, price %d",
            identifier,
            requester_id,
            reservation.reservation_id,
            price,
        )
        return reservation

    async def claim_identifier(
        self, requester_id: str, payer_address: str, identifier: str
    ) -> IdentifierClaim:
        """Check *identifier* and store it as the requester's claim under one lock.

        A reservation of this requester and payer that already received a
        payment is claimed without the availability checks, which would
        otherwise refuse it as awaiting confirmation or over the limit.
        ``stored`` is False when the requester's claimed address changed
        in the meantime.

        Raises:
            AttestorError: Same taxonomy as :meth:`get_or_create_reservation`.
        """
        price = self._engine.pricing.price(identifier)
        if price == 0:
            raise ErrNotForSale.with_params(username=identifier)
        async with self._engine.identifier_locks.lock(identifier_key(identifier)):
            existing = await self._repo.find_exact(requester_id, payer_address, identifier)
            already_paid = (
                existing is not None
                and await self.latest_payment(existing.reservation_id) is not None
            )
            if not already_paid:
                await self._check_available(requester_id, payer_address, identifier)
            stored = await self._engine.requesters.set_identifier(
                requester_id, payer_address, identifier
            )
        return IdentifierClaim(
            identifier=identifier, price=price, already_paid=already_paid, stored=stored
        )

    async def latest_payment(
        self, reservation_id: str
    ) -> tuple[PaymentRecord, AttestationJob | None] | None:
        """Most recent payment to *reservation_id* and its attestation job, if any."""
        return await self._payments.latest_for_reservation(reservation_id)

    def fresh_after(self) -> datetime:
        """Reservations created after this instant are still within the price timeout."""
        return utcnow() - timedelta(seconds=self._config.price_timeout)

    async def _check_available(
        self, requester_id: str, payer_address: str, identifier: str
    ) -> None:
        """Steps 2-4 of reservation issuance; caller holds the identifier lock."""
        if await self._repo.is_blocked_for(
            identifier, requester_id, payer_address, fresh_after=self.fresh_after()
        ):
            raise ErrIdentifierTaken.with_params(username=identifier)

        unsettled = await self._repo.find_unsettled_identifier(requester_id, payer_address)
        if unsettled is not None:
            raise ErrAwaitingConfirmation.with_params(username=unsettled)

        limit_error = await check_limits(
            self._repo,
            requester_id,
            payer_address,
            max_per_requester=self._config.max_identifiers_per_requester,
        )
        if limit_error is not None:
            raise limit_error
