"""Payment intake and finalisation.

Ledger notifications arrive as transaction ids. Each payment to one of our
receiving addresses is validated and recorded under the identifier lock, so
two payments racing for one identifier are decided one after the other.
Redelivered notifications find the payment already recorded and do nothing.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from username_attestor.conversation.texts import render, render_error
from username_attestor.errors.attestor_errors import AttestorError
from username_attestor.locking.keyed_mutex import identifier_key
from username_attestor.models.payment import PaymentRecord, RejectedPayment
from username_attestor.repository.payments import PaymentRepository
from username_attestor.repository.requesters import RequesterRepository
from username_attestor.repository.reservations import ReservationRepository
from username_attestor.services.payment_validator import PaymentValidator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from username_attestor.engine.client import AttestorEngine
    from username_attestor.ledger.client import IncomingPayment
    from username_attestor.models.reservation import Reservation
    from username_attestor.repository.payments import ConfirmedPayment
    from username_attestor.services.payment_validator import ValidationOutcome

logger = logging.getLogger(__name__)


class PaymentService:
    """Validates incoming payments and drives confirmed ones to attestation."""

    def __init__(self, engine: AttestorEngine) -> None:
        self._engine = engine
        self._reservations = ReservationRepository(engine.datastore)
        self._payments = PaymentRepository(engine.datastore)
        self._requesters = RequesterRepository(engine.datastore)
        self._validator = PaymentValidator(self._reservations, engine.config.reservation)

    @property
    def validator(self) -> PaymentValidator:
        return self._validator

    async def handle_incoming(self, tx_ids: Iterable[str]) -> list[ValidationOutcome]:
        """Validate every payment the given transactions make to our addresses."""
        payments = await self._engine.ledger.read_incoming_payments(list(tx_ids))
        outcomes: list[ValidationOutcome] = []
        for payment in payments:
            outcome = await self.validate_payment(payment)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    async def validate_payment(self, payment: IncomingPayment) -> ValidationOutcome | None:
        """Validate and record one payment, then tell its requester.

        Returns None when the payment is not ours or was already handled.
        """
        reservation = await self._reservations.get(payment.address)
        if reservation is None:
            logger.debug(
                "Ignoring %s: %s is not a receiving address", payment.tx_id, payment.address
            )
            return None

        metrics = self._engine.metrics
        async with self._engine.identifier_locks.lock(identifier_key(reservation.identifier)):
            if await self._payments.is_recorded(payment.tx_id, reservation.reservation_id):
                logger.info("Payment %s already handled", payment.tx_id)
                return None
            with metrics.track_validate_payment() if metrics else nullcontext():
                outcome = await self._validator.validate(payment, reservation)
            if not await self._record(payment, reservation, outcome):
                return None

        if metrics:
            metrics.inc_payment(outcome.label)
        locale = await self._locale(reservation.requester_id)
        if outcome.is_accepted:
            logger.info(
                "Accepted payment %s of %d for %s",
                payment.tx_id,
                payment.amount,
                reservation.identifier,
            )
            text = render(
                "received-your-payment",
                {"amount": payment.amount, "username": reservation.identifier},
                locale,
            )
        else:
            text = render_error(outcome.error, locale)
            if outcome.bounce and await self._engine.funds_service.bounce(payment, reservation):
                fee = self._engine.config.funds.bounce_fee
                text += "\n\n" + render("bounced-payment", {"bounce_fee": fee}, locale)
        await self._engine.chat.send_message(reservation.requester_id, text)
        return outcome

    async def handle_finalized(self, tx_ids: Iterable[str]) -> int:
        """Confirm known payments and post their attestations.

        A transaction that turns final before its incoming notification was
        handled is validated first. Transactions that pay none of our
        reservations are ignored; repeated finality events leave the first
        confirmation in place. Returns the number of payments confirmed.
        """
        confirmed_count = 0
        for tx_id in tx_ids:
            confirmed = await self._payments.confirm(tx_id)
            if not confirmed:
                await self.handle_incoming([tx_id])
                confirmed = await self._payments.confirm(tx_id)
            for payment in confirmed:
                confirmed_count += 1
                await self._attest(payment)
        return confirmed_count

    async def _attest(self, payment: ConfirmedPayment) -> None:
        if payment.newly_confirmed:
            locale = await self._locale(payment.requester_id)
            await self._engine.chat.send_message(
                payment.requester_id,
                render("payment-is-confirmed", locale=locale)
                + "\n\n"
                + render("in-attestation", {"username": payment.identifier}, locale),
            )
        try:
            await self._engine.attestation_service.attest_payment(payment.payment_id)
        except AttestorError as exc:
            logger.warning(
                "Attestation of payment %d (tx %s) deferred to retry: %s",
                payment.payment_id,
                payment.payment_tx_id,
                exc.message,
            )

    async def _record(
        self, payment: IncomingPayment, reservation: Reservation, outcome: ValidationOutcome
    ) -> bool:
        """Persist the outcome; False if the transaction was recorded concurrently."""
        try:
            if outcome.is_accepted:
                await self._payments.create(
                    PaymentRecord(
                        payment_tx_id=payment.tx_id,
                        reservation_id=reservation.reservation_id,
                        price_at_time=reservation.price,
                        received_amount=payment.amount,
                    )
                )
            else:
                await self._payments.create_rejected(
                    RejectedPayment(
                        reservation_id=reservation.reservation_id,
                        price=reservation.price,
                        received_amount=payment.amount,
                        payment_tx_id=payment.tx_id,
                        reason=outcome.label,
                        message=render_error(outcome.error),
                    )
                )
        except IntegrityError:
            logger.warning("Payment %s was recorded concurrently", payment.tx_id)
            return False
        if outcome.clear_payer_address:
            await self._requesters.clear_payer_address(reservation.requester_id)
        return True

    async def _locale(self, requester_id: str) -> str:
        requester = await self._requesters.get(requester_id)
        if requester is None:
            return self._engine.config.texts.default_locale
        return requester.locale
