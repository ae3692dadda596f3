"""Payment validator — decides whether an incoming payment buys its reservation.

The decision is an ordered list of check steps; each returns a rejection or
None, and the first rejection wins. The validator reads the store but never
writes it: recording the outcome is the caller's job, done while it still
holds the identifier lock.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from username_attestor.conversation.texts import pay_link
from username_attestor.errors.definitions import (
    ErrIdentifierTaken,
    ErrTooLate,
    ErrUnderpaid,
    ErrWrongAsset,
    ErrWrongAuthor,
)
from username_attestor.models.base import as_utc, utcnow
from username_attestor.services.limits import check_limits

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from username_attestor.config.settings import ReservationConfig
    from username_attestor.errors.attestor_errors import AttestorError
    from username_attestor.ledger.client import IncomingPayment
    from username_attestor.models.reservation import Reservation
    from username_attestor.repository.reservations import ReservationRepository

logger = logging.getLogger(__name__)


class Verdict(enum.StrEnum):
    """Validation result kind."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ValidationOutcome:
    """What to do with one incoming payment.

    Attributes:
        verdict: Accepted or rejected.
        error: The rejection reason; its params carry the requester-facing text values.
        bounce: Return the payment (minus the bounce fee) to the payer.
        clear_payer_address: Forget the requester's claimed payer address.
    """

    verdict: Verdict
    error: AttestorError | None = None
    bounce: bool = False
    clear_payer_address: bool = False

    @classmethod
    def accept(cls) -> ValidationOutcome:
        return cls(verdict=Verdict.ACCEPTED)

    @classmethod
    def reject(
        cls, error: AttestorError, *, bounce: bool = False, clear_payer_address: bool = False
    ) -> ValidationOutcome:
        return cls(
            verdict=Verdict.REJECTED,
            error=error,
            bounce=bounce,
            clear_payer_address=clear_payer_address,
        )

    @property
    def is_accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPTED

    @property
    def label(self) -> str:
        """``accepted`` or the rejection's error code."""
        if self.error is None:
            return str(self.verdict)
        return self.error.code


@dataclass(frozen=True)
class PaymentContext:
    """Inputs shared by all check steps."""

    payment: IncomingPayment
    reservation: Reservation
    now: datetime


class PaymentValidator:
    """Runs the check pipeline for a payment against its reservation.

    Usage::

        validator = PaymentValidator(reservations, config.reservation)
        outcome = await validator.validate(payment, reservation)
    """

    def __init__(
        self,
        reservations: ReservationRepository,
        config: ReservationConfig,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._reservations = reservations
        self._config = config
        self._clock = clock
        self._checks: list[Callable[[PaymentContext], Awaitable[ValidationOutcome | None]]] = [
            self._check_asset,
            self._check_too_late,
            self._check_paid_elsewhere,
            self._check_limits,
            self._check_amount,
            self._check_author,
        ]

    async def validate(
        self, payment: IncomingPayment, reservation: Reservation
    ) -> ValidationOutcome:
        """Return the first rejection from the pipeline, or ACCEPTED."""
        ctx = PaymentContext(payment=payment, reservation=reservation, now=self._clock())
        for check in self._checks:
            outcome = await check(ctx)
            if outcome is not None:
                logger.info(
                    "Payment %s to %s rejected: %s",
                    payment.tx_id,
                    reservation.reservation_id,
                    outcome.label,
                )
                return outcome
        return ValidationOutcome.accept()

    # ------------------------------------------------------------------
    # Check steps
    # ------------------------------------------------------------------

    async def _check_asset(self, ctx: PaymentContext) -> ValidationOutcome | None:
        if ctx.payment.is_native:
            return None
        return ValidationOutcome.reject(ErrWrongAsset.with_params(asset=ctx.payment.asset))

    async def _check_too_late(self, ctx: PaymentContext) -> ValidationOutcome | None:
        timeout = timedelta(seconds=self._config.price_timeout)
        if ctx.now - as_utc(ctx.reservation.created_at) <= timeout:
            return None
        if not await self._reservations.has_competitor(
            ctx.reservation, fresh_after=ctx.now - timeout
        ):
            # Sole remaining claimant: a late payment still buys the identifier.
            return None
        return ValidationOutcome.reject(
            ErrTooLate.with_params(username=ctx.reservation.identifier), bounce=True
        )

    async def _check_paid_elsewhere(self, ctx: PaymentContext) -> ValidationOutcome | None:
        if not await self._reservations.is_paid_elsewhere(ctx.reservation):
            return None
        return ValidationOutcome.reject(
            ErrIdentifierTaken.with_params(username=ctx.reservation.identifier), bounce=True
        )

    async def _check_limits(self, ctx: PaymentContext) -> ValidationOutcome | None:
        error = await check_limits(
            self._reservations,
            ctx.reservation.requester_id,
            ctx.reservation.payer_address,
            max_per_requester=self._config.max_identifiers_per_requester,
        )
        if error is None:
            return None
        return ValidationOutcome.reject(error)

    async def _check_amount(self, ctx: PaymentContext) -> ValidationOutcome | None:
        price = ctx.reservation.price
        if ctx.payment.amount >= price:
            return None
        return ValidationOutcome.reject(
            ErrUnderpaid.with_params(
                username=ctx.reservation.identifier,
                received=ctx.payment.amount,
                price=price,
                pay_link=pay_link(
                    ctx.reservation.reservation_id, price, ctx.reservation.payer_address
                ),
            )
        )

    async def _check_author(self, ctx: PaymentContext) -> ValidationOutcome | None:
        authors = ctx.payment.authors
        if len(authors) != 1:
            error = ErrWrongAuthor.with_params(scope="multiple")
        elif authors[0] != ctx.reservation.payer_address:
            error = ErrWrongAuthor.with_params(
                scope="mismatch", address=ctx.reservation.payer_address
            )
        else:
            return None
        return ValidationOutcome.reject(error, clear_payer_address=True)
