"""Services — reservation, payment, attestation, expiry and fund flows."""

from __future__ import annotations

from username_attestor.services.attestation_service import AttestationService
from username_attestor.services.expiry_sweeper import ExpirySweeper
from username_attestor.services.funds_service import FundsService
from username_attestor.services.payment_service import PaymentService
from username_attestor.services.payment_validator import (
    PaymentValidator,
    ValidationOutcome,
    Verdict,
)
from username_attestor.services.pricing import PricingTable
from username_attestor.services.reservation_service import IdentifierClaim, ReservationService

__all__ = [
    "AttestationService",
    "ExpirySweeper",
    "FundsService",
    "IdentifierClaim",
    "PaymentService",
    "PaymentValidator",
    "PricingTable",
    "ReservationService",
    "ValidationOutcome",
    "Verdict",
]
