"""Repositories over the reservation store."""

from username_attestor.repository.attestations import AttestationRepository, AttestationTarget
from username_attestor.repository.payments import ConfirmedPayment, PaymentRepository
from username_attestor.repository.requesters import RequesterRepository
from username_attestor.repository.reservations import ReservationRepository

__all__ = [
    "AttestationRepository",
    "AttestationTarget",
    "ConfirmedPayment",
    "PaymentRepository",
    "RequesterRepository",
    "ReservationRepository",
]
