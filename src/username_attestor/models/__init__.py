"""Data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for migration and table creation.
"""

from username_attestor.models.attestation_job import AttestationJob
from username_attestor.models.base import Base, TimestampMixin
from username_attestor.models.payment import PaymentRecord, RejectedPayment
from username_attestor.models.requester import Requester
from username_attestor.models.reservation import Reservation

ALL_MODELS: list[type[Base]] = [
    Requester,
    Reservation,
    PaymentRecord,
    AttestationJob,
    RejectedPayment,
]

__all__ = [
    "ALL_MODELS",
    "AttestationJob",
    "Base",
    "PaymentRecord",
    "RejectedPayment",
    "Requester",
    "Reservation",
    "TimestampMixin",
]
