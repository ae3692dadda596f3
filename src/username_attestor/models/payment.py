"""Payment models — credited payments and the rejected-payment audit trail."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from username_attestor.models.base import Base, utcnow

CONFIRMED = 1


class PaymentRecord(Base):
    """An accepted incoming payment against a reservation.

    One row per credited output: a transaction paying several of our
    receiving addresses yields one row per reservation.

    ``is_confirmed`` is NULL while pending, 0 when seen but not final and 1
    once the ledger reports the payment final.
    """

    __tablename__ = "payments"
    __table_args__ = (UniqueConstraint("payment_tx_id", "reservation_id"),)

    payment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_tx_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    reservation_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("reservations.reservation_id"), nullable=False, index=True
    )
    price_at_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    received_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_confirmed: Mapped[int | None] = mapped_column(SmallInteger, nullable=True, default=None)
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    @property
    def is_final(self) -> bool:
        """Whether the ledger reported this payment final."""
        return self.is_confirmed == CONFIRMED

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord id={self.payment_id} tx={self.payment_tx_id[:16]}"
            f" confirmed={self.is_confirmed}>"
        )


class RejectedPayment(Base):
    """Append-only audit row for a payment that failed validation."""

    __tablename__ = "rejected_payments"
    __table_args__ = (UniqueConstraint("payment_tx_id", "reservation_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    received_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_tx_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False, comment="Error code")
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
