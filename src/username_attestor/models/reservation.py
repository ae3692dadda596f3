"""Reservation model — identifier + payer address + price, keyed by receiving address."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import BigInteger, Boolean, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from username_attestor.models.base import Base, utcnow


class Reservation(Base):
    """A priced claim on an identifier, pending payment to ``reservation_id``.

    Rows are never updated after insert except for ``notified_expiry``.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_triple", "requester_id", "payer_address", "identifier"),
    )

    reservation_id: Mapped[str] = mapped_column(
        String(64), primary_key=True, comment="Receiving address issued for this reservation"
    )
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    payer_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    identifier: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    notified_expiry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Reservation {self.identifier} at {self.reservation_id}>"
