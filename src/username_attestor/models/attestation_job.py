"""Attestation job — one per confirmed payment."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from username_attestor.models.base import Base, utcnow


class AttestationJob(Base):
    """Tracks posting of the attestation for a confirmed payment.

    ``attestation_tx_id`` and ``attested_at`` are written together, once.
    """

    __tablename__ = "attestation_jobs"

    payment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("payments.payment_id"), primary_key=True, autoincrement=False
    )
    attestation_tx_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    attested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    @property
    def is_attested(self) -> bool:
        """Whether the attestation has been posted."""
        return self.attested_at is not None

    def __repr__(self) -> str:
        return f"<AttestationJob payment={self.payment_id} unit={self.attestation_tx_id}>"
