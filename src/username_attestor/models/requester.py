"""Requester model — one row per chat pairing."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from username_attestor.models.base import Base, TimestampMixin

UNKNOWN_LOCALE = "unknown"


class Requester(Base, TimestampMixin):
    """A chat endpoint and the address/username it is currently claiming."""

    __tablename__ = "users"

    requester_id: Mapped[str] = mapped_column(
        String(64), primary_key=True, comment="Chat endpoint identity"
    )
    payer_address: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None, comment="Claimed payer address"
    )
    identifier: Mapped[str | None] = mapped_column(
        String(32), nullable=True, default=None, comment="Claimed username"
    )
    locale: Mapped[str] = mapped_column(
        String(16), nullable=False, default=UNKNOWN_LOCALE, comment="Chosen language"
    )

    def __repr__(self) -> str:
        return f"<Requester id={self.requester_id} identifier={self.identifier}>"
