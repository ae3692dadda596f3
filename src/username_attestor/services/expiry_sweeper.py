"""Expiry sweeper — warns holders of unpaid reservations shortly before expiry."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from username_attestor.conversation.texts import render
from username_attestor.models.base import utcnow
from username_attestor.repository.requesters import RequesterRepository
from username_attestor.repository.reservations import ReservationRepository

if TYPE_CHECKING:
    from datetime import datetime

    from username_attestor.engine.client import AttestorEngine

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Sends one expiry warning per unpaid reservation.

    A reservation is flagged only once the chat transport acknowledges the
    warning, so undelivered warnings are retried on the next sweep and
    delivered ones are never repeated.
    """

    def __init__(self, engine: AttestorEngine) -> None:
        self._engine = engine
        self._config = engine.config.reservation
        self._reservations = ReservationRepository(engine.datastore)
        self._requesters = RequesterRepository(engine.datastore)

    async def sweep_expiring_reservations(self, *, now: datetime | None = None) -> int:
        """Warn unpaid reservations within ``reminder_timeout`` of expiry.

        Returns the number of reservations flagged.
        """
        border = (now or utcnow()) - timedelta(
            seconds=self._config.price_timeout - self._config.reminder_timeout
        )
        flagged = 0
        for reservation in await self._reservations.list_expiring(created_before=border):
            requester = await self._requesters.get(reservation.requester_id)
            locale = requester.locale if requester else self._engine.config.texts.default_locale
            delivered = await self._engine.chat.send_message(
                reservation.requester_id,
                render("reservation-will-expire", {"username": reservation.identifier}, locale),
            )
            if not delivered:
                logger.debug("Expiry warning for %s not delivered", reservation.reservation_id)
                continue
            await self._reservations.mark_notified(reservation.reservation_id)
            flagged += 1
        if flagged:
            logger.info("Sent %d reservation expiry warnings", flagged)
        return flagged
