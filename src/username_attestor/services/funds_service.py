"""Fund movement — bouncing rejected payments and consolidating receipts.

Receiving addresses are swept hourly into the accumulation address, and the
accumulation balance is paid out weekly. Both sweeps are skipped while the
ledger is still catching up, since stable balances are unknown until then.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from username_attestor.errors.transport_errors import LedgerError
from username_attestor.repository.reservations import ReservationRepository

if TYPE_CHECKING:
    from username_attestor.engine.client import AttestorEngine
    from username_attestor.ledger.client import IncomingPayment, LedgerClient
    from username_attestor.models.reservation import Reservation

logger = logging.getLogger(__name__)


async def read_balance_summary(ledger: LedgerClient, address: str) -> str:
    """Balance of *address* as JSON for operator notifications."""
    try:
        balance = await ledger.read_balance(address)
    except LedgerError as exc:
        return f"unavailable ({exc.message})"
    return json.dumps({"stable": balance.stable, "pending": balance.pending, **balance.extra})


class FundsService:
    """Bounces and periodic sweeps."""

    def __init__(self, engine: AttestorEngine) -> None:
        self._engine = engine
        self._config = engine.config.funds
        self._reservations = ReservationRepository(engine.datastore)

    async def bounce(self, payment: IncomingPayment, reservation: Reservation) -> str | None:
        """Return *payment* minus the bounce fee to the reservation's payer.

        Payments too small to cover the fee plus margin are kept. Returns the
        refund transaction id, or None when nothing was sent. The requester
        is told about the refund by the caller, together with the rejection.
        """
        fee = self._config.bounce_fee
        if payment.amount < fee + self._config.min_bounce_margin:
            logger.info("Amount %d of %s is too small to bounce", payment.amount, payment.tx_id)
            return None
        ledger = self._engine.ledger
        try:
            refund_tx_id = await ledger.send_payment(
                reservation.payer_address,
                payment.amount - fee,
                paying_addresses=[reservation.reservation_id],
                change_address=self._engine.accumulation_address,
            )
        except LedgerError as exc:
            balance = await read_balance_summary(ledger, reservation.reservation_id)
            await self._engine.admin.notify(
                "failed to bounce payment",
                f"{payment.tx_id} to {reservation.payer_address}: {exc.message},"
                f" balance: {balance}",
            )
            return None
        logger.info(
            "Bounced %s to %s, tx %s", payment.tx_id, reservation.payer_address, refund_tx_id
        )
        return refund_tx_id

    async def move_funds_to_accumulation(self) -> str | None:
        """Sweep stable funds of receiving addresses into the accumulation address."""
        ledger = self._engine.ledger
        if await ledger.is_syncing():
            return None
        funded = await ledger.list_funded_addresses(
            await self._reservations.list_ids(), limit=self._config.max_paying_addresses
        )
        if not funded:
            return None
        try:
            tx_id = await ledger.send_all(
                self._engine.accumulation_address, paying_addresses=funded
            )
        except LedgerError as exc:
            balance = await read_balance_summary(ledger, funded[0])
            await self._engine.admin.notify(
                "failed to move funds", f"{exc.message}, balance: {balance}"
            )
            return None
        logger.info("Moved funds of %d addresses, tx %s", len(funded), tx_id)
        return tx_id

    async def move_funds_to_payout(self) -> str | None:
        """Send the whole accumulation balance to the payout address, if one is set."""
        if not self._config.payout_address:
            return None
        ledger = self._engine.ledger
        if await ledger.is_syncing():
            return None
        accumulation = self._engine.accumulation_address
        try:
            tx_id = await ledger.send_all(
                self._config.payout_address,
                paying_addresses=[accumulation],
                change_address=accumulation,
            )
        except LedgerError as exc:
            balance = await read_balance_summary(ledger, accumulation)
            await self._engine.admin.notify(
                "failed to pay out", f"{exc.message}, balance: {balance}"
            )
            return None
        logger.info("Moved funds to payout address, tx %s", tx_id)
        return tx_id
