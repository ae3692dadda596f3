"""Attestation poster.

Posting is serialised by the payment's transaction lock and is idempotent:
a job that already carries an attestation tx id is never broadcast again.
Compose or broadcast failures leave the job pending for the retry sweep and
are reported to the operator together with the attestor's balance.
"""

from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from typing import TYPE_CHECKING, Any

from username_attestor.conversation.texts import render
from username_attestor.errors.attestor_errors import AttestorError
from username_attestor.errors.definitions import ErrComposeOrBroadcastFailure, ErrPaymentNotFound
from username_attestor.errors.transport_errors import LedgerError
from username_attestor.ledger.client import Output
from username_attestor.locking.keyed_mutex import tx_key
from username_attestor.repository.attestations import AttestationRepository
from username_attestor.repository.requesters import RequesterRepository
from username_attestor.services.funds_service import read_balance_summary
from username_attestor.utils.crypto import object_hash

if TYPE_CHECKING:
    from username_attestor.engine.client import AttestorEngine
    from username_attestor.repository.attestations import AttestationTarget

logger = logging.getLogger(__name__)


def build_attestation_payload(payer_address: str, identifier: str, salt: str) -> dict[str, Any]:
    """``{address, profile: {username, user_id}}`` with a salted, non-reversible user id."""
    profile: dict[str, Any] = {"username": identifier}
    profile["user_id"] = object_hash([{"username": identifier}, salt])
    return {"address": payer_address, "profile": profile}


def attestation_message(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "app": "attestation",
        "payload_location": "inline",
        "payload_hash": object_hash(payload),
        "payload": payload,
    }


def timestamp_message(timestamp_ms: int) -> dict[str, Any]:
    data_feed = {"timestamp": timestamp_ms}
    return {
        "app": "data_feed",
        "payload_location": "inline",
        "payload_hash": object_hash(data_feed),
        "payload": data_feed,
    }


class AttestationService:
    """Posts attestations for confirmed payments and retries failed ones."""

    def __init__(self, engine: AttestorEngine) -> None:
        self._engine = engine
        self._repo = AttestationRepository(engine.datastore)
        self._requesters = RequesterRepository(engine.datastore)
        self._config = engine.config.attestation

    @property
    def repository(self) -> AttestationRepository:
        return self._repo

    def payload_for(self, payer_address: str, identifier: str) -> dict[str, Any]:
        return build_attestation_payload(payer_address, identifier, self._config.salt)

    async def attest_payment(self, payment_id: int) -> str:
        """Build the payload for a confirmed payment and post it."""
        target = await self._target(payment_id)
        return await self.post_and_write_attestation(
            payment_id,
            self._engine.attestor_address,
            self.payload_for(target.payer_address, target.identifier),
        )

    async def post_and_write_attestation(
        self, payment_id: int, attestor_address: str, payload: dict[str, Any]
    ) -> str:
        """Post *payload* for payment *payment_id* once and store the attestation tx id.

        Serialised on the payment's transaction id. Returns the attestation tx
        id, the stored one if the job was already done.

        Raises:
            AttestorError: ``PaymentNotFound`` if no job exists for the payment,
                ``ComposeOrBroadcastFailure`` if the ledger refused the post.
        """
        tx_id = (await self._target(payment_id)).payment_tx_id
        async with self._engine.tx_locks.lock(tx_key(tx_id)):
            target = await self._target(payment_id)
            if target.attestation_tx_id:
                logger.debug("Payment %d already attested", payment_id)
                return target.attestation_tx_id

            metrics = self._engine.metrics
            with metrics.track_post_attestation() if metrics else nullcontext():
                attestation_tx_id = await self._post(attestor_address, payload)
            await self._repo.record_attestation(payment_id, attestation_tx_id)
            if metrics:
                metrics.inc_attestation("posted")
            logger.info(
                "Attested %s for payment %d of tx %s, attestation tx %s",
                target.identifier,
                payment_id,
                tx_id,
                attestation_tx_id,
            )

            requester = await self._requesters.get(target.requester_id)
            locale = requester.locale if requester else self._engine.config.texts.default_locale
            await self._engine.chat.send_message(
                target.requester_id,
                render(
                    "username-attested",
                    {"username": target.identifier, "unit": attestation_tx_id},
                    locale,
                ),
            )
            await self._requesters.clear_claim(target.requester_id)
            return attestation_tx_id

    async def retry_pending_attestations(self) -> int:
        """Re-post every job without an attestation tx id. Returns how many succeeded."""
        posted = 0
        for target in await self._repo.list_pending():
            try:
                await self.post_and_write_attestation(
                    target.payment_id,
                    self._engine.attestor_address,
                    self.payload_for(target.payer_address, target.identifier),
                )
            except AttestorError as exc:
                logger.warning(
                    "Retry of attestation for payment %d failed: %s",
                    target.payment_id,
                    exc.message,
                )
                continue
            posted += 1
        return posted

    async def _target(self, payment_id: int) -> AttestationTarget:
        target = await self._repo.get_target(payment_id)
        if target is None:
            raise ErrPaymentNotFound.with_params(payment_id=payment_id)
        return target

    async def _post(self, attestor_address: str, payload: dict[str, Any]) -> str:
        messages = [attestation_message(payload)]
        if self._config.post_timestamp and attestor_address == self._engine.attestor_address:
            messages.append(timestamp_message(int(time.time() * 1000)))
        ledger = self._engine.ledger
        try:
            return await ledger.compose_and_broadcast(
                messages,
                paying_addresses=[attestor_address],
                outputs=[Output(address=attestor_address, amount=0)],
            )
        except LedgerError as exc:
            if self._engine.metrics:
                self._engine.metrics.inc_attestation("failed")
            balance = await read_balance_summary(ledger, attestor_address)
            await self._engine.admin.notify(
                "attestation failed", f"{exc.message}, balance: {balance}"
            )
            raise ErrComposeOrBroadcastFailure.with_params(reason=exc.message) from exc
