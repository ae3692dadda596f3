"""Conversation controller — the chat scenario that leads a requester to an attestation.

Every inbound text produces exactly one outgoing message. Steps that succeed
along the way (language chosen, address stored, username accepted) contribute
their confirmation as a prefix to the final prompt or status.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from username_attestor.conversation import texts
from username_attestor.errors.attestor_errors import AttestorError
from username_attestor.models.base import as_utc
from username_attestor.models.requester import UNKNOWN_LOCALE
from username_attestor.notifications.events import (
    IncomingPaymentsEvent,
    PairedEvent,
    PaymentsFinalizedEvent,
    TextEvent,
)

if TYPE_CHECKING:
    from username_attestor.engine.client import AttestorEngine
    from username_attestor.models.attestation_job import AttestationJob
    from username_attestor.models.payment import PaymentRecord
    from username_attestor.models.reservation import Reservation
    from username_attestor.notifications.events import RawEvent

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-z0-9_-]{1,32}$")
SELECT_LANGUAGE = "select language"


def normalize_username(text: str) -> str:
    """Lowercase and drop one leading ``@``."""
    return text.lower().removeprefix("@")


class ConversationController:
    """Turns chat and ledger events into replies and service calls."""

    def __init__(self, engine: AttestorEngine) -> None:
        self._engine = engine
        self._texts = engine.config.texts

    async def handle_event(self, event: RawEvent) -> None:
        """Entry point for the event dispatcher."""
        if isinstance(event, PairedEvent):
            await self.handle_paired(event.requester_id)
        elif isinstance(event, TextEvent):
            await self.respond(event.requester_id, event.text)
        elif isinstance(event, IncomingPaymentsEvent):
            await self._engine.payment_service.handle_incoming(event.tx_ids)
        elif isinstance(event, PaymentsFinalizedEvent):
            await self._engine.payment_service.handle_finalized(event.tx_ids)
        else:
            logger.warning("Unhandled event type %r", event.type)

    async def handle_paired(self, requester_id: str) -> str:
        return await self.respond(requester_id, "")

    async def respond(self, requester_id: str, text: str) -> str:
        """Run the scenario for one inbound text and send the single reply."""
        reply = await self.build_reply(requester_id, text.strip())
        await self._engine.chat.send_message(requester_id, reply)
        return reply

    async def build_reply(self, requester_id: str, text: str) -> str:
        requesters = self._engine.requesters
        requester = await requesters.get_or_create(requester_id)
        locale = requester.locale
        parts: list[str] = []

        if self._texts.multilingual:
            code = ""
            if text.startswith(SELECT_LANGUAGE + " "):
                code = text.removeprefix(SELECT_LANGUAGE).strip()
            if code in self._texts.languages:
                await requesters.set_locale(requester_id, code)
                locale = code
                back = texts.render("back-to-languages", locale=locale)
                parts.append(
                    texts.command_button(back, SELECT_LANGUAGE)
                    + "\n\n"
                    + self._greeting(locale)
                )
                text = ""
            elif locale == UNKNOWN_LOCALE or text == SELECT_LANGUAGE:
                return self._language_menu(locale)
            elif not text:
                parts.append(self._greeting(locale))
        elif not text:
            parts.append(self._greeting(locale))

        # -- payer address ----------------------------------------------------
        payer_address = requester.payer_address
        identifier = requester.identifier
        if text and self._engine.ledger.is_valid_address(text):
            payer_address = text
            identifier = None
            text = ""
            await requesters.set_payer_address(requester_id, payer_address)
            parts.append(
                texts.render("going-to-attest-address", {"address": payer_address}, locale)
            )
        elif not payer_address:
            parts.append(texts.render("insert-my-address", locale=locale))
            return _join(parts)

        # -- username ---------------------------------------------------------
        candidate = normalize_username(text)
        if identifier and candidate == identifier:
            pass
        elif USERNAME_RE.match(candidate):
            try:
                claim = await self._engine.reservation_service.claim_identifier(
                    requester_id, payer_address, candidate
                )
            except AttestorError as err:
                parts.append(texts.render_error(err, locale))
                return _join(parts)
            if not claim.stored:
                # Address changed concurrently; restart from the address prompt.
                parts.append(texts.render("insert-my-address", locale=locale))
                return _join(parts)
            identifier = candidate
            if not claim.already_paid:
                parts.append(
                    texts.render(
                        "going-to-attest-username",
                        {"username": candidate, "price": claim.price},
                        locale,
                    )
                )
        elif not identifier:
            message_id = "wrong-username-format" if text else "insert-my-username"
            parts.append(texts.render(message_id, locale=locale))
            return _join(parts)

        # -- reservation status -----------------------------------------------
        try:
            reservation, latest = await self._reservation(requester_id, payer_address, identifier)
        except AttestorError as err:
            parts.append(texts.render_error(err, locale))
            return _join(parts)
        parts.append(self._status(reservation, latest, locale))
        return _join(parts)

    async def _paid_reservation(
        self, requester_id: str, payer_address: str, identifier: str
    ) -> tuple[Reservation, tuple[PaymentRecord, AttestationJob | None]] | None:
        """The exact reservation if it already received a payment; reported as is."""
        service = self._engine.reservation_service
        existing = await service.repository.find_exact(requester_id, payer_address, identifier)
        if existing is None:
            return None
        latest = await service.latest_payment(existing.reservation_id)
        if latest is None:
            return None
        return existing, latest

    async def _reservation(
        self, requester_id: str, payer_address: str, identifier: str
    ) -> tuple[Reservation, tuple[PaymentRecord, AttestationJob | None] | None]:
        """The requester's reservation and its latest payment."""
        paid = await self._paid_reservation(requester_id, payer_address, identifier)
        if paid is not None:
            return paid
        service = self._engine.reservation_service
        reservation = await service.get_or_create_reservation(
            requester_id, payer_address, identifier
        )
        return reservation, await service.latest_payment(reservation.reservation_id)

    def _status(
        self,
        reservation: Reservation,
        latest: tuple[PaymentRecord, AttestationJob | None] | None,
        locale: str,
    ) -> str:
        username = reservation.identifier
        if latest is None:
            link = texts.pay_link(
                reservation.reservation_id, reservation.price, reservation.payer_address
            )
            return texts.render("please-pay", {"pay_link": link}, locale)
        payment, job = latest
        if not payment.is_final:
            return texts.render(
                "received-your-payment",
                {"amount": payment.received_amount, "username": username},
                locale,
            )
        if job is None or not job.is_attested:
            return texts.render("in-attestation", {"username": username}, locale)
        attested_at = as_utc(job.attested_at).strftime("%Y-%m-%d %H:%M UTC")
        return texts.render(
            "username-already-attested",
            {"username": username, "attestation_date": attested_at},
            locale,
        )

    def _greeting(self, locale: str) -> str:
        lines = texts.price_lines(self._engine.pricing.price_lines(), locale)
        return texts.render("greeting", {"price_lines": lines}, locale)

    def _language_menu(self, locale: str) -> str:
        menu = texts.render("select-language", locale=locale)
        for code, name in self._texts.languages.items():
            menu += "\n- " + texts.command_button(name, f"{SELECT_LANGUAGE} {code}")
        return menu


def _join(parts: list[str]) -> str:
    return "\n\n".join(part for part in parts if part)
