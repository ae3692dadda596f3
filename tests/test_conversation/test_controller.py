"""End-to-end tests for the chat scenario."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import PAYER_A, PAYER_B
from sqlalchemy import update

from username_attestor.config.settings import TextsConfig
from username_attestor.conversation.controller import USERNAME_RE, normalize_username
from username_attestor.models.base import utcnow
from username_attestor.models.reservation import Reservation
from username_attestor.notifications.events import (
    IncomingPaymentsEvent,
    PairedEvent,
    PaymentsFinalizedEvent,
    TextEvent,
)

DEVICE = "alice-device"


class TestUsernameFormat:
    @pytest.mark.parametrize("text", ["bob", "a_b-c", "x" * 32, "007"])
    def test_valid(self, text: str) -> None:
        assert USERNAME_RE.match(text)

    @pytest.mark.parametrize("text", ["", "x" * 33, "bob smith", "bób", "Bob"])
    def test_invalid(self, text: str) -> None:
        assert not USERNAME_RE.match(text)

    def test_normalize(self) -> None:
        assert normalize_username("@Bob") == "bob"
        assert normalize_username("BOB") == "bob"


class TestScenario:
    async def test_greeting_asks_for_address(self, engine, chat) -> None:
        reply = await engine.controller.handle_paired(DEVICE)
        assert "Here you can attest your username." in reply
        assert "3+ characters: 1450 bytes" in reply
        assert "send me your address" in reply
        assert chat.sent == [(DEVICE, reply)]

    async def test_garbage_without_address(self, engine) -> None:
        reply = await engine.controller.respond(DEVICE, "hello")
        assert "send me your address" in reply

    async def test_address_then_username_prompt(self, engine) -> None:
        reply = await engine.controller.respond(DEVICE, PAYER_A)
        assert f"going to attest your address: {PAYER_A}" in reply
        assert "send me the username" in reply

    async def test_wrong_format(self, engine) -> None:
        await engine.controller.respond(DEVICE, PAYER_A)
        reply = await engine.controller.respond(DEVICE, "not a username!")
        assert reply.startswith("Wrong username format.")

    async def test_not_for_sale(self, engine) -> None:
        await engine.controller.respond(DEVICE, PAYER_A)
        reply = await engine.controller.respond(DEVICE, "ab")
        assert reply == "Username @ab is not for sale."

    async def test_username_quotes_price_and_pay_link(self, engine, ledger) -> None:
        await engine.controller.respond(DEVICE, PAYER_A)
        reply = await engine.controller.respond(DEVICE, "@Bob")
        assert "Going to attest username @bob, the price is 1450 bytes." in reply
        assert f"payment:{ledger.issued[0]}?amount=1450&single_address=single{PAYER_A}" in reply

        requester = await engine.requesters.get(DEVICE)
        assert requester.identifier == "bob"

    async def test_repeating_username_reports_status(self, engine, ledger) -> None:
        await engine.controller.respond(DEVICE, PAYER_A)
        await engine.controller.respond(DEVICE, "bob")
        reply = await engine.controller.respond(DEVICE, "bob")
        assert reply.startswith("Please pay for the attestation")
        assert len(ledger.issued) == 1

    async def test_taken_by_other_claimant(self, engine) -> None:
        await engine.controller.respond("carol-device", PAYER_B)
        await engine.controller.respond("carol-device", "bob")
        await engine.controller.respond(DEVICE, PAYER_A)
        reply = await engine.controller.respond(DEVICE, "bob")
        assert reply == "Username @bob is already taken."

    async def test_new_address_resets_username(self, engine) -> None:
        await engine.controller.respond(DEVICE, PAYER_A)
        await engine.controller.respond(DEVICE, "bob")
        reply = await engine.controller.respond(DEVICE, PAYER_B)
        assert "send me the username" in reply
        assert (await engine.requesters.get(DEVICE)).identifier is None

    async def test_full_flow(self, engine, ledger, chat) -> None:
        controller = engine.controller
        await controller.handle_event(PairedEvent(requester_id=DEVICE))
        await controller.handle_event(TextEvent(requester_id=DEVICE, text=PAYER_A))
        await controller.handle_event(TextEvent(requester_id=DEVICE, text="bob"))
        receiving = ledger.issued[0]

        ledger.add_payment("tx-under", receiving, 500, authors=(PAYER_A,))
        await controller.handle_event(IncomingPaymentsEvent(tx_ids=("tx-under",)))
        assert "Received 500 bytes" in chat.last_to(DEVICE)
        assert "amount=1450" in chat.last_to(DEVICE)

        ledger.add_payment("tx-full", receiving, 1450, authors=(PAYER_A,))
        await controller.handle_event(IncomingPaymentsEvent(tx_ids=("tx-full",)))
        assert "Received your payment of 1450 bytes for @bob" in chat.last_to(DEVICE)

        status = await controller.respond(DEVICE, "bob")
        assert status.startswith("Received your payment of 1450")

        await controller.handle_event(PaymentsFinalizedEvent(tx_ids=("tx-full",)))
        assert "now attested" in chat.last_to(DEVICE)
        (broadcast,) = ledger.broadcasts
        payload = broadcast["messages"][0]["payload"]
        assert payload["profile"]["username"] == "bob"
        assert payload["address"] == PAYER_A

        # Claim released: the next message starts over from the address prompt
        reply = await controller.respond(DEVICE, "bob")
        assert "send me your address" in reply

    async def test_attested_username_status(self, engine, ledger) -> None:
        controller = engine.controller
        await controller.respond(DEVICE, PAYER_A)
        await controller.respond(DEVICE, "bob")
        ledger.add_payment("tx-1", ledger.issued[0], 1450, authors=(PAYER_A,))
        await engine.payment_service.handle_incoming(["tx-1"])
        await engine.payment_service.handle_finalized(["tx-1"])

        await controller.respond(DEVICE, PAYER_A)
        reply = await controller.respond(DEVICE, "bob")
        assert "Username @bob was already attested on " in reply
        assert reply.endswith("UTC.")

    async def test_in_attestation_status(self, engine, ledger) -> None:
        controller = engine.controller
        await controller.respond(DEVICE, PAYER_A)
        await controller.respond(DEVICE, "bob")
        ledger.add_payment("tx-1", ledger.issued[0], 1450, authors=(PAYER_A,))
        await engine.payment_service.handle_incoming(["tx-1"])
        ledger.fail_broadcast = True
        await engine.payment_service.handle_finalized(["tx-1"])

        reply = await controller.respond(DEVICE, "bob")
        assert reply == "Username @bob is being attested, please wait."

    async def test_own_expired_reservation_is_reused(self, engine, ledger) -> None:
        controller = engine.controller
        await controller.respond(DEVICE, PAYER_A)
        await controller.respond(DEVICE, "bob")
        first = ledger.issued[0]
        async with engine.datastore.session() as session:
            await session.execute(
                update(Reservation)
                .where(Reservation.reservation_id == first)
                .values(created_at=utcnow() - timedelta(hours=2))
            )
            await session.commit()

        reply = await controller.respond(DEVICE, "bob")
        assert f"payment:{first}?" in reply
        assert ledger.issued == [first]


class TestMultilingual:
    @pytest.fixture
    def app_config(self, app_config):
        app_config.texts = TextsConfig(
            multilingual=True, languages={"en": "English", "de": "Deutsch"}
        )
        return app_config

    async def test_menu_until_language_chosen(self, engine) -> None:
        reply = await engine.controller.respond(DEVICE, "")
        assert reply.startswith("Please select your language:")
        assert "[Deutsch](command:select language de)" in reply

        reply = await engine.controller.respond(DEVICE, PAYER_A)
        assert reply.startswith("Please select your language:")

    async def test_choosing_language_greets(self, engine) -> None:
        reply = await engine.controller.respond(DEVICE, "select language en")
        assert reply.startswith("[Go back to language selection](command:select language)")
        assert "Here you can attest your username." in reply
        assert "send me your address" in reply
        assert (await engine.requesters.get(DEVICE)).locale == "en"

    async def test_back_to_menu(self, engine) -> None:
        await engine.controller.respond(DEVICE, "select language en")
        reply = await engine.controller.respond(DEVICE, "select language")
        assert reply.startswith("Please select your language:")
