"""Shared test fixtures for the username attestor test suite."""

from __future__ import annotations

import base64
import hashlib
import itertools
from typing import TYPE_CHECKING, Any

import pytest

from username_attestor.config.settings import (
    AdminConfig,
    AppConfig,
    AttestationConfig,
    DatabaseConfig,
    DatabaseEngine,
    MetricsConfig,
    TaskConfig,
)
from username_attestor.errors.transport_errors import LedgerError
from username_attestor.ledger.address import validate_address
from username_attestor.ledger.client import Balance, IncomingPayment

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from username_attestor.ledger.client import Output


def make_address(seed: str) -> str:
    """Deterministic, well-formed 32-character ledger address."""
    return base64.b32encode(hashlib.sha256(seed.encode()).digest()).decode()[:32]


PAYER_A = make_address("payer-a")
PAYER_B = make_address("payer-b")
PAYER_C = make_address("payer-c")


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeLedger:
    """In-memory ``LedgerClient``."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self.issued: list[str] = []
        self.indexed: dict[int, str] = {}
        self.incoming: dict[str, list[IncomingPayment]] = {}
        self.broadcasts: list[dict[str, Any]] = []
        self.sent: list[dict[str, Any]] = []
        self.funded: list[str] = []
        self.balances: dict[str, Balance] = {}
        self.syncing = False
        self.fail_broadcast = False
        self.fail_send = False

    async def issue_receiving_address(self) -> str:
        address = make_address(f"receiving-{next(self._counter)}")
        self.issued.append(address)
        return address

    async def issue_or_select_address(self, index: int) -> str:
        return self.indexed.setdefault(index, make_address(f"wallet-index-{index}"))

    async def is_syncing(self) -> bool:
        return self.syncing

    async def compose_and_broadcast(
        self,
        messages: list[dict[str, Any]],
        paying_addresses: list[str],
        outputs: list[Output],
    ) -> str:
        if self.fail_broadcast:
            msg = "not enough funds"
            raise LedgerError(msg)
        self.broadcasts.append(
            {"messages": messages, "paying_addresses": paying_addresses, "outputs": outputs}
        )
        return f"attestation-unit-{len(self.broadcasts)}"

    async def read_balance(self, address: str) -> Balance:
        return self.balances.get(address, Balance())

    async def read_incoming_payments(self, tx_ids: list[str]) -> list[IncomingPayment]:
        return [p for tx_id in tx_ids for p in self.incoming.get(tx_id, [])]

    async def send_payment(
        self,
        to_address: str,
        amount: int,
        *,
        paying_addresses: list[str],
        change_address: str | None = None,
    ) -> str:
        if self.fail_send:
            msg = "send failed"
            raise LedgerError(msg)
        self.sent.append(
            {
                "to_address": to_address,
                "amount": amount,
                "paying_addresses": paying_addresses,
                "change_address": change_address,
            }
        )
        return f"payment-unit-{len(self.sent)}"

    async def send_all(
        self,
        to_address: str,
        *,
        paying_addresses: list[str],
        change_address: str | None = None,
    ) -> str:
        if self.fail_send:
            msg = "send failed"
            raise LedgerError(msg)
        self.sent.append(
            {
                "to_address": to_address,
                "send_all": True,
                "paying_addresses": paying_addresses,
                "change_address": change_address,
            }
        )
        return f"payment-unit-{len(self.sent)}"

    async def list_funded_addresses(self, addresses: list[str], *, limit: int) -> list[str]:
        return [a for a in addresses if a in self.funded][:limit]

    def is_valid_address(self, address: str) -> bool:
        return validate_address(address)

    def add_payment(
        self,
        tx_id: str,
        address: str,
        amount: int,
        *,
        authors: tuple[str, ...],
        asset: str | None = None,
    ) -> IncomingPayment:
        payment = IncomingPayment(
            tx_id=tx_id, address=address, amount=amount, asset=asset, authors=authors
        )
        self.incoming.setdefault(tx_id, []).append(payment)
        return payment


class FakeChat:
    """In-memory ``ChatTransport`` recording every message."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.deliver = True

    async def send_message(self, requester_id: str, text: str) -> bool:
        self.sent.append((requester_id, text))
        return self.deliver

    def messages_to(self, requester_id: str) -> list[str]:
        return [text for to, text in self.sent if to == requester_id]

    def last_to(self, requester_id: str) -> str:
        return self.messages_to(requester_id)[-1]


class FakeAdmin:
    """Operator channel recording notifications."""

    def __init__(self, *, configured: bool = True) -> None:
        self.notifications: list[tuple[str, str]] = []
        self._configured = configured

    @property
    def is_configured(self) -> bool:
        return self._configured

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def notify(self, subject: str, body: str) -> bool:
        self.notifications.append((subject, body))
        return self._configured


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Test AppConfig on a throwaway SQLite file, background jobs off."""
    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'attestor.db'}",
        ),
        admin=AdminConfig(webhook_url="http://admin.test/hook"),
        attestation=AttestationConfig(salt="test-salt"),
        metrics=MetricsConfig(enabled=True),
        task=TaskConfig(enabled=False),
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def admin() -> FakeAdmin:
    return FakeAdmin()


@pytest.fixture
async def datastore(app_config) -> AsyncIterator:
    """Open datastore with all tables created."""
    from username_attestor.datastore.client import Datastore

    ds = Datastore(app_config.db)
    await ds.open()
    await ds.create_tables()
    yield ds
    await ds.close()


@pytest.fixture
async def engine(app_config, ledger, chat, admin) -> AsyncIterator:
    """Initialised AttestorEngine wired to the fakes."""
    from username_attestor.engine.client import AttestorEngine

    eng = AttestorEngine(app_config, ledger=ledger, chat=chat, admin=admin)
    await eng.initialize()
    yield eng
    await eng.close()
