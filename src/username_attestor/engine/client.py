"""AttestorEngine — central engine owning collaborators, services and jobs."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from username_attestor.errors.config_errors import ConfigurationError

if TYPE_CHECKING:
    from username_attestor.chat.transport import ChatTransport
    from username_attestor.config.settings import AppConfig
    from username_attestor.conversation.controller import ConversationController
    from username_attestor.datastore.client import Datastore
    from username_attestor.ledger.client import LedgerClient
    from username_attestor.locking.keyed_mutex import KeyedMutex
    from username_attestor.metrics.collector import EngineMetrics
    from username_attestor.notifications.admin import AdminNotifier
    from username_attestor.notifications.dispatcher import EventDispatcher
    from username_attestor.repository.requesters import RequesterRepository
    from username_attestor.services.attestation_service import AttestationService
    from username_attestor.services.expiry_sweeper import ExpirySweeper
    from username_attestor.services.funds_service import FundsService
    from username_attestor.services.payment_service import PaymentService
    from username_attestor.services.pricing import PricingTable
    from username_attestor.services.reservation_service import ReservationService
    from username_attestor.taskmanager.manager import TaskManager

logger = logging.getLogger(__name__)

_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."

ATTESTOR_ADDRESS_INDEX = 0
ACCUMULATION_ADDRESS_INDEX = 1


class AttestorEngine:
    """Central engine that owns all services and infrastructure.

    Collaborators may be injected (tests pass fakes); any left out are built
    from configuration and closed again by :meth:`close`.

    Usage::

        engine = AttestorEngine(config)
        await engine.initialize()
        try:
            await engine.dispatcher.submit(TextEvent(requester_id="...", text="hi"))
        finally:
            await engine.close()
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        ledger: LedgerClient | None = None,
        chat: ChatTransport | None = None,
        admin: AdminNotifier | None = None,
    ) -> None:
        self._config = config
        self._initialized = False

        self._ledger = ledger
        self._chat = chat
        self._admin = admin
        self._owns_ledger = ledger is None
        self._owns_chat = chat is None
        self._owns_admin = admin is None

        self._datastore: Datastore | None = None
        self._attestor_address: str | None = None
        self._accumulation_address: str | None = None

        self._pricing: PricingTable | None = None
        self._identifier_locks: KeyedMutex | None = None
        self._tx_locks: KeyedMutex | None = None
        self._requesters: RequesterRepository | None = None

        self._reservation_service: ReservationService | None = None
        self._payment_service: PaymentService | None = None
        self._attestation_service: AttestationService | None = None
        self._expiry_sweeper: ExpirySweeper | None = None
        self._funds_service: FundsService | None = None
        self._controller: ConversationController | None = None
        self._dispatcher: EventDispatcher | None = None
        self._task_manager: TaskManager | None = None
        self._metrics: EngineMetrics | None = None
        if config.metrics.enabled:
            from username_attestor.metrics.collector import EngineMetrics

            self._metrics = EngineMetrics()

    async def initialize(self) -> None:
        """Check configuration, open the store, resolve addresses and start workers.

        Raises:
            RuntimeError: If already initialized.
            ConfigurationError: Missing admin webhook or salt, or missing tables
                while auto-migration is off. Reported to the operator first
                when the admin channel is usable.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)
        try:
            await self._open_collaborators()
            await self._open_datastore()
            await self._resolve_addresses()
            self._build_services()
            await self._start_workers()
        except BaseException:
            await self._shutdown()
            raise
        self._initialized = True
        logger.info(
            "Attestor started: attestor address %s, accumulation address %s",
            self._attestor_address,
            self._accumulation_address,
        )

    async def close(self) -> None:
        """Gracefully shut down. Can be called multiple times."""
        if not self._initialized:
            return
        await self._shutdown()
        self._initialized = False

    # ------------------------------------------------------------------
    # Startup steps
    # ------------------------------------------------------------------

    async def _open_collaborators(self) -> None:
        from username_attestor.notifications.admin import AdminNotifier

        if self._admin is None:
            self._admin = AdminNotifier(self._config.admin)
        if self._owns_admin:
            await self._admin.start()
        if not self._admin.is_configured:
            msg = "admin webhook is not configured"
            raise ConfigurationError(msg)
        if not self._config.attestation.salt:
            await self._admin.notify("configuration error", "attestation salt is not configured")
            msg = "attestation salt is not configured"
            raise ConfigurationError(msg)

        if self._ledger is None:
            from username_attestor.ledger.wallet_rpc import WalletRPCClient

            rpc = WalletRPCClient(self._config.ledger)
            await rpc.connect()
            self._ledger = rpc
        if self._chat is None:
            from username_attestor.chat.gateway import ChatGatewayClient

            gateway = ChatGatewayClient(self._config.chat)
            await gateway.connect()
            self._chat = gateway

    async def _open_datastore(self) -> None:
        from username_attestor.datastore.client import Datastore

        self._datastore = Datastore(self._config.db)
        await self._datastore.open()
        if self._config.db.auto_migrate:
            await self._datastore.create_tables()
            return
        missing = await self._datastore.missing_tables()
        if missing:
            body = "missing tables: " + ", ".join(missing)
            await self.admin.notify("configuration error", body)
            raise ConfigurationError(body)

    async def _resolve_addresses(self) -> None:
        self._attestor_address = await self.ledger.issue_or_select_address(ATTESTOR_ADDRESS_INDEX)
        self._accumulation_address = await self.ledger.issue_or_select_address(
            ACCUMULATION_ADDRESS_INDEX
        )

    def _build_services(self) -> None:
        from username_attestor.conversation.controller import ConversationController
        from username_attestor.locking.keyed_mutex import KeyedMutex
        from username_attestor.repository.requesters import RequesterRepository
        from username_attestor.services.attestation_service import AttestationService
        from username_attestor.services.expiry_sweeper import ExpirySweeper
        from username_attestor.services.funds_service import FundsService
        from username_attestor.services.payment_service import PaymentService
        from username_attestor.services.pricing import PricingTable
        from username_attestor.services.reservation_service import ReservationService

        self._pricing = PricingTable(self._config.pricing.thresholds)
        self._identifier_locks = KeyedMutex("identifier")
        self._tx_locks = KeyedMutex("tx")
        self._requesters = RequesterRepository(self.datastore)

        self._reservation_service = ReservationService(self)
        self._funds_service = FundsService(self)
        self._attestation_service = AttestationService(self)
        self._payment_service = PaymentService(self)
        self._expiry_sweeper = ExpirySweeper(self)
        self._controller = ConversationController(self)

    async def _start_workers(self) -> None:
        from username_attestor.notifications.dispatcher import EventDispatcher
        from username_attestor.taskmanager.manager import CronJob, TaskManager
        from username_attestor.taskmanager.tasks import (
            CALCULATE_METRICS_PERIOD,
            task_accumulate_funds,
            task_calculate_metrics,
            task_payout,
            task_retry_attestations,
            task_sweep_expiring_reservations,
        )

        self._dispatcher = EventDispatcher(self.controller.handle_event)
        await self._dispatcher.start()

        task_config = self._config.task
        if not task_config.enabled:
            return
        self._task_manager = TaskManager(metrics=self._metrics)
        jobs = [
            CronJob(
                "retry_attestations",
                task_config.retry_attestations_period,
                partial(task_retry_attestations, self),
            ),
            CronJob(
                "expiry_sweep",
                task_config.expiry_sweep_period,
                partial(task_sweep_expiring_reservations, self),
            ),
            CronJob(
                "accumulate_funds",
                task_config.accumulate_funds_period,
                partial(task_accumulate_funds, self),
            ),
            CronJob("payout", task_config.payout_period, partial(task_payout, self)),
        ]
        if self._metrics is not None:
            jobs.append(
                CronJob(
                    "calculate_metrics",
                    CALCULATE_METRICS_PERIOD,
                    partial(task_calculate_metrics, self, self._metrics),
                )
            )
        for job in jobs:
            self._task_manager.add(job)
        await self._task_manager.start()

    async def _shutdown(self) -> None:
        # Stop producers of work before the services they call
        if self._task_manager is not None:
            await self._task_manager.stop()
            self._task_manager = None
        if self._dispatcher is not None:
            await self._dispatcher.stop()
            self._dispatcher = None

        self._controller = None
        self._expiry_sweeper = None
        self._payment_service = None
        self._attestation_service = None
        self._funds_service = None
        self._reservation_service = None
        self._requesters = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        if self._owns_chat and self._chat is not None:
            await self._chat.close()  # type: ignore[attr-defined]
            self._chat = None
        if self._owns_ledger and self._ledger is not None:
            await self._ledger.close()  # type: ignore[attr-defined]
            self._ledger = None
        if self._owns_admin and self._admin is not None:
            await self._admin.stop()
            self._admin = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def datastore(self) -> Datastore:
        """Get the datastore instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def ledger(self) -> LedgerClient:
        if self._ledger is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._ledger

    @property
    def chat(self) -> ChatTransport:
        if self._chat is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._chat

    @property
    def admin(self) -> AdminNotifier:
        if self._admin is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._admin

    @property
    def attestor_address(self) -> str:
        """Address that signs and pays for attestations (wallet index 0)."""
        if self._attestor_address is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._attestor_address

    @property
    def accumulation_address(self) -> str:
        """Address receiving swept payments and bounce change (wallet index 1)."""
        if self._accumulation_address is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._accumulation_address

    @property
    def pricing(self) -> PricingTable:
        if self._pricing is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._pricing

    @property
    def identifier_locks(self) -> KeyedMutex:
        """Lock domain for identifier and requester keys."""
        if self._identifier_locks is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._identifier_locks

    @property
    def tx_locks(self) -> KeyedMutex:
        """Lock domain for payment transaction keys."""
        if self._tx_locks is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._tx_locks

    @property
    def requesters(self) -> RequesterRepository:
        if self._requesters is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._requesters

    @property
    def reservation_service(self) -> ReservationService:
        if self._reservation_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._reservation_service

    @property
    def payment_service(self) -> PaymentService:
        if self._payment_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._payment_service

    @property
    def attestation_service(self) -> AttestationService:
        if self._attestation_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._attestation_service

    @property
    def expiry_sweeper(self) -> ExpirySweeper:
        if self._expiry_sweeper is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._expiry_sweeper

    @property
    def funds_service(self) -> FundsService:
        if self._funds_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._funds_service

    @property
    def controller(self) -> ConversationController:
        if self._controller is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._controller

    @property
    def dispatcher(self) -> EventDispatcher:
        if self._dispatcher is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._dispatcher

    @property
    def metrics(self) -> EngineMetrics | None:
        """Engine metrics, None when disabled."""
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """Task manager, None when background tasks are disabled."""
        return self._task_manager

    async def health_check(self) -> dict[str, str]:
        """Status of each component: ``ok``, ``error``, ``syncing`` or ``not_initialized``."""
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
            "ledger": "unknown",
            "dispatcher": "unknown",
        }
        if not self._initialized:
            return status

        status["datastore"] = (
            "ok" if self._datastore is not None and self._datastore.is_open else "error"
        )
        try:
            status["ledger"] = "syncing" if await self.ledger.is_syncing() else "ok"
        except Exception:
            logger.warning("Ledger health probe failed", exc_info=True)
            status["ledger"] = "error"
        status["dispatcher"] = (
            "ok" if self._dispatcher is not None and self._dispatcher.is_running else "error"
        )
        return status
