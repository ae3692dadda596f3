"""Background task definitions — cron job handlers.

- ``retry_attestations`` (10 s): re-post attestations that failed to broadcast
- ``expiry_sweep`` (60 s): warn holders of reservations about to expire
- ``accumulate_funds`` (1 h): sweep receiving addresses into the accumulation address
- ``payout`` (1 week): pay the accumulation balance out
- ``calculate_metrics`` (15 s): row counts for Prometheus gauges

Periods other than the metrics one come from ``AppConfig.task``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from username_attestor.models.attestation_job import AttestationJob
from username_attestor.models.payment import PaymentRecord
from username_attestor.models.reservation import Reservation

if TYPE_CHECKING:
    from username_attestor.engine.client import AttestorEngine
    from username_attestor.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

CALCULATE_METRICS_PERIOD = 15


async def task_retry_attestations(engine: AttestorEngine) -> None:
    try:
        posted = await engine.attestation_service.retry_pending_attestations()
        if posted:
            logger.info("Posted %d pending attestations", posted)
    except Exception:
        logger.exception("retry_attestations failed")


async def task_sweep_expiring_reservations(engine: AttestorEngine) -> None:
    try:
        await engine.expiry_sweeper.sweep_expiring_reservations()
    except Exception:
        logger.exception("expiry_sweep failed")


async def task_accumulate_funds(engine: AttestorEngine) -> None:
    try:
        await engine.funds_service.move_funds_to_accumulation()
    except Exception:
        logger.exception("accumulate_funds failed")


async def task_payout(engine: AttestorEngine) -> None:
    try:
        await engine.funds_service.move_funds_to_payout()
    except Exception:
        logger.exception("payout failed")


async def task_calculate_metrics(engine: AttestorEngine, metrics: EngineMetrics) -> None:
    """Count rows and push them to the stats gauge."""
    try:
        async with engine.datastore.session() as session:
            reservations = (
                await session.execute(select(func.count(Reservation.reservation_id)))
            ).scalar() or 0
            payments = (
                await session.execute(select(func.count(PaymentRecord.payment_id)))
            ).scalar() or 0
            pending = (
                await session.execute(
                    select(func.count(AttestationJob.payment_id)).where(
                        AttestationJob.attestation_tx_id.is_(None)
                    )
                )
            ).scalar() or 0

        metrics.set_reservation_count(reservations)
        metrics.set_payment_count(payments)
        metrics.set_pending_attestation_count(pending)
    except Exception:
        logger.exception("calculate_metrics failed")
