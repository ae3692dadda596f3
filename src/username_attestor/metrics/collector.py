"""Metrics collector — Prometheus counters, gauges, histograms.

Exposed series:
- ``attestor_stats_total`` gauge-vec (reservations, payments, pending_attestations)
- ``attestor_reservations_total`` counter
- ``attestor_payments_total`` counter-vec by validation outcome
- ``attestor_attestations_total`` counter-vec by result
- ``attestor_validate_payment_histogram``
- ``attestor_post_attestation_histogram``
- ``attestor_cron_histogram`` / ``attestor_cron_last_execution_gauge``
- ``attestor_http_requests_total`` counter-vec by method, route, status
- ``attestor_http_request_duration_seconds`` histogram by method, route
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "attestor"

_STAT_LABELS = ("entity",)


class MetricsCollector:
    """Owns the Prometheus registry and creates metrics in it.

    Use :class:`EngineMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        return Counter(name, doc, labels, registry=self._registry)


class EngineMetrics:
    """High-level attestor metrics. Histograms track durations in seconds."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._stats = self._collector.gauge(
            f"{_PREFIX}_stats_total",
            "Row counts in the attestor store",
            _STAT_LABELS,
        )
        self._reservations = self._collector.counter(
            f"{_PREFIX}_reservations",
            "Reservations issued",
        )
        self._payments = self._collector.counter(
            f"{_PREFIX}_payments",
            "Incoming payments by validation outcome",
            ("outcome",),
        )
        self._attestations = self._collector.counter(
            f"{_PREFIX}_attestations",
            "Attestation posts by result",
            ("result",),
        )
        self._validate = self._collector.histogram(
            f"{_PREFIX}_validate_payment_histogram",
            "Duration of payment validation including the identifier lock wait",
        )
        self._post = self._collector.histogram(
            f"{_PREFIX}_post_attestation_histogram",
            "Duration of attestation compose and broadcast",
        )
        self._cron_histogram = self._collector.histogram(
            f"{_PREFIX}_cron_histogram",
            "Duration of cron job executions",
            ("job_name",),
        )
        self._cron_last = self._collector.gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
        )
        self._http_requests = self._collector.counter(
            f"{_PREFIX}_http_requests",
            "API requests served",
            ("method", "route", "status"),
        )
        self._http_duration = self._collector.histogram(
            f"{_PREFIX}_http_request_duration_seconds",
            "API request duration in seconds",
            ("method", "route"),
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._collector.registry

    # -- Stat setters --

    def set_reservation_count(self, count: int) -> None:
        self._stats.labels(entity="reservations").set(count)

    def set_payment_count(self, count: int) -> None:
        self._stats.labels(entity="payments").set(count)

    def set_pending_attestation_count(self, count: int) -> None:
        self._stats.labels(entity="pending_attestations").set(count)

    # -- Counters --

    def inc_reservations(self) -> None:
        self._reservations.inc()

    def inc_payment(self, outcome: str) -> None:
        """Count one validated payment; *outcome* is ``accepted`` or an error code."""
        self._payments.labels(outcome=outcome).inc()

    def inc_attestation(self, result: str) -> None:
        self._attestations.labels(result=result).inc()

    def observe_request(self, method: str, route: str, status: int, duration: float) -> None:
        self._http_requests.labels(method=method, route=route, status=str(status)).inc()
        self._http_duration.labels(method=method, route=route).observe(duration)

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_validate_payment(self) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        finally:
            self._validate.observe(time.monotonic() - start)

    @contextmanager
    def track_post_attestation(self) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        finally:
            self._post.observe(time.monotonic() - start)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Track the duration of a cron job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
