"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

from username_attestor.metrics.collector import EngineMetrics, MetricsCollector


class TestEngineMetrics:
    def test_own_registry_per_instance(self) -> None:
        first = EngineMetrics()
        second = EngineMetrics()
        assert first.registry is not second.registry

    def test_shared_registry(self) -> None:
        registry = CollectorRegistry()
        metrics = EngineMetrics(MetricsCollector(registry))
        assert metrics.registry is registry

    def test_counters(self) -> None:
        metrics = EngineMetrics()
        metrics.inc_reservations()
        metrics.inc_payment("accepted")
        metrics.inc_payment("underpaid")
        metrics.inc_payment("underpaid")
        metrics.inc_attestation("posted")
        get = metrics.registry.get_sample_value
        assert get("attestor_reservations_total") == 1.0
        assert get("attestor_payments_total", {"outcome": "underpaid"}) == 2.0
        assert get("attestor_payments_total", {"outcome": "accepted"}) == 1.0
        assert get("attestor_attestations_total", {"result": "posted"}) == 1.0

    def test_stats(self) -> None:
        metrics = EngineMetrics()
        metrics.set_reservation_count(3)
        metrics.set_payment_count(2)
        metrics.set_pending_attestation_count(1)
        get = metrics.registry.get_sample_value
        assert get("attestor_stats_total", {"entity": "reservations"}) == 3.0
        assert get("attestor_stats_total", {"entity": "payments"}) == 2.0
        assert get("attestor_stats_total", {"entity": "pending_attestations"}) == 1.0

    def test_trackers(self) -> None:
        metrics = EngineMetrics()
        with metrics.track_validate_payment():
            pass
        with metrics.track_post_attestation():
            pass
        with metrics.track_cron("expiry_sweep"):
            pass
        get = metrics.registry.get_sample_value
        assert get("attestor_validate_payment_histogram_count") == 1.0
        assert get("attestor_post_attestation_histogram_count") == 1.0
        assert get("attestor_cron_last_execution_gauge", {"job_name": "expiry_sweep"}) > 0

    def test_observe_request(self) -> None:
        metrics = EngineMetrics()
        metrics.observe_request("POST", "/api/v1/chat/messages", 200, 0.01)
        metrics.observe_request("POST", "/api/v1/chat/messages", 503, 0.02)
        get = metrics.registry.get_sample_value
        labels = {"method": "POST", "route": "/api/v1/chat/messages", "status": "503"}
        assert get("attestor_http_requests_total", labels) == 1.0
        duration = get(
            "attestor_http_request_duration_seconds_count",
            {"method": "POST", "route": "/api/v1/chat/messages"},
        )
        assert duration == 2.0
