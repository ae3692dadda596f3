"""Metrics — Prometheus counters and histograms for the attestor."""

from __future__ import annotations

from username_attestor.metrics.collector import EngineMetrics, MetricsCollector

__all__ = ["EngineMetrics", "MetricsCollector"]
