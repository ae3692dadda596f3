"""Periodic background jobs.

Provides ``TaskManager`` for the attestor's cron jobs:
- Attestation retry (re-post jobs without an attestation tx id)
- Reservation expiry warnings
- Fund consolidation and payout
- Metrics calculation (row counts for Prometheus gauges)
"""

from __future__ import annotations

from username_attestor.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
