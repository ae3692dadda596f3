"""Tests for the cron task manager and task handlers."""

from __future__ import annotations

import asyncio

import pytest
from conftest import PAYER_A

from username_attestor.metrics.collector import EngineMetrics
from username_attestor.taskmanager import manager as manager_module
from username_attestor.taskmanager.manager import CronJob, TaskManager
from username_attestor.taskmanager.tasks import (
    task_calculate_metrics,
    task_retry_attestations,
    task_sweep_expiring_reservations,
)


class TestTaskManager:
    async def test_runs_periodically(self) -> None:
        runs: list[int] = []

        async def handler() -> None:
            runs.append(1)

        tm = TaskManager()
        tm.add(CronJob("tick", 0.01, handler))
        await tm.start()
        assert tm.is_running
        await asyncio.sleep(0.1)
        await tm.stop()
        assert len(runs) >= 2
        assert tm.is_running is False
        assert tm.jobs["tick"].runs == len(runs)
        assert tm.jobs["tick"].last_finished is not None

    async def test_failure_does_not_stop_loop(self) -> None:
        async def handler() -> None:
            msg = "flaky"
            raise RuntimeError(msg)

        tm = TaskManager()
        tm.add(CronJob("flaky", 0.01, handler))
        await tm.start()
        await asyncio.sleep(0.1)
        await tm.stop()
        job = tm.jobs["flaky"]
        assert job.failures >= 2
        assert job.failures == job.runs

    async def test_stop_wakes_sleeping_jobs(self) -> None:
        async def handler() -> None:
            pass

        tm = TaskManager()
        tm.add(CronJob("weekly", 7 * 24 * 3600, handler))
        await tm.start()
        await asyncio.wait_for(tm.stop(), timeout=1)
        assert tm.jobs["weekly"].runs == 0

    async def test_stop_cancels_stuck_handler(self, monkeypatch) -> None:
        monkeypatch.setattr(manager_module, "STOP_GRACE", 0.05)
        entered = asyncio.Event()

        async def handler() -> None:
            entered.set()
            await asyncio.sleep(3600)

        tm = TaskManager()
        tm.add(CronJob("stuck", 0.01, handler))
        await tm.start()
        await asyncio.wait_for(entered.wait(), timeout=1)
        await asyncio.wait_for(tm.stop(), timeout=1)
        assert tm.is_running is False

    async def test_run_now_tracks_metrics(self) -> None:
        metrics = EngineMetrics()
        runs: list[int] = []

        async def handler() -> None:
            runs.append(1)

        tm = TaskManager(metrics=metrics)
        tm.add(CronJob("once", 3600, handler))
        await tm.run_now("once")
        assert runs == [1]
        count = metrics.registry.get_sample_value(
            "attestor_cron_histogram_count", {"job_name": "once"}
        )
        assert count == 1.0

    async def test_run_now_unknown(self) -> None:
        with pytest.raises(KeyError):
            await TaskManager().run_now("missing")

    async def test_duplicate_name_rejected(self) -> None:
        async def handler() -> None:
            pass

        tm = TaskManager()
        tm.add(CronJob("tick", 1, handler))
        with pytest.raises(ValueError, match="already registered"):
            tm.add(CronJob("tick", 2, handler))

    async def test_add_while_running(self) -> None:
        started = asyncio.Event()

        async def first() -> None:
            pass

        async def handler() -> None:
            started.set()

        tm = TaskManager()
        tm.add(CronJob("idle", 3600, first))
        await tm.start()
        tm.add(CronJob("late", 0.01, handler))
        await asyncio.wait_for(started.wait(), timeout=1)
        await tm.stop()

class TestTasks:
    async def test_calculate_metrics(self, engine) -> None:
        await engine.reservation_service.get_or_create_reservation(
            "alice-device", PAYER_A, "bob"
        )
        metrics = engine.metrics
        await task_calculate_metrics(engine, metrics)
        sample = metrics.registry.get_sample_value(
            "attestor_stats_total", {"entity": "reservations"}
        )
        assert sample == 1.0
        assert metrics.registry.get_sample_value(
            "attestor_stats_total", {"entity": "pending_attestations"}
        ) == 0.0

    async def test_task_errors_are_logged(self, engine, caplog) -> None:
        await engine.close()
        await task_retry_attestations(engine)
        await task_sweep_expiring_reservations(engine)
        assert "retry_attestations failed" in caplog.text
        assert "expiry_sweep failed" in caplog.text
