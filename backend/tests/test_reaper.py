"""Tests for the revocation reaper."""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from sessionguard.core.timeutils import utcnow
from sessionguard.services.reaper import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_INTERVAL_SECONDS,
    RevocationReaper,
)
from sessionguard.services.revocation_store import RevocationStore


class TestRevocationReaperSingleton:
    """Tests for singleton pattern and thread safety."""

    def test_get_instance_returns_same_instance(self):
        RevocationReaper._instance = None

        instance1 = RevocationReaper.get_instance()
        instance2 = RevocationReaper.get_instance()

        assert instance1 is instance2

    def test_singleton_thread_safety(self):
        import threading

        RevocationReaper._instance = None
        instances = []

        threads = [
            threading.Thread(target=lambda: instances.append(RevocationReaper.get_instance()))
            for _ in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(instances) == 10
        assert all(inst is instances[0] for inst in instances)

    def test_instance_configured_from_settings(self):
        RevocationReaper._instance = None
        reaper = RevocationReaper.get_instance()
        assert reaper.grace_period == timedelta(days=30)

    def test_defaults(self):
        reaper = RevocationReaper()
        assert reaper.grace_period == DEFAULT_GRACE_PERIOD == timedelta(days=30)
        assert reaper._interval_seconds == DEFAULT_INTERVAL_SECONDS


class TestRevocationReaperSweep:
    async def test_run_once_sweeps_past_grace(self, session_factory, codec):
        now = utcnow()
        async with session_factory() as session:
            store = RevocationStore(session, codec=codec)
            start = now - timedelta(days=40)
            await store.record("ancient", natural_expiry=now - timedelta(days=31), now=start)
            await store.record("in-grace", natural_expiry=now - timedelta(days=29), now=start)
            await store.record("live", natural_expiry=now + timedelta(minutes=5), now=now)
            await session.commit()

        reaper = RevocationReaper(session_factory=session_factory, clock=lambda: now)
        deleted = await reaper.run_once()

        assert deleted == 1
        async with session_factory() as session:
            store = RevocationStore(session, codec=codec)
            assert await store.is_revoked("ancient") is False
            assert await store.is_revoked("in-grace") is True
            assert await store.is_revoked("live") is True

    async def test_run_once_with_nothing_to_delete(self, session_factory):
        reaper = RevocationReaper(session_factory=session_factory)
        assert await reaper.run_once() == 0

    async def test_run_once_swallows_errors(self, caplog):
        failing_factory = MagicMock(side_effect=RuntimeError("database unavailable"))
        reaper = RevocationReaper(session_factory=failing_factory)

        assert await reaper.run_once() is None
        assert "Error in revocation sweep" in caplog.text


class TestRevocationReaperLifecycle:
    async def test_start_and_stop(self):
        reaper = RevocationReaper(initial_delay_seconds=3600)

        await reaper.start()
        assert reaper.running is True

        await reaper.stop()
        assert reaper.running is False

    async def test_start_twice_keeps_one_task(self, caplog):
        reaper = RevocationReaper(initial_delay_seconds=3600)
        await reaper.start()
        task = reaper._task

        await reaper.start()

        assert reaper._task is task
        assert "already running" in caplog.text
        await reaper.stop()

    async def test_stop_without_start(self):
        reaper = RevocationReaper()
        await reaper.stop()
        assert reaper.running is False

    async def test_loop_survives_failed_sweeps(self):
        failing_factory = MagicMock(side_effect=RuntimeError("database unavailable"))
        reaper = RevocationReaper(
            interval_seconds=0.01,
            initial_delay_seconds=0,
            session_factory=failing_factory,
        )

        await reaper.start()
        await asyncio.sleep(0.1)
        assert reaper.running is True
        await reaper.stop()

        assert failing_factory.call_count >= 2

    @pytest.mark.parametrize("initial_delay", [0, 3600])
    async def test_stop_is_prompt(self, session_factory, initial_delay):
        reaper = RevocationReaper(
            interval_seconds=3600,
            initial_delay_seconds=initial_delay,
            session_factory=session_factory,
        )
        await reaper.start()
        await asyncio.sleep(0.05)

        await asyncio.wait_for(reaper.stop(), timeout=1)
        assert reaper.running is False
