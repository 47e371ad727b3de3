"""Revocation reaper - periodically deletes revocation records past retention."""

import asyncio
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Optional

from sessionguard.core import async_session_maker, settings
from sessionguard.core.logging import get_logger
from sessionguard.core.timeutils import utcnow
from sessionguard.services.revocation_store import RevocationStore

logger = get_logger("reaper")

# Revocation records are kept this long past their token's expiry for audit
DEFAULT_GRACE_PERIOD = timedelta(days=30)

# How often to sweep (in seconds)
DEFAULT_INTERVAL_SECONDS = 86400  # daily


class RevocationReaper:
    """Background service sweeping expired revocation records.

    Each sweep runs in its own session and transaction. A failed sweep is
    logged and the loop waits for the next tick; nothing propagates to the
    event loop or to request handling.
    """

    _instance: Optional["RevocationReaper"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(
        self,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        initial_delay_seconds: float = 60,
        session_factory: Callable[[], Any] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._grace_period = grace_period
        self._interval_seconds = interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._session_factory = session_factory or async_session_maker
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    @classmethod
    def get_instance(cls) -> "RevocationReaper":
        """Get singleton instance configured from settings (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls(
                        grace_period=timedelta(days=settings.revocation_grace_period_days),
                        interval_seconds=settings.reaper_interval_seconds,
                        initial_delay_seconds=settings.reaper_initial_delay_seconds,
                    )
        return cls._instance

    @property
    def grace_period(self) -> timedelta:
        return self._grace_period

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self.running:
            logger.warning("Revocation reaper is already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="revocation-reaper")
        logger.info(
            f"Revocation reaper started (grace: {self._grace_period.days} days, "
            f"interval: {self._interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Revocation reaper stopped")

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if a stop was requested meanwhile."""
        assert self._stop_event is not None
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    async def _loop(self) -> None:
        # Let the app finish starting before the first sweep
        if await self._wait(self._initial_delay_seconds):
            return

        while True:
            await self.run_once()
            if await self._wait(self._interval_seconds):
                return

    async def run_once(self) -> int | None:
        """Run one sweep, swallowing errors. Returns the count or None on failure."""
        try:
            return await self._sweep()
        except Exception as e:
            logger.exception(f"Error in revocation sweep: {e}")
            return None

    async def _sweep(self) -> int:
        now = self._clock()
        async with self._session_factory() as db:
            try:
                store = RevocationStore(db)
                deleted = await store.sweep(now, self._grace_period)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if deleted > 0:
            logger.info(f"Revocation sweep deleted {deleted} records")
        else:
            logger.debug("Revocation sweep found nothing to delete")
        return deleted

