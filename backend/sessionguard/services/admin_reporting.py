"""Admin reporting over the revocation store.

Everything here is read-only except the two explicit cleanup actions.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from sessionguard.core.timeutils import utcnow
from sessionguard.models.revoked_token import RevokedToken
from sessionguard.services.revocation_store import (
    DEFAULT_HISTORY_DAYS,
    BlacklistStats,
    RevocationStore,
    UserBlacklistStats,
)

logger = logging.getLogger(__name__)

# Health thresholds
WARNING_TOTAL_THRESHOLD = 10_000
CRITICAL_TOTAL_THRESHOLD = 50_000
EXPIRED_TO_ACTIVE_RATIO = 2


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class HealthReport:
    status: HealthStatus
    message: str
    stats: BlacklistStats
    recommendations: list[str] = field(default_factory=list)


@dataclass
class CleanupResult:
    deleted: int
    stats: BlacklistStats


def evaluate_health(stats: BlacklistStats) -> HealthReport:
    """Derive a coarse health signal from table counts.

    Later checks override the message of earlier ones; status only ever
    escalates.
    """
    status = HealthStatus.HEALTHY
    message = "Blacklist system is operating normally"
    recommendations: list[str] = []

    if stats.total > WARNING_TOTAL_THRESHOLD:
        status = HealthStatus.WARNING
        message = "Large number of blacklisted tokens detected"
        recommendations.append("Consider running cleanup to remove old expired tokens")

    if stats.expired > stats.active * EXPIRED_TO_ACTIVE_RATIO:
        if status == HealthStatus.HEALTHY:
            status = HealthStatus.WARNING
        message = "High ratio of expired tokens"
        recommendations.append("Run cleanup to improve performance")

    if stats.total > CRITICAL_TOTAL_THRESHOLD:
        status = HealthStatus.CRITICAL
        message = "Critical: Very large blacklist detected"
        recommendations.append("Immediate cleanup required")
        recommendations.append("Consider implementing more aggressive cleanup policies")

    return HealthReport(status=status, message=message, stats=stats, recommendations=recommendations)


class AdminReportingService:
    """Stats, history, health and cleanup actions for operators."""

    def __init__(self, store: RevocationStore, grace_period: timedelta):
        self.store = store
        self.grace_period = grace_period

    async def stats(self, now: datetime | None = None) -> BlacklistStats:
        return await self.store.stats(now or utcnow())

    async def history(
        self, days: int = DEFAULT_HISTORY_DAYS, now: datetime | None = None
    ) -> list[RevokedToken]:
        return await self.store.history_since(days, now=now or utcnow())

    async def user_stats(self, user_id: str, now: datetime | None = None) -> UserBlacklistStats:
        return await self.store.stats_for_user(user_id, now=now or utcnow())

    async def health(self, now: datetime | None = None) -> HealthReport:
        return evaluate_health(await self.stats(now))

    async def cleanup(self, now: datetime | None = None) -> CleanupResult:
        """Sweep records past expiry plus grace period."""
        now = now or utcnow()
        deleted = await self.store.sweep(now, self.grace_period)
        logger.info(f"Admin cleanup deleted {deleted} revocation records")
        return CleanupResult(deleted=deleted, stats=await self.store.stats(now))

    async def cleanup_immediate(self, now: datetime | None = None) -> CleanupResult:
        """Sweep every expired record, ignoring the grace period. Diagnostic only."""
        now = now or utcnow()
        logger.warning("Immediate cleanup requested: bypassing revocation grace period")
        deleted = await self.store.force_sweep_all(now)
        return CleanupResult(deleted=deleted, stats=await self.store.stats(now))
