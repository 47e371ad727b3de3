"""Revocation Store - durable set of revoked bearer tokens.

Tokens are keyed by the SHA-256 hex digest of the raw token, so the table
never holds a usable credential. Writes are single-statement and atomic;
callers own the transaction (request session or reaper session).
"""

import hashlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import ColumnElement, and_, delete, desc, func, or_, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from sessionguard.core import settings
from sessionguard.core.timeutils import as_utc, utcnow
from sessionguard.models.revoked_token import RevocationReason, RevokedToken
from sessionguard.services.token_codec import TokenCodec, get_token_codec

logger = logging.getLogger(__name__)

# Default history window for audit queries
DEFAULT_HISTORY_DAYS = 7


def hash_token(raw_token: str) -> str:
    """One-way, deterministic hash of a raw token."""
    return hashlib.sha256(raw_token.encode("utf-8", errors="surrogatepass")).hexdigest()


@dataclass(frozen=True)
class BlacklistStats:
    """Counts over the whole revocation table at a point in time."""

    total: int
    expired: int
    active: int

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "expired": self.expired, "active": self.active}


@dataclass(frozen=True)
class UserBlacklistStats:
    """Counts for one user, with a breakdown by revocation reason."""

    total: int
    active: int
    expired: int
    reasons: dict[str, int] = field(default_factory=dict)


def is_expired_clause(now: datetime) -> ColumnElement[bool]:
    """SQL predicate for records whose token can no longer verify at ``now``.

    A record expires the moment ``now`` reaches ``expires_at``; every
    report classifies active and expired with this and ``record_status``.
    """
    return RevokedToken.expires_at <= now


def record_status(record: RevokedToken, now: datetime) -> str:
    """``active`` while the record's token could still verify, else ``expired``."""
    return "expired" if as_utc(record.expires_at) <= now else "active"


def _insert_ignoring_duplicates(db: AsyncSession, values: dict[str, Any]) -> Any:
    """INSERT ... ON CONFLICT (token_hash) DO NOTHING for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for revocation store: {dialect}")

    return (
        insert(RevokedToken)
        .values(**values)
        .on_conflict_do_nothing(index_elements=[RevokedToken.token_hash])
    )


class RevocationStore:
    """Service for recording, checking and sweeping revoked tokens."""

    def __init__(
        self,
        db: AsyncSession,
        codec: TokenCodec | None = None,
        default_ttl: timedelta | None = None,
    ):
        self.db = db
        self.codec = codec or get_token_codec()
        self.default_ttl = default_ttl or timedelta(hours=settings.revocation_default_ttl_hours)

    async def record(
        self,
        raw_token: str,
        user_id: str | None = None,
        reason: RevocationReason = RevocationReason.LOGOUT,
        natural_expiry: datetime | None = None,
        now: datetime | None = None,
    ) -> str:
        """Revoke a token. Returns the stored hash.

        The natural expiry is taken from the argument, else decoded from the
        token without verifying it. Malformed tokens fall back to the default
        TTL and are still recorded. Revoking the same token twice, including
        concurrently, leaves exactly one row and never raises.
        """
        now = now or utcnow()
        token_hash = hash_token(raw_token)

        expires_at = natural_expiry or self.codec.natural_expiry(raw_token)
        if expires_at is None:
            expires_at = now + self.default_ttl
            logger.warning(
                "Revoking token without a readable expiry, using default TTL",
                extra={"token_hash": token_hash},
            )
        expires_at = as_utc(expires_at)
        if expires_at < now:
            # Already past its natural expiry; keep expires_at >= blacklisted_at
            expires_at = now

        stmt = _insert_ignoring_duplicates(
            self.db,
            {
                "token_hash": token_hash,
                "user_id": str(user_id) if user_id is not None else None,
                "reason": reason,
                "blacklisted_at": now,
                "expires_at": expires_at,
            },
        )
        result: CursorResult[Any] = await self.db.execute(stmt)  # type: ignore[assignment]
        if result.rowcount == 0:
            logger.debug("Token already revoked", extra={"token_hash": token_hash})
        else:
            logger.info(
                f"Token revoked (reason={reason.value}, user={user_id})",
                extra={"token_hash": token_hash},
            )
        return token_hash

    async def is_revoked(self, raw_token: str) -> bool:
        """Check whether a token has been revoked."""
        result = await self.db.execute(
            select(RevokedToken.token_hash).where(RevokedToken.token_hash == hash_token(raw_token))
        )
        return result.scalar_one_or_none() is not None

    async def get(self, raw_token: str) -> RevokedToken | None:
        """Get the revocation record for a raw token."""
        result = await self.db.execute(
            select(RevokedToken).where(RevokedToken.token_hash == hash_token(raw_token))
        )
        return result.scalar_one_or_none()

    async def sweep(self, now: datetime, grace_period: timedelta) -> int:
        """Delete records whose expiry plus grace period lies before ``now``.

        A freshly recorded row has ``expires_at >= blacklisted_at``, so it
        cannot match; running concurrently with ``record`` is safe.
        """
        cutoff = now - grace_period
        result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
            delete(RevokedToken).where(RevokedToken.expires_at < cutoff)
        )
        return result.rowcount

    async def force_sweep_all(self, now: datetime) -> int:
        """Delete every record already past its expiry, ignoring the grace period.

        Destructive: audit rows inside the grace window are lost. Diagnostic
        use only.
        """
        result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
            delete(RevokedToken).where(RevokedToken.expires_at < now)
        )
        logger.warning(f"Force sweep removed {result.rowcount} revocation records")
        return result.rowcount

    async def stats(self, now: datetime | None = None) -> BlacklistStats:
        """Total, expired and active record counts."""
        now = now or utcnow()
        total_result = await self.db.execute(select(func.count()).select_from(RevokedToken))
        expired_result = await self.db.execute(
            select(func.count())
            .select_from(RevokedToken)
            .where(is_expired_clause(now))
        )
        total = total_result.scalar() or 0
        expired = expired_result.scalar() or 0
        return BlacklistStats(total=total, expired=expired, active=total - expired)

    async def stats_for_user(self, user_id: str, now: datetime | None = None) -> UserBlacklistStats:
        """Record counts for one user, with a per-reason breakdown."""
        now = now or utcnow()
        user_filter = RevokedToken.user_id == str(user_id)

        total_result = await self.db.execute(
            select(func.count()).select_from(RevokedToken).where(user_filter)
        )
        expired_result = await self.db.execute(
            select(func.count())
            .select_from(RevokedToken)
            .where(user_filter, is_expired_clause(now))
        )
        reason_result = await self.db.execute(
            select(RevokedToken.reason, func.count())
            .where(user_filter)
            .group_by(RevokedToken.reason)
        )

        total = total_result.scalar() or 0
        expired = expired_result.scalar() or 0
        reasons = {RevocationReason(reason).value: count for reason, count in reason_result.all()}
        return UserBlacklistStats(
            total=total,
            active=total - expired,
            expired=expired,
            reasons=reasons,
        )

    async def history_since(
        self,
        days: int = DEFAULT_HISTORY_DAYS,
        now: datetime | None = None,
    ) -> list[RevokedToken]:
        """Records revoked within the last ``days`` days, newest first."""
        return [record async for record in self.iter_history_since(days, now=now)]

    async def iter_history_since(
        self,
        days: int = DEFAULT_HISTORY_DAYS,
        now: datetime | None = None,
        batch_size: int = 500,
        after: tuple[datetime, str] | None = None,
    ) -> AsyncIterator[RevokedToken]:
        """Page through the history window, newest first.

        Pages are fetched by keyset on ``(blacklisted_at, token_hash)``. To
        resume an interrupted walk pass the last yielded record's
        ``(blacklisted_at, token_hash)`` as ``after``. The window is fixed
        when iteration starts, so the walk always terminates.
        """
        now = now or utcnow()
        since = now - timedelta(days=days)
        cursor = after

        while True:
            stmt = (
                select(RevokedToken)
                .where(RevokedToken.blacklisted_at >= since)
                .order_by(desc(RevokedToken.blacklisted_at), desc(RevokedToken.token_hash))
                .limit(batch_size)
            )
            if cursor is not None:
                last_at, last_hash = cursor
                stmt = stmt.where(
                    or_(
                        RevokedToken.blacklisted_at < last_at,
                        and_(
                            RevokedToken.blacklisted_at == last_at,
                            RevokedToken.token_hash < last_hash,
                        ),
                    )
                )

            result = await self.db.execute(stmt)
            batch = list(result.scalars().all())
            for record in batch:
                yield record

            if len(batch) < batch_size:
                return
            last = batch[-1]
            cursor = (last.blacklisted_at, last.token_hash)
