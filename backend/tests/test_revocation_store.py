"""Tests for the revocation store."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from sessionguard.core.timeutils import as_utc, utcnow
from sessionguard.models.revoked_token import RevocationReason, RevokedToken
from sessionguard.services.revocation_store import (
    BlacklistStats,
    RevocationStore,
    hash_token,
    record_status,
)

GRACE = timedelta(days=30)


@pytest.fixture
def store(db_session, codec) -> RevocationStore:
    return RevocationStore(db_session, codec=codec)


async def _row_count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(RevokedToken))
    return result.scalar_one()


class TestHashToken:
    def test_deterministic(self):
        assert hash_token("abc") == hash_token("abc")

    def test_is_sha256_hex(self):
        digest = hash_token("abc")
        assert len(digest) == 64
        assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_distinct_tokens_distinct_hashes(self):
        assert hash_token("token-a") != hash_token("token-b")


class TestRecord:
    async def test_is_revoked_immediately_after_record(self, store, make_token):
        token = make_token("u1")
        assert await store.is_revoked(token) is False

        await store.record(token, user_id="u1")

        assert await store.is_revoked(token) is True

    async def test_raw_token_never_stored(self, store, make_token):
        token = make_token("u1")
        token_hash = await store.record(token, user_id="u1")

        record = await store.get(token)
        assert record is not None
        assert record.token_hash == token_hash == hash_token(token)
        assert token not in (record.token_hash, record.user_id)

    async def test_duplicate_record_keeps_one_row(self, store, db_session, make_token):
        token = make_token("u1")

        first = await store.record(token, user_id="u1")
        second = await store.record(token, user_id="u1", reason=RevocationReason.ADMIN_REVOKE)

        assert first == second
        assert await _row_count(db_session) == 1
        record = await store.get(token)
        # First write wins
        assert record.reason == RevocationReason.LOGOUT

    async def test_natural_expiry_from_token(self, store, codec):
        now = utcnow()
        token = codec.create_access_token(
            "u1", expires_delta=timedelta(minutes=10), issued_at=now - timedelta(seconds=1)
        )

        await store.record(token, user_id="u1", now=now)

        record = await store.get(token)
        assert as_utc(record.expires_at) == codec.natural_expiry(token)

    async def test_explicit_natural_expiry_wins(self, store, make_token):
        now = utcnow()
        expiry = now + timedelta(hours=3)
        token = make_token("u1")

        await store.record(token, natural_expiry=expiry, now=now)

        record = await store.get(token)
        assert abs(as_utc(record.expires_at) - expiry) < timedelta(seconds=1)

    @pytest.mark.parametrize("raw", ["garbage", "", "a.b.c", "x" * 5000])
    async def test_malformed_token_recorded_with_default_ttl(self, db_session, codec, raw):
        store = RevocationStore(db_session, codec=codec, default_ttl=timedelta(hours=24))
        now = utcnow()

        await store.record(raw, reason=RevocationReason.MALFORMED, now=now)

        assert await store.is_revoked(raw) is True
        record = await store.get(raw)
        assert abs(as_utc(record.expires_at) - (now + timedelta(hours=24))) < timedelta(seconds=1)

    async def test_already_expired_token_clamped_to_now(self, store, codec):
        now = utcnow()
        token = codec.create_access_token(
            "u1", expires_delta=timedelta(minutes=1), issued_at=now - timedelta(hours=1)
        )

        await store.record(token, now=now)

        record = await store.get(token)
        assert as_utc(record.expires_at) >= as_utc(record.blacklisted_at)

    async def test_concurrent_records_deduplicate(self, session_factory, codec, make_token):
        token = make_token("u1")

        async def revoke() -> str:
            async with session_factory() as session:
                token_hash = await RevocationStore(session, codec=codec).record(token, "u1")
                await session.commit()
                return token_hash

        hashes = await asyncio.gather(*(revoke() for _ in range(5)))

        assert set(hashes) == {hash_token(token)}
        async with session_factory() as session:
            assert await _row_count(session) == 1


class TestSweep:
    async def test_grace_period_boundaries(self, store, make_token):
        expiry = utcnow().replace(microsecond=0) + timedelta(minutes=15)
        token = make_token("u1")
        await store.record(token, natural_expiry=expiry, now=expiry - timedelta(minutes=15))

        deleted = await store.sweep(expiry + GRACE - timedelta(seconds=1), GRACE)
        assert deleted == 0
        assert await store.is_revoked(token) is True

        deleted = await store.sweep(expiry + GRACE + timedelta(seconds=1), GRACE)
        assert deleted == 1
        assert await store.is_revoked(token) is False

    async def test_fresh_record_never_swept(self, store, make_token):
        now = utcnow()
        token = make_token("u1")
        await store.record(token, now=now)

        assert await store.sweep(now, GRACE) == 0
        assert await store.sweep(now, timedelta(0)) == 0

    async def test_force_sweep_all_ignores_grace(self, store, db_session):
        """Removes exactly the records already past their expiry."""
        now = utcnow()
        start = now - timedelta(hours=2)
        await store.record("expired-1", natural_expiry=now - timedelta(minutes=30), now=start)
        await store.record("expired-2", natural_expiry=now - timedelta(minutes=1), now=start)
        await store.record("live-1", natural_expiry=now + timedelta(minutes=30), now=start)

        deleted = await store.force_sweep_all(now)

        assert deleted == 2
        assert await _row_count(db_session) == 1
        assert await store.is_revoked("live-1") is True


class TestStats:
    async def test_stats_counts(self, store):
        now = utcnow()
        start = now - timedelta(hours=2)
        await store.record("a", natural_expiry=now - timedelta(minutes=5), now=start)
        await store.record("b", natural_expiry=now + timedelta(minutes=5), now=start)
        await store.record("c", natural_expiry=now + timedelta(hours=1), now=start)

        stats = await store.stats(now)

        assert stats == BlacklistStats(total=3, expired=1, active=2)
        assert stats.to_dict() == {"total": 3, "expired": 1, "active": 2}

    async def test_stats_empty(self, store):
        assert await store.stats(utcnow()) == BlacklistStats(total=0, expired=0, active=0)

    async def test_stats_for_user(self, store):
        now = utcnow()
        start = now - timedelta(hours=2)
        await store.record("t1", "u1", RevocationReason.LOGOUT, now - timedelta(minutes=5), start)
        await store.record("t2", "u1", RevocationReason.LOGOUT, now + timedelta(minutes=5), start)
        await store.record(
            "t3", "u1", RevocationReason.ADMIN_REVOKE, now + timedelta(minutes=5), start
        )
        await store.record("t4", "u2", RevocationReason.LOGOUT, now + timedelta(minutes=5), start)

        stats = await store.stats_for_user("u1", now)

        assert stats.total == 3
        assert stats.active == 2
        assert stats.expired == 1
        assert stats.reasons == {"logout": 2, "admin_revoke": 1}

    async def test_stats_for_unknown_user(self, store):
        stats = await store.stats_for_user("nobody", utcnow())
        assert (stats.total, stats.active, stats.expired, stats.reasons) == (0, 0, 0, {})

    async def test_reports_agree_when_expiry_equals_now(self, store):
        now = utcnow().replace(microsecond=0)
        await store.record("edge", "u1", natural_expiry=now, now=now - timedelta(minutes=5))
        record = await store.get("edge")

        assert await store.stats(now) == BlacklistStats(total=1, expired=1, active=0)
        user_stats = await store.stats_for_user("u1", now)
        assert (user_stats.expired, user_stats.active) == (1, 0)
        assert record_status(record, now) == "expired"

    async def test_record_status(self, store):
        now = utcnow()
        await store.record("live", natural_expiry=now + timedelta(minutes=5), now=now)
        record = await store.get("live")

        assert record_status(record, now) == "active"
        assert record_status(record, now + timedelta(minutes=10)) == "expired"


class TestHistory:
    async def test_history_window_newest_first(self, store):
        now = utcnow()
        await store.record("old", now=now - timedelta(days=10))
        await store.record("mid", now=now - timedelta(days=3))
        await store.record("new", now=now - timedelta(hours=1))

        records = await store.history_since(7, now=now)

        assert [r.token_hash for r in records] == [hash_token("new"), hash_token("mid")]

    async def test_history_pages_cover_window_once(self, store):
        now = utcnow()
        same_instant = now - timedelta(hours=1)
        tokens = [f"token-{i}" for i in range(7)]
        for token in tokens[:4]:
            await store.record(token, now=same_instant)
        for i, token in enumerate(tokens[4:]):
            await store.record(token, now=now - timedelta(minutes=10 + i))

        walked = [r.token_hash async for r in store.iter_history_since(1, now=now, batch_size=2)]

        assert len(walked) == len(tokens)
        assert set(walked) == {hash_token(t) for t in tokens}

    async def test_history_resumes_after_cursor(self, store):
        now = utcnow()
        for i in range(5):
            await store.record(f"token-{i}", now=now - timedelta(minutes=i + 1))

        full = await store.history_since(1, now=now)
        resume_from = full[1]
        rest = [
            r.token_hash
            async for r in store.iter_history_since(
                1, now=now, after=(resume_from.blacklisted_at, resume_from.token_hash)
            )
        ]

        assert rest == [r.token_hash for r in full[2:]]
