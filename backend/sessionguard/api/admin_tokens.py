"""Token administration endpoints: revocation stats, history, health, cleanup.

All routes require an authenticated caller. The immediate cleanup route
lives on ``diagnostic_router`` and is only mounted when diagnostic
endpoints are enabled at app creation.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from sessionguard.api.auth import get_auth_context, get_revocation_store
from sessionguard.core import get_db, settings
from sessionguard.core.timeutils import utcnow
from sessionguard.models.revoked_token import RevocationReason
from sessionguard.schemas.admin import (
    BlacklistHealthResponse,
    BlacklistHistoryEntry,
    BlacklistStatsResponse,
    CleanupResponse,
    RevokeTokenRequest,
    RevokeTokenResponse,
    UserBlacklistStatsResponse,
)
from sessionguard.services.admin_reporting import AdminReportingService, CleanupResult
from sessionguard.services.revocation_store import (
    DEFAULT_HISTORY_DAYS,
    RevocationStore,
    record_status,
)

router = APIRouter(
    prefix="/admin/tokens",
    tags=["admin-tokens"],
    dependencies=[Depends(get_auth_context)],
)

diagnostic_router = APIRouter(
    prefix="/admin/tokens",
    tags=["admin-tokens"],
    dependencies=[Depends(get_auth_context)],
)


def get_reporting_service(
    store: RevocationStore = Depends(get_revocation_store),
) -> AdminReportingService:
    """Dependency to get the admin reporting service."""
    return AdminReportingService(
        store,
        grace_period=timedelta(days=settings.revocation_grace_period_days),
    )


def _cleanup_response(result: CleanupResult, warning: str | None = None) -> CleanupResponse:
    return CleanupResponse(
        deleted=result.deleted,
        stats=BlacklistStatsResponse.model_validate(result.stats),
        warning=warning,
    )


@router.get("/blacklist/stats", response_model=BlacklistStatsResponse)
async def get_blacklist_stats(
    service: AdminReportingService = Depends(get_reporting_service),
) -> BlacklistStatsResponse:
    """Get revocation table counts."""
    return BlacklistStatsResponse.model_validate(await service.stats())


@router.get("/blacklist/history", response_model=list[BlacklistHistoryEntry])
async def get_blacklist_history(
    days: int = Query(DEFAULT_HISTORY_DAYS, ge=1, le=365),
    service: AdminReportingService = Depends(get_reporting_service),
) -> list[BlacklistHistoryEntry]:
    """Get tokens revoked in the last N days, newest first."""
    now = utcnow()
    records = await service.history(days, now=now)
    return [
        BlacklistHistoryEntry(
            token_hash=record.token_hash,
            user_id=record.user_id,
            reason=record.reason,
            blacklisted_at=record.blacklisted_at,
            expires_at=record.expires_at,
            status=record_status(record, now),
        )
        for record in records
    ]


@router.get("/blacklist/user/{user_id}", response_model=UserBlacklistStatsResponse)
async def get_user_blacklist_stats(
    user_id: str,
    service: AdminReportingService = Depends(get_reporting_service),
) -> UserBlacklistStatsResponse:
    """Get revocation counts for one user."""
    return UserBlacklistStatsResponse.model_validate(await service.user_stats(user_id))


@router.get("/blacklist/health", response_model=BlacklistHealthResponse)
async def get_blacklist_health(
    service: AdminReportingService = Depends(get_reporting_service),
) -> BlacklistHealthResponse:
    """Check revocation table health."""
    report = await service.health()
    return BlacklistHealthResponse(
        status=report.status.value,
        message=report.message,
        stats=BlacklistStatsResponse.model_validate(report.stats),
        recommendations=report.recommendations,
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_expired_tokens(
    db: AsyncSession = Depends(get_db),
    service: AdminReportingService = Depends(get_reporting_service),
) -> CleanupResponse:
    """Delete revocation records whose token expired more than the grace period ago."""
    result = await service.cleanup()
    await db.commit()
    return _cleanup_response(result)


@router.post("/revoke", response_model=RevokeTokenResponse)
async def revoke_token(
    request: RevokeTokenRequest,
    db: AsyncSession = Depends(get_db),
    store: RevocationStore = Depends(get_revocation_store),
) -> RevokeTokenResponse:
    """Revoke an arbitrary token on a user's behalf.

    Tokens that cannot be decoded are still revoked, with reason ``malformed``.
    """
    claims = store.codec.decode(request.token)
    if claims is None:
        reason = RevocationReason.MALFORMED
        user_id = request.user_id
    else:
        reason = RevocationReason.ADMIN_REVOKE
        sub = claims.get("sub")
        user_id = request.user_id or (str(sub) if sub is not None else None)

    token_hash = await store.record(request.token, user_id=user_id, reason=reason)
    await db.commit()
    return RevokeTokenResponse(token_hash=token_hash, reason=reason)


@diagnostic_router.post("/cleanup/test-immediate", response_model=CleanupResponse)
async def cleanup_immediate(
    db: AsyncSession = Depends(get_db),
    service: AdminReportingService = Depends(get_reporting_service),
) -> CleanupResponse:
    """Delete every expired revocation record now, bypassing the grace period.

    Diagnostic only: destroys audit records still inside the grace window.
    """
    result = await service.cleanup_immediate()
    await db.commit()
    return _cleanup_response(
        result,
        warning="This cleanup bypassed the revocation grace period",
    )
