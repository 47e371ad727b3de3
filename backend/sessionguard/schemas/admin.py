"""Pydantic schemas for the token administration API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from sessionguard.models.revoked_token import RevocationReason


class BlacklistStatsResponse(BaseModel):
    """Revocation table counts."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    expired: int
    active: int


class BlacklistHistoryEntry(BaseModel):
    """A revocation record as shown in the audit history."""

    token_hash: str
    user_id: str | None = None
    reason: RevocationReason
    blacklisted_at: datetime
    expires_at: datetime
    status: str = Field(description="'active' or 'expired'")


class UserBlacklistStatsResponse(BaseModel):
    """Revocation counts for one user."""

    model_config = ConfigDict(from_attributes=True)

    total: int
    active: int
    expired: int
    reasons: dict[str, int]


class CleanupResponse(BaseModel):
    """Result of a cleanup action."""

    deleted: int
    stats: BlacklistStatsResponse
    warning: str | None = None


class BlacklistHealthResponse(BaseModel):
    """Coarse health signal for the revocation table."""

    status: str
    message: str
    stats: BlacklistStatsResponse
    recommendations: list[str]


class RevokeTokenRequest(BaseModel):
    """Request to revoke a token on a user's behalf."""

    token: str = Field(..., min_length=1)
    user_id: str | None = Field(default=None, max_length=64)


class RevokeTokenResponse(BaseModel):
    token_hash: str
    reason: RevocationReason
