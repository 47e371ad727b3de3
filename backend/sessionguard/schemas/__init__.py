# SessionGuard Pydantic Schemas
from sessionguard.schemas.admin import (
    BlacklistHealthResponse,
    BlacklistHistoryEntry,
    BlacklistStatsResponse,
    CleanupResponse,
    RevokeTokenRequest,
    RevokeTokenResponse,
    UserBlacklistStatsResponse,
)
from sessionguard.schemas.auth import (
    LogoutRequest,
    LogoutResponse,
    PrincipalResponse,
)

__all__ = [
    "BlacklistHealthResponse",
    "BlacklistHistoryEntry",
    "BlacklistStatsResponse",
    "CleanupResponse",
    "LogoutRequest",
    "LogoutResponse",
    "PrincipalResponse",
    "RevokeTokenRequest",
    "RevokeTokenResponse",
    "UserBlacklistStatsResponse",
]
