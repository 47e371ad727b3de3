"""Pydantic schemas for authentication API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from sessionguard.services.token_codec import Principal


class LogoutRequest(BaseModel):
    """Request body for logout."""

    logout_from_all_devices: bool = Field(
        default=False,
        description="Invalidate every token issued to this user so far, not just this one",
    )


class LogoutResponse(BaseModel):
    """Response after logout."""

    message: str
    reason: str


class PrincipalResponse(BaseModel):
    """The authenticated caller as seen by the session gate."""

    valid: bool = True
    subject_id: str
    issued_at: datetime
    expires_at: datetime
    claims: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            subject_id=principal.subject_id,
            issued_at=principal.issued_at,
            expires_at=principal.expires_at,
            claims=principal.claims,
        )
