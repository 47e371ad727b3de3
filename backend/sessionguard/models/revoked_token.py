"""Revoked bearer tokens, keyed by a one-way hash of the raw token."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import CheckConstraint, DateTime, Enum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.core.database import Base


class RevocationReason(StrEnum):
    """Why a token was revoked."""

    LOGOUT = "logout"
    LOGOUT_ALL = "logout_all"
    ADMIN_REVOKE = "admin_revoke"
    MALFORMED = "malformed"


class RevokedToken(Base):
    """A revoked token identified by the SHA-256 hex digest of the raw token.

    The raw token is never stored. Rows are created on logout or admin
    revocation and removed by the reaper once ``expires_at`` plus the
    grace period has passed.
    """

    __tablename__ = "revoked_tokens"

    # The primary key doubles as the uniqueness constraint that
    # deduplicates concurrent revocations of the same token.
    token_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reason: Mapped[RevocationReason] = mapped_column(
        Enum(
            RevocationReason,
            name="revocation_reason",
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            length=32,
        ),
        nullable=False,
        default=RevocationReason.LOGOUT,
    )
    blacklisted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("expires_at >= blacklisted_at", name="ck_revoked_tokens_expiry_order"),
        Index("ix_revoked_tokens_expires_at", "expires_at"),
        Index("ix_revoked_tokens_blacklisted_at", "blacklisted_at"),
        Index("ix_revoked_tokens_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<RevokedToken {self.token_hash[:12]}... {self.reason.value}>"
