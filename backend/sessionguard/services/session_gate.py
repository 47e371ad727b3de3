"""Session Gate - decides whether a bearer token is live for this request.

Checks run in a fixed order and stop at the first failure:

1. extract the token from ``Authorization: Bearer <token>``
2. verify signature and expiry (no store access before this passes)
3. reject individually revoked tokens
4. reject tokens issued at or before the user's global logout cutoff
5. hand back an ``AuthContext`` for downstream handlers

Storage failures in steps 3 and 4 reject the request. The gate keeps no
state between calls.
"""

import logging
from dataclasses import dataclass
from typing import NoReturn

from sessionguard.services.auth import (
    TokenError,
    Unauthenticated,
    UnauthenticatedReason,
)
from sessionguard.services.revocation_store import RevocationStore, hash_token
from sessionguard.services.token_codec import Principal, TokenCodec
from sessionguard.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller, passed explicitly to downstream handlers.

    The raw token is kept so handlers such as logout can revoke it.
    """

    principal: Principal
    raw_token: str

    @property
    def subject_id(self) -> str:
        return self.principal.subject_id


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization`` header value, if well formed."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
        return None
    return parts[1]


class SessionGate:
    """Authenticates one request against codec, revocation store and user cutoff."""

    def __init__(self, codec: TokenCodec, store: RevocationStore, users: UserDirectory):
        self.codec = codec
        self.store = store
        self.users = users

    async def authenticate(self, authorization: str | None) -> AuthContext:
        """Run the gate. Returns an AuthContext or raises Unauthenticated."""
        raw_token = extract_bearer_token(authorization)
        if raw_token is None:
            self._reject(UnauthenticatedReason.MISSING)

        try:
            principal = self.codec.verify(raw_token)
        except TokenError as e:
            self._reject(UnauthenticatedReason.INVALID_OR_EXPIRED, detail=str(e))

        try:
            revoked = await self.store.is_revoked(raw_token)
        except Exception:
            logger.exception("Revocation lookup failed; rejecting request")
            self._reject(UnauthenticatedReason.INTERNAL_ERROR, principal=principal)
        if revoked:
            self._reject(
                UnauthenticatedReason.REVOKED,
                principal=principal,
                token_hash=hash_token(raw_token),
            )

        try:
            last_logout_at = await self.users.get_last_logout_at(principal.subject_id)
        except Exception:
            logger.exception("Logout cutoff lookup failed; rejecting request")
            self._reject(UnauthenticatedReason.INTERNAL_ERROR, principal=principal)
        if last_logout_at is not None and principal.issued_at <= last_logout_at:
            self._reject(UnauthenticatedReason.STALE_SESSION, principal=principal)

        return AuthContext(principal=principal, raw_token=raw_token)

    @staticmethod
    def _reject(
        reason: UnauthenticatedReason,
        principal: Principal | None = None,
        token_hash: str | None = None,
        detail: str | None = None,
    ) -> NoReturn:
        message = f"Authentication rejected: {reason.value}"
        if detail:
            message = f"{message} ({detail})"
        level = logging.DEBUG if reason == UnauthenticatedReason.MISSING else logging.WARNING
        logger.log(
            level,
            message,
            extra={
                "auth_reason": reason.value,
                "subject_id": principal.subject_id if principal else None,
                "token_hash": token_hash,
            },
        )
        raise Unauthenticated(reason)
