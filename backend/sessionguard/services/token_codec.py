"""JWT encoding, verification and best-effort decoding (PyJWT)."""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from sessionguard.core import settings
from sessionguard.core.timeutils import from_timestamp, utcnow
from sessionguard.services.auth import InvalidTokenError, TokenExpiredError

# Claims a verified access token must carry
REQUIRED_CLAIMS = ["sub", "iat", "exp"]


@dataclass(frozen=True)
class Principal:
    """Verified identity extracted from a valid token. Lives for one request."""

    subject_id: str
    issued_at: datetime
    expires_at: datetime
    claims: dict[str, Any] = field(default_factory=dict)


class TokenCodec:
    """Signs, verifies and decodes bearer tokens with a shared secret."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self._secret_key = secret_key
        self._algorithm = algorithm

    def create_access_token(
        self,
        subject_id: str,
        expires_delta: timedelta | None = None,
        issued_at: datetime | None = None,
        **extra_claims: Any,
    ) -> str:
        """Create a signed access token for ``subject_id``."""
        issued_at = issued_at or utcnow()
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)
        payload = {
            **extra_claims,
            "sub": str(subject_id),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + expires_delta).timestamp()),
            "type": "access",
            # Unique per token so two tokens minted in the same second
            # hash to different revocation keys
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, raw_token: str) -> Principal:
        """Verify signature and expiry and return the principal.

        Raises TokenExpiredError or InvalidTokenError.
        """
        try:
            payload = jwt.decode(
                raw_token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        if payload.get("type", "access") != "access":
            raise InvalidTokenError("Not an access token")

        try:
            issued_at = from_timestamp(payload["iat"])
            expires_at = from_timestamp(payload["exp"])
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidTokenError("Invalid token timestamps") from e

        return Principal(
            subject_id=str(payload["sub"]),
            issued_at=issued_at,
            expires_at=expires_at,
            claims=payload,
        )

    def decode(self, raw_token: str) -> dict[str, Any] | None:
        """Decode claims without checking the signature.

        Only used to learn a token's natural expiry before revoking it.
        Returns None for anything that does not decode to a claims object.
        """
        try:
            payload = jwt.decode(raw_token, options={"verify_signature": False})
        except PyJWTError:
            return None
        if not isinstance(payload, dict):
            return None
        return payload

    def natural_expiry(self, raw_token: str) -> datetime | None:
        """The ``exp`` claim of a possibly invalid token, if it has a usable one."""
        payload = self.decode(raw_token)
        if not payload:
            return None
        exp = payload.get("exp")
        if not isinstance(exp, int | float) or isinstance(exp, bool):
            return None
        try:
            return from_timestamp(exp)
        except (ValueError, OverflowError, OSError):
            return None


def get_token_codec() -> TokenCodec:
    """Codec configured from application settings."""
    return TokenCodec(settings.effective_jwt_secret_key, settings.jwt_algorithm)
