"""Authentication and authorization error taxonomy.

Every failure inside the security pipeline is expressed as one of the
exceptions below. The API layer maps them to HTTP responses:
``Unauthenticated`` -> 401, ``Forbidden`` -> 403, ``ResourceNotFound`` -> 404.
"""

from enum import StrEnum


class AuthError(Exception):
    """Base authentication error."""

    pass


class UnauthenticatedReason(StrEnum):
    """Which check rejected the request. Logged, never sent to the client."""

    MISSING = "missing"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    REVOKED = "revoked"
    STALE_SESSION = "stale_session"
    INTERNAL_ERROR = "internal_error"


class Unauthenticated(AuthError):
    """The request does not carry a live, valid bearer token."""

    def __init__(self, reason: UnauthenticatedReason):
        super().__init__(reason.value)
        self.reason = reason


class Forbidden(AuthError):
    """The principal is authenticated but may not act on the resource."""

    pass


class ResourceNotFound(AuthError):
    """The referenced resource does not exist."""

    pass


class TokenError(AuthError):
    """JWT token error raised by the codec."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class InvalidTokenError(TokenError):
    """JWT token is invalid."""

    pass
