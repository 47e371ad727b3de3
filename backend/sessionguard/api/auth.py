"""Authentication dependencies and endpoints.

``get_auth_context`` runs the session gate for a request and is the only
way handlers obtain the caller. ``require_owner`` layers the ownership
gate on top for routes that modify a specific resource.
"""

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sessionguard.core import get_db
from sessionguard.schemas.auth import LogoutRequest, LogoutResponse, PrincipalResponse
from sessionguard.services.auth import (
    Forbidden,
    ResourceNotFound,
    Unauthenticated,
    UnauthenticatedReason,
)
from sessionguard.services.logout import LogoutService
from sessionguard.services.ownership_gate import OwnershipGate, OwnershipRule
from sessionguard.services.resource_directory import ResourceDirectory
from sessionguard.services.revocation_store import RevocationStore
from sessionguard.services.session_gate import AuthContext, SessionGate
from sessionguard.services.token_codec import TokenCodec, get_token_codec
from sessionguard.services.user_directory import UserDirectory

router = APIRouter(prefix="/auth", tags=["auth"])


def get_codec() -> TokenCodec:
    """Dependency to get the token codec."""
    return get_token_codec()


def get_revocation_store(
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_codec),
) -> RevocationStore:
    """Dependency to get the revocation store bound to the request session."""
    return RevocationStore(db, codec=codec)


def get_session_gate(
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_codec),
    store: RevocationStore = Depends(get_revocation_store),
) -> SessionGate:
    """Dependency to get the session gate."""
    return SessionGate(codec=codec, store=store, users=UserDirectory(db))


def _unauthorized(reason: UnauthenticatedReason) -> HTTPException:
    # The client never learns which check failed
    if reason == UnauthenticatedReason.MISSING:
        detail = "Access token is required"
    else:
        detail = "Invalid or expired token"
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_auth_context(
    request: Request,
    gate: SessionGate = Depends(get_session_gate),
) -> AuthContext:
    """Dependency to authenticate the request's bearer token."""
    try:
        return await gate.authenticate(request.headers.get("Authorization"))
    except Unauthenticated as e:
        raise _unauthorized(e.reason) from e


def require_owner(rule: OwnershipRule) -> Callable[..., Awaitable[AuthContext]]:
    """Build a dependency enforcing ``rule`` after authentication.

    Usage at route registration::

        @router.delete("/comments/{id}")
        async def delete_comment(
            context: AuthContext = Depends(require_owner(OwnershipRule(ResourceKind.COMMENT))),
        ): ...
    """

    async def _require_owner(
        request: Request,
        context: AuthContext = Depends(get_auth_context),
        db: AsyncSession = Depends(get_db),
    ) -> AuthContext:
        gate = OwnershipGate(ResourceDirectory(db))
        resource_id = request.path_params.get(rule.id_param)
        try:
            await gate.authorize(context.principal, rule.kind, resource_id)
        except ResourceNotFound as e:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Resource not found",
            ) from e
        except Forbidden as e:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=str(e),
            ) from e
        return context

    return _require_owner


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    body: LogoutRequest | None = None,
    context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    store: RevocationStore = Depends(get_revocation_store),
) -> LogoutResponse:
    """Log out the current user.

    By default revokes the presented token for the rest of its lifetime.
    With ``logout_from_all_devices`` every token issued to the user up to
    now stops working.
    """
    all_devices = body.logout_from_all_devices if body else False
    service = LogoutService(store, UserDirectory(db))
    reason = await service.logout(
        subject_id=context.subject_id,
        raw_token=context.raw_token,
        expires_at=context.principal.expires_at,
        all_devices=all_devices,
    )
    await db.commit()

    if all_devices:
        message = "Logged out from all devices"
    else:
        message = "Logout successful. Token has been invalidated."
    return LogoutResponse(message=message, reason=reason.value)


@router.post("/validate-token", response_model=PrincipalResponse)
async def validate_token(
    context: AuthContext = Depends(get_auth_context),
) -> PrincipalResponse:
    """Confirm the presented token is valid, unrevoked and not cut off."""
    return PrincipalResponse.from_principal(context.principal)


@router.get("/me", response_model=PrincipalResponse)
async def get_current_principal(
    context: AuthContext = Depends(get_auth_context),
) -> PrincipalResponse:
    """Get the current caller's verified claims."""
    return PrincipalResponse.from_principal(context.principal)
