"""Ownership Gate - only the owner of a resource may modify it.

Runs after the session gate and is opt-in per route. Any failure to
establish ownership denies access.
"""

import logging
from dataclasses import dataclass
from enum import StrEnum

from sessionguard.services.auth import Forbidden, ResourceNotFound
from sessionguard.services.resource_directory import ResourceDirectory, ResourceKind
from sessionguard.services.token_codec import Principal

logger = logging.getLogger(__name__)


class OwnershipDecision(StrEnum):
    ALLOW = "allow"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class OwnershipRule:
    """Per-route ownership requirement, supplied when the route is registered.

    ``kind=None`` declares no requirement and always allows.
    ``id_param`` names the path parameter holding the resource id.
    """

    kind: ResourceKind | None
    id_param: str = "id"


class OwnershipGate:
    """Checks that a principal owns the resource a route acts on."""

    def __init__(self, resources: ResourceDirectory):
        self.resources = resources

    async def check(
        self,
        principal: Principal,
        kind: ResourceKind | None,
        resource_id: str | None,
    ) -> OwnershipDecision:
        """Return the ownership decision without raising."""
        if kind is None:
            return OwnershipDecision.ALLOW
        if not resource_id:
            return OwnershipDecision.FORBIDDEN

        try:
            owner_id = await self.resources.get_owner(kind, resource_id)
        except ResourceNotFound:
            return OwnershipDecision.NOT_FOUND
        except Exception:
            logger.exception(f"Ownership lookup failed for {kind.value} {resource_id}; denying")
            return OwnershipDecision.FORBIDDEN

        if owner_id != principal.subject_id:
            logger.warning(
                f"Ownership denied: {principal.subject_id} is not the owner of {kind.value}",
                extra={
                    "subject_id": principal.subject_id,
                    "resource_kind": kind.value,
                    "resource_id": str(resource_id),
                },
            )
            return OwnershipDecision.FORBIDDEN
        return OwnershipDecision.ALLOW

    async def authorize(
        self,
        principal: Principal,
        kind: ResourceKind | None,
        resource_id: str | None,
    ) -> OwnershipDecision:
        """Allow, or raise Forbidden / ResourceNotFound."""
        decision = await self.check(principal, kind, resource_id)
        if decision == OwnershipDecision.NOT_FOUND:
            raise ResourceNotFound("Resource not found")
        if decision == OwnershipDecision.FORBIDDEN:
            raise Forbidden(f"You are not the owner of this {kind.value if kind else 'resource'}")
        return decision
