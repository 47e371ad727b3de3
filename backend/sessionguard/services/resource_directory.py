"""Resource Directory - who owns a post, comment or project."""

import uuid
from enum import StrEnum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from sessionguard.models.resources import Comment, Post, Project
from sessionguard.services.auth import ResourceNotFound


class ResourceKind(StrEnum):
    """Resource kinds the ownership gate can protect."""

    COMMENT = "comment"
    POST = "post"
    PROJECT = "project"


# kind -> (primary key column, owning-user column)
OWNER_COLUMNS: dict[ResourceKind, tuple[InstrumentedAttribute, InstrumentedAttribute]] = {
    ResourceKind.COMMENT: (Comment.id, Comment.user_id),
    ResourceKind.POST: (Post.id, Post.user_id),
    ResourceKind.PROJECT: (Project.id, Project.creator_id),
}

_unmapped = set(ResourceKind) - set(OWNER_COLUMNS)
if _unmapped:
    raise RuntimeError(f"Resource kinds without an owner lookup: {sorted(_unmapped)}")


class ResourceDirectory:
    """Looks up the owning user of a resource."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_owner(self, kind: ResourceKind, resource_id: str) -> str:
        """Return the owner's user id as a string.

        Raises ResourceNotFound if no such resource exists. An id that is
        not a UUID cannot name an existing resource.
        """
        try:
            parsed_id = uuid.UUID(str(resource_id))
        except ValueError as e:
            raise ResourceNotFound(f"{kind.value.capitalize()} not found") from e

        id_column, owner_column = OWNER_COLUMNS[kind]
        result = await self.db.execute(select(owner_column).where(id_column == parsed_id))
        owner = result.scalar_one_or_none()
        if owner is None:
            raise ResourceNotFound(f"{kind.value.capitalize()} not found")
        return str(owner)
