"""Owner-only mutation endpoints for posts, comments and projects.

Each route declares its ownership requirement at registration through
``require_owner``; the handler body only runs for the resource's owner.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from sessionguard.api.auth import require_owner
from sessionguard.core import get_db
from sessionguard.models.resources import Comment, Post, Project
from sessionguard.services.ownership_gate import OwnershipRule
from sessionguard.services.resource_directory import ResourceKind
from sessionguard.services.session_gate import AuthContext

router = APIRouter(tags=["resources"])


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: str,
    context: AuthContext = Depends(require_owner(OwnershipRule(ResourceKind.POST, "post_id"))),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a post owned by the caller."""
    await db.execute(delete(Post).where(Post.id == uuid.UUID(post_id)))
    await db.commit()


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    context: AuthContext = Depends(
        require_owner(OwnershipRule(ResourceKind.COMMENT, "comment_id"))
    ),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a comment owned by the caller."""
    await db.execute(delete(Comment).where(Comment.id == uuid.UUID(comment_id)))
    await db.commit()


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    context: AuthContext = Depends(
        require_owner(OwnershipRule(ResourceKind.PROJECT, "project_id"))
    ),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a project created by the caller."""
    await db.execute(delete(Project).where(Project.id == uuid.UUID(project_id)))
    await db.commit()
