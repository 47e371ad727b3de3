"""Ownership columns of the resources the ownership gate protects.

Only the fields needed to answer "who owns this?" live here; the full
post, comment and project models belong to the services that manage them.
"""

import uuid

from sqlalchemy import ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.models.base import BaseModel


class Post(BaseModel):
    __tablename__ = "posts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )


class Comment(BaseModel):
    __tablename__ = "comments"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    post_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True
    )


class Project(BaseModel):
    __tablename__ = "projects"

    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
