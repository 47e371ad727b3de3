# SessionGuard Models
from sessionguard.models.base import BaseModel
from sessionguard.models.resources import Comment, Post, Project
from sessionguard.models.revoked_token import RevocationReason, RevokedToken
from sessionguard.models.user import User

__all__ = [
    "BaseModel",
    "Comment",
    "Post",
    "Project",
    "RevocationReason",
    "RevokedToken",
    "User",
]
