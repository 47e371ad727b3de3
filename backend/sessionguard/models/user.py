"""User identity and global session cutoff."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.models.base import BaseModel


class User(BaseModel):
    """A user as far as session validation is concerned.

    ``last_logout_at`` invalidates every token issued at or before it.
    It only ever moves forward and is never cleared.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    last_logout_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
