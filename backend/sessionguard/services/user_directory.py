"""User Directory - per-user global session cutoff."""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from sessionguard.core.timeutils import as_utc
from sessionguard.models.user import User

logger = logging.getLogger(__name__)


def parse_user_id(subject_id: str) -> uuid.UUID | None:
    """Parse a token subject into a user id; None if it is not a UUID."""
    try:
        return uuid.UUID(str(subject_id))
    except (ValueError, AttributeError):
        return None


class UserDirectory:
    """Reads and advances ``users.last_logout_at``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_last_logout_at(self, subject_id: str) -> datetime | None:
        """Get the user's global cutoff, or None if never set or user unknown."""
        user_id = parse_user_id(subject_id)
        if user_id is None:
            return None
        result = await self.db.execute(select(User.last_logout_at).where(User.id == user_id))
        value = result.scalar_one_or_none()
        return as_utc(value) if value is not None else None

    async def set_last_logout_at(self, subject_id: str, now: datetime) -> bool:
        """Move the user's cutoff forward to ``now``.

        Single conditional UPDATE, so concurrent calls cannot move the cutoff
        backwards. Returns False if the user does not exist or already has a
        later cutoff.
        """
        user_id = parse_user_id(subject_id)
        if user_id is None:
            logger.warning(f"Cannot set logout cutoff for non-UUID subject {subject_id!r}")
            return False

        result: CursorResult[Any] = await self.db.execute(  # type: ignore[assignment]
            update(User)
            .where(
                User.id == user_id,
                or_(User.last_logout_at.is_(None), User.last_logout_at < now),
            )
            .values(last_logout_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.info(f"Logout cutoff for user {subject_id} not moved (unknown user or later cutoff)")
            return False
        return True
