"""Logout: revoke one token, or cut off every session of a user."""

import logging
from datetime import datetime

from sessionguard.core.timeutils import utcnow
from sessionguard.models.revoked_token import RevocationReason
from sessionguard.services.revocation_store import RevocationStore
from sessionguard.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


class LogoutService:
    """Single-device and all-devices logout.

    Single-device logout revokes the presented token. All-devices logout
    moves the user's global cutoff forward, which invalidates every token
    issued up to now without having to enumerate them.
    """

    def __init__(self, store: RevocationStore, users: UserDirectory):
        self.store = store
        self.users = users

    async def logout(
        self,
        subject_id: str,
        raw_token: str,
        expires_at: datetime | None = None,
        all_devices: bool = False,
        now: datetime | None = None,
    ) -> RevocationReason:
        """Log a user out and return the reason that was applied."""
        now = now or utcnow()

        if all_devices:
            if not await self._cut_off_sessions(subject_id, now):
                # No cutoff covers this subject, so at least the presented
                # token must die.
                await self.store.record(
                    raw_token,
                    user_id=subject_id,
                    reason=RevocationReason.LOGOUT_ALL,
                    natural_expiry=expires_at,
                    now=now,
                )
            logger.info(f"User {subject_id} logged out from all devices")
            return RevocationReason.LOGOUT_ALL

        await self.store.record(
            raw_token,
            user_id=subject_id,
            reason=RevocationReason.LOGOUT,
            natural_expiry=expires_at,
            now=now,
        )
        logger.info(f"User {subject_id} logged out")
        return RevocationReason.LOGOUT

    async def _cut_off_sessions(self, subject_id: str, now: datetime) -> bool:
        """Move the cutoff to ``now``; True if a cutoff at or after ``now`` is in place."""
        if await self.users.set_last_logout_at(subject_id, now):
            return True
        # A concurrent logout may already have set a later cutoff
        cutoff = await self.users.get_last_logout_at(subject_id)
        if cutoff is not None and cutoff >= now:
            return True
        logger.warning(
            f"No session cutoff for subject {subject_id!r}; revoking the presented token only",
            extra={"subject_id": subject_id},
        )
        return False
