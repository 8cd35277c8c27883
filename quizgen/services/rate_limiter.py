"""
Per-user generation cooldown backed by the profile record

The check and the reserve are separate steps: the timestamp is written only
after a generation path succeeds, so failed generations do not consume the
cooldown. Two near-simultaneous requests from one user can both pass the
check; the cooldown is a UX guard, not a security control.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quizgen.config import settings
from quizgen.exceptions import StorageUnavailable
from quizgen.models import Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CooldownStatus:
    allowed: bool
    retry_after_seconds: int = 0
    message: str = ""


ALLOWED = CooldownStatus(allowed=True)


def encouragement_message(retry_after_seconds: int) -> str:
    """Pick the wait message for the remaining-time bucket"""
    if retry_after_seconds > 45:
        return f"Great pace! Take a breather and review your last quiz. Next quiz unlocks in {retry_after_seconds}s."
    if retry_after_seconds > 30:
        return f"Almost halfway there. Use the time to recall what you just learned. {retry_after_seconds}s to go."
    if retry_after_seconds > 15:
        return f"Stay sharp, a fresh quiz is coming up in {retry_after_seconds}s."
    return f"Get ready! Your next quiz is just {retry_after_seconds}s away."


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GenerationRateLimiter:
    """Enforces the minimum interval between a user's successful generations"""

    def __init__(self, cooldown_seconds: int = settings.GENERATION_COOLDOWN_SECONDS):
        self.cooldown_seconds = cooldown_seconds

    async def check(
        self,
        db: AsyncSession,
        caller_id: str,
        now: Optional[datetime] = None,
    ) -> CooldownStatus:
        """
        Check whether the caller may start a new generation

        Args:
            db: Database session
            caller_id: Authenticated user id
            now: Current time (defaults to utcnow)

        Returns:
            CooldownStatus; blocked statuses carry retry_after_seconds in (0, cooldown]
        """
        now = now or datetime.now(timezone.utc)
        try:
            last_generated_at = await db.scalar(
                select(Profile.last_generated_at).where(Profile.id == caller_id)
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to read generation timestamp for {caller_id}: {str(e)}")
            raise StorageUnavailable(details="Could not read generation history")

        if last_generated_at is None:
            return ALLOWED

        elapsed = (now - _as_utc(last_generated_at)).total_seconds()
        if elapsed >= self.cooldown_seconds:
            return ALLOWED

        retry_after = max(1, math.ceil(self.cooldown_seconds - max(elapsed, 0.0)))
        retry_after = min(retry_after, self.cooldown_seconds)
        logger.warning(f"Generation cooldown active for {caller_id}: retry in {retry_after}s")
        return CooldownStatus(
            allowed=False,
            retry_after_seconds=retry_after,
            message=encouragement_message(retry_after),
        )

    async def reserve(
        self,
        db: AsyncSession,
        caller_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Record a successful generation; creates the profile row if missing"""
        now = now or datetime.now(timezone.utc)
        try:
            profile = await db.get(Profile, caller_id)
            if profile is None:
                db.add(Profile(id=caller_id, last_generated_at=now))
            else:
                profile.last_generated_at = now
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to write generation timestamp for {caller_id}: {str(e)}")
            raise StorageUnavailable(details="Could not record generation time")

        logger.debug(f"Generation timestamp recorded for {caller_id}")


# Global instance
rate_limiter = GenerationRateLimiter()
