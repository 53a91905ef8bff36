"""
XP Ledger: experience points, levels and activity streaks.

Level is a pure function of total XP (1000 XP per level, starting at level 1).
Awards go through the store's atomic add_xp upsert, so two concurrent awards for
the same user both land.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger

from vidlingo.progress.errors import ValidationFailure
from vidlingo.progress.models import UserProgressRecord
from vidlingo.progress.store import ProgressUnitOfWork

XP_PER_LEVEL = 1000


def level_for(total_xp: int) -> int:
    """Level reached with this much XP."""
    return total_xp // XP_PER_LEVEL + 1


def day_start(moment: datetime) -> datetime:
    """Midnight (UTC) of the day containing `moment`."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def streak_after(current_streak: int, last_activity: datetime | None, now: datetime) -> int:
    """
    Streak value after an activity at `now`.

    Same day keeps the streak, the following day extends it, any longer gap
    (or no previous activity) restarts it at 1.
    """
    if last_activity is None:
        return 1
    today = day_start(now)
    if last_activity >= today and current_streak > 0:
        return current_streak
    if last_activity >= today - timedelta(days=1):
        return current_streak + 1
    return 1


class XPLedger:
    """Computes and applies XP awards."""

    BASE_XP = 10
    CORRECT_BONUS = 20
    HIGH_SCORE_BONUS = 15  # score > 80
    GOOD_SCORE_BONUS = 10  # score > 60
    SPEED_BONUS = 5  # answered in under 30 seconds
    SPEED_THRESHOLD_SECONDS = 30

    def exercise_xp(self, score: float, is_correct: bool, time_taken: float | None = None) -> int:
        """
        XP earned for one exercise attempt.

        10 base, +20 when correct, +15 for score > 80 (else +10 for score > 60),
        +5 when answered in under 30 seconds.
        """
        xp = self.BASE_XP

        if is_correct:
            xp += self.CORRECT_BONUS

        if score > 80:
            xp += self.HIGH_SCORE_BONUS
        elif score > 60:
            xp += self.GOOD_SCORE_BONUS

        if time_taken is not None and time_taken < self.SPEED_THRESHOLD_SECONDS:
            xp += self.SPEED_BONUS

        return xp

    async def get_progress(self, uow: ProgressUnitOfWork, user_id: str) -> UserProgressRecord | None:
        return await uow.get_user_progress(user_id)

    async def award(
        self, uow: ProgressUnitOfWork, user_id: str, xp_delta: int, now: datetime
    ) -> UserProgressRecord:
        """
        Add XP to a user, creating their progress row on first award.

        Args:
            uow: Open unit of work
            user_id: User identifier
            xp_delta: Non-negative XP amount
            now: Award timestamp (stamps updated_at and last_activity)

        Returns:
            Updated progress record

        Raises:
            ValidationFailure: If xp_delta is negative or not an integer
        """
        if isinstance(xp_delta, bool) or not isinstance(xp_delta, int):
            raise ValidationFailure("xp_delta", xp_delta, "must be an integer")
        if xp_delta < 0:
            raise ValidationFailure("xp_delta", xp_delta, "must not be negative")

        progress = await uow.add_xp(user_id, xp_delta, now)
        logger.debug(
            f"Awarded {xp_delta} XP to {user_id}: total={progress.total_xp} level={progress.level}"
        )
        return progress
