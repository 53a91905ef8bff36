"""
Mastery Scheduler for vocabulary review.

Maps a 0-5 mastery level to the delay before the next review:

    level 1 -> 1 day
    level 2 -> 3 days
    level 3 -> 1 week
    level 4 -> 2 weeks
    level 5 -> 1 month
    other   -> 1 day

Mastery only moves up through bump_mastery(); there is no forgetting curve.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from vidlingo.progress.clock import Clock, SystemClock
from vidlingo.progress.errors import ValidationFailure


class MasteryLevel(int):
    """An int constrained to the 0-5 mastery range."""

    MIN = 0
    MAX = 5
    MASTERED = 4  # 4 and 5 count as mastered

    def __new__(cls, value: int) -> MasteryLevel:
        # bool is an int subclass; True must not silently become level 1
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationFailure("mastery_level", value, "must be an integer")
        if not cls.MIN <= value <= cls.MAX:
            raise ValidationFailure(
                "mastery_level", value, f"must be between {cls.MIN} and {cls.MAX}"
            )
        return super().__new__(cls, value)

    @property
    def is_mastered(self) -> bool:
        return self >= self.MASTERED


def vocabulary_bucket(level: int) -> str:
    """Classify a mastery level as 'mastered', 'in_progress' or 'new'."""
    if level >= MasteryLevel.MASTERED:
        return "mastered"
    if level > 0:
        return "in_progress"
    return "new"


class MasteryScheduler:
    """Pure spaced-repetition math: review intervals and mastery increments."""

    REVIEW_INTERVALS_DAYS = {1: 1, 2: 3, 3: 7, 4: 14, 5: 30}
    DEFAULT_INTERVAL_DAYS = 1

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()

    def interval_for(self, mastery_level: int) -> timedelta:
        """Delay between a review at this level and the next one."""
        days = self.REVIEW_INTERVALS_DAYS.get(mastery_level, self.DEFAULT_INTERVAL_DAYS)
        return timedelta(days=days)

    def next_review_date(self, mastery_level: int, from_: datetime | None = None) -> datetime:
        """
        Compute when an item reviewed at `from_` is due again.

        Args:
            mastery_level: Level after the review (0-5; anything else uses the default)
            from_: Review timestamp (defaults to the clock's now)

        Returns:
            Next review timestamp
        """
        if from_ is None:
            from_ = self.clock.now()
        return from_ + self.interval_for(mastery_level)

    def bump_mastery(self, current_level: int) -> int:
        """Raise mastery by one, capped at the maximum level."""
        return min(current_level + 1, MasteryLevel.MAX)
