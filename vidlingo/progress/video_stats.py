"""Per-video rollup: recounts completions and mastered words from source rows."""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from vidlingo.progress.models import VideoProgressRecord
from vidlingo.progress.scheduler import MasteryLevel
from vidlingo.progress.store import ProgressUnitOfWork


class VideoStatsAggregator:
    """
    Keeps VideoProgress.completed_exercises / mastered_words equal to live counts.

    The counters are always recomputed in full, never incremented, so replayed or
    concurrent events cannot make them drift.
    """

    def __init__(self, mastered_threshold: int = MasteryLevel.MASTERED):
        self.mastered_threshold = mastered_threshold

    async def recompute(
        self, uow: ProgressUnitOfWork, user_id: str, video_id: int, now: datetime
    ) -> VideoProgressRecord | None:
        """
        Recount and store the rollup for one (user, video) pair.

        Returns:
            The updated row, or None when the user has no VideoProgress for the video
            (rows are created by watch/complete operations, not here).
        """
        completed = await uow.count_completions(user_id, video_id)
        mastered = await uow.count_mastered_vocabulary(user_id, video_id, self.mastered_threshold)

        updated = await uow.update_video_rollup(user_id, video_id, completed, mastered, now)
        if updated is None:
            logger.debug(f"No video progress for user={user_id} video={video_id}; rollup skipped")
        return updated
