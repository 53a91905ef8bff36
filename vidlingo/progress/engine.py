"""
Progress Engine: the write path for learner progress.

Turns learner events into durable progress state:
- exercise answers -> completion log, per-video rollup, XP
- vocabulary reviews -> spaced-repetition mastery per (user, word, video)
- watch ticks / completion -> VideoProgress state
- segment completion -> presence completions, mastery bumps, flat XP

Every public operation runs in exactly one store transaction, so compound
operations commit or roll back as a whole. Store errors propagate unchanged.
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from vidlingo.progress.clock import Clock, SystemClock
from vidlingo.progress.errors import NotFoundError, ValidationFailure
from vidlingo.progress.models import (
    COMPLETION_ATTEMPT,
    COMPLETION_PRESENCE,
    ExerciseCompletionRecord,
    ExerciseCompletionResult,
    ExerciseProgress,
    SegmentCompletionResult,
    SegmentDetails,
    SegmentRecord,
    UserProgressRecord,
    VideoLearningStatus,
    VideoProgressRecord,
    VideoStatsSummary,
    VocabularyBreakdown,
    VocabularyEntry,
    WatchingProgress,
)
from vidlingo.progress.scheduler import MasteryLevel, MasteryScheduler, vocabulary_bucket
from vidlingo.progress.store import ProgressStore, ProgressUnitOfWork
from vidlingo.progress.video_stats import VideoStatsAggregator
from vidlingo.progress.xp_ledger import XPLedger

SEGMENT_COMPLETION_XP = 50


def _check_non_negative(field: str, value: float | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationFailure(field, value, "must be a number")
    if value < 0:
        raise ValidationFailure(field, value, "must not be negative")


class ProgressEngine:
    """
    Façade over the store, scheduler, XP ledger and rollup aggregator.

    Args:
        store: ProgressStore providing transactional units of work
        clock: Time source for every timestamp the engine writes
    """

    def __init__(
        self,
        store: ProgressStore,
        clock: Clock | None = None,
        scheduler: MasteryScheduler | None = None,
        ledger: XPLedger | None = None,
        aggregator: VideoStatsAggregator | None = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or MasteryScheduler(self.clock)
        self.ledger = ledger or XPLedger()
        self.aggregator = aggregator or VideoStatsAggregator()

    # =========================================================================
    # XP & Level
    # =========================================================================

    async def get_user_progress(self, user_id: str) -> UserProgressRecord:
        """Current progress, or a zero-state record for users without XP."""
        async with self.store.transaction() as uow:
            progress = await self.ledger.get_progress(uow, user_id)
        return progress or UserProgressRecord.zero(user_id)

    async def update_user_xp(self, user_id: str, xp_delta: int) -> UserProgressRecord:
        async with self.store.transaction() as uow:
            return await self.ledger.award(uow, user_id, xp_delta, self.clock.now())

    # =========================================================================
    # Vocabulary Mastery
    # =========================================================================

    async def _record_mastery(
        self, uow: ProgressUnitOfWork, user_id: str, word_id: int, video_id: int, level: int, now: datetime
    ) -> VocabularyEntry:
        entry = await uow.upsert_vocabulary(
            user_id,
            word_id,
            video_id,
            level,
            self.scheduler.next_review_date(level, now),
            now,
        )
        await self.aggregator.recompute(uow, user_id, video_id, now)
        return entry

    async def record_vocabulary_mastery(
        self, user_id: str, word_id: int, video_id: int, mastery_level: int
    ) -> VocabularyEntry:
        """
        Set the mastery of a word within a video and reschedule its review.

        Creates the entry on first review. The video's rollup is recomputed in
        the same transaction.

        Raises:
            ValidationFailure: If mastery_level is outside 0-5
            NotFoundError: If the video does not exist, or the word does not
                belong to it
        """
        level = MasteryLevel(mastery_level)
        now = self.clock.now()

        async with self.store.transaction() as uow:
            await self._require_video(uow, video_id)
            word = await uow.get_word(word_id)
            if word is None or word.video_id != video_id:
                raise NotFoundError("word", word_id)
            entry = await self._record_mastery(uow, user_id, word_id, video_id, level, now)

        logger.debug(f"Mastery user={user_id} word={word_id} video={video_id} -> {level}")
        return entry

    async def update_word_mastery_across_videos(
        self, user_id: str, word_id: int, mastery_level: int
    ) -> list[VocabularyEntry]:
        """
        Apply one mastery level to every video the user has met this word in.

        Entries stay scoped per video; this is a fan-out over the existing ones,
        not a merge. Words the user has never reviewed are left untouched.

        Raises:
            ValidationFailure: If mastery_level is outside 0-5
            NotFoundError: If the word is not in the catalog
        """
        level = MasteryLevel(mastery_level)
        now = self.clock.now()

        async with self.store.transaction() as uow:
            if await uow.get_word(word_id) is None:
                raise NotFoundError("word", word_id)
            entries = await uow.list_vocabulary_for_word(user_id, word_id)
            updated = [
                await self._record_mastery(uow, user_id, word_id, entry.video_id, level, now)
                for entry in entries
            ]

        logger.debug(f"Mastery user={user_id} word={word_id} -> {level} across {len(updated)} videos")
        return updated

    async def get_due_vocabulary(self, user_id: str, now: datetime | None = None) -> list[VocabularyEntry]:
        """Review queue: never-reviewed entries first, then by next_review ascending."""
        now = now or self.clock.now()
        async with self.store.transaction() as uow:
            return await uow.list_due_vocabulary(user_id, now)

    # =========================================================================
    # Exercises
    # =========================================================================

    async def record_exercise_completion(
        self,
        user_id: str,
        exercise_id: int,
        score: float,
        is_correct: bool,
        time_taken: float | None = None,
    ) -> ExerciseCompletionResult:
        """
        Log a scored exercise attempt, refresh the video rollup and award XP.

        All three effects share one transaction.

        Raises:
            ValidationFailure: If score or time_taken is negative
            NotFoundError: If the exercise does not exist
        """
        _check_non_negative("score", score)
        _check_non_negative("time_taken", time_taken)
        now = self.clock.now()

        async with self.store.transaction() as uow:
            exercise = await uow.get_exercise(exercise_id)
            if exercise is None:
                raise NotFoundError("exercise", exercise_id)

            completion = await uow.insert_completion(
                ExerciseCompletionRecord(
                    user_id=user_id,
                    exercise_id=exercise_id,
                    video_id=exercise.video_id,
                    score=score,
                    is_correct=is_correct,
                    time_taken=int(time_taken) if time_taken is not None else None,
                    kind=COMPLETION_ATTEMPT,
                    completed_at=now,
                )
            )
            await self.aggregator.recompute(uow, user_id, exercise.video_id, now)

            xp = self.ledger.exercise_xp(score, is_correct, time_taken)
            progress = await self.ledger.award(uow, user_id, xp, now)

        logger.info(
            f"Exercise {exercise_id} by {user_id}: score={score} correct={is_correct} +{xp} XP"
        )
        return ExerciseCompletionResult(completion=completion, xp_awarded=xp, progress=progress)

    async def get_video_exercise_history(self, user_id: str, video_id: int) -> list[ExerciseCompletionRecord]:
        """All completions for a video, newest first."""
        async with self.store.transaction() as uow:
            return await uow.list_completions(user_id, video_id)

    # =========================================================================
    # Video Watching
    # =========================================================================

    async def _require_video(self, uow: ProgressUnitOfWork, video_id: int) -> None:
        if not await uow.video_exists(video_id):
            raise NotFoundError("video", video_id)

    async def update_video_watch_progress(
        self,
        user_id: str,
        video_id: int,
        watched_seconds: int,
        last_segment_id: int | None = None,
    ) -> VideoProgressRecord:
        """Store how far the user has watched. Never clears is_completed."""
        _check_non_negative("watched_seconds", watched_seconds)
        now = self.clock.now()

        async with self.store.transaction() as uow:
            await self._require_video(uow, video_id)
            return await uow.upsert_video_watch(user_id, video_id, watched_seconds, last_segment_id, now)

    async def mark_video_completed(self, user_id: str, video_id: int) -> VideoProgressRecord:
        now = self.clock.now()
        async with self.store.transaction() as uow:
            await self._require_video(uow, video_id)
            progress = await uow.upsert_video_completed(user_id, video_id, now)

        logger.info(f"Video {video_id} completed by {user_id}")
        return progress

    # =========================================================================
    # Segments
    # =========================================================================

    async def _require_segment(self, uow: ProgressUnitOfWork, video_id: int, segment_id: int) -> SegmentRecord:
        segment = await uow.get_segment(segment_id)
        if segment is None or segment.video_id != video_id:
            raise NotFoundError("segment", segment_id)
        return segment

    async def complete_segment(self, user_id: str, video_id: int, segment_id: int) -> SegmentCompletionResult:
        """
        Mark a whole segment as done.

        In one transaction:
        (a) log a presence completion (score 0, correct) for each segment exercise
        (b) bump mastery of each segment word in this video, or start it at level 1
        (c) award a flat 50 XP

        Raises:
            NotFoundError: If the video or segment does not exist, or the segment
                belongs to another video
        """
        now = self.clock.now()

        async with self.store.transaction() as uow:
            await self._require_video(uow, video_id)
            await self._require_segment(uow, video_id, segment_id)

            exercises = await uow.list_segment_exercises(segment_id)
            for exercise in exercises:
                await uow.insert_completion(
                    ExerciseCompletionRecord(
                        user_id=user_id,
                        exercise_id=exercise.id,
                        video_id=video_id,
                        score=0,
                        is_correct=True,
                        kind=COMPLETION_PRESENCE,
                        completed_at=now,
                    )
                )

            review_dates = {
                level: self.scheduler.next_review_date(level, now)
                for level in range(1, MasteryLevel.MAX + 1)
            }
            created = bumped = 0
            vocabulary = []
            for word in await uow.list_segment_words(segment_id):
                entry, is_new = await uow.bump_vocabulary(user_id, word.id, video_id, review_dates, now)
                if is_new:
                    created += 1
                else:
                    bumped += 1
                vocabulary.append(entry)

            progress = await self.ledger.award(uow, user_id, SEGMENT_COMPLETION_XP, now)
            await self.aggregator.recompute(uow, user_id, video_id, now)

        logger.info(
            f"Segment {segment_id} of video {video_id} completed by {user_id}: "
            f"{len(exercises)} exercises, {created} new / {bumped} bumped words"
        )
        return SegmentCompletionResult(
            segment_id=segment_id,
            completions_recorded=len(exercises),
            words_created=created,
            words_bumped=bumped,
            xp_awarded=SEGMENT_COMPLETION_XP,
            progress=progress,
            vocabulary=vocabulary,
        )

    async def get_video_segments(self, video_id: int) -> list[SegmentRecord]:
        async with self.store.transaction() as uow:
            return await uow.list_segments(video_id)

    async def get_segment_details(self, segment_id: int) -> SegmentDetails:
        async with self.store.transaction() as uow:
            segment = await uow.get_segment(segment_id)
            if segment is None:
                raise NotFoundError("segment", segment_id)
            return SegmentDetails(
                segment=segment,
                words=await uow.list_segment_words(segment_id),
                exercises=await uow.list_segment_exercises(segment_id),
            )

    # =========================================================================
    # Read-only Aggregates
    # =========================================================================

    async def get_video_learning_status(self, user_id: str, video_id: int) -> VideoLearningStatus:
        """Counts computed from source rows (not the cached rollup)."""
        async with self.store.transaction() as uow:
            completed = await uow.count_completions(user_id, video_id)
            mastered = await uow.count_mastered_vocabulary(
                user_id, video_id, self.aggregator.mastered_threshold
            )
            total_segments = await uow.count_segments(video_id)
            last_activity = await uow.latest_completion_at(user_id, video_id)

        progress = round(completed / total_segments * 100) if total_segments > 0 else 0
        return VideoLearningStatus(
            completed_exercises=completed,
            mastered_words=mastered,
            total_segments=total_segments,
            progress=progress,
            last_activity=last_activity,
        )

    async def get_video_stats_summary(self, user_id: str, video_id: int) -> VideoStatsSummary:
        """Watching progress, exercise results and vocabulary buckets for one video."""
        async with self.store.transaction() as uow:
            watch = await uow.get_video_progress(user_id, video_id)
            completions = await uow.list_completions(user_id, video_id)
            vocabulary = await uow.list_vocabulary_for_video(user_id, video_id)

        total = len(completions)
        correct = sum(1 for c in completions if c.is_correct)
        exercise_progress = ExerciseProgress(
            total_exercises=total,
            correct_exercises=correct,
            average_score=sum(c.score for c in completions) / (total or 1),
            accuracy=correct / total if total else 0.0,
            presence_completions=sum(1 for c in completions if c.is_presence),
        )

        buckets = [vocabulary_bucket(v.mastery_level) for v in vocabulary]
        vocabulary_progress = VocabularyBreakdown(
            total_words=len(vocabulary),
            mastered_words=buckets.count("mastered"),
            in_progress_words=buckets.count("in_progress"),
            new_words=buckets.count("new"),
        )

        watching = WatchingProgress()
        if watch is not None:
            watching = WatchingProgress(
                watched_seconds=watch.watched_seconds,
                is_completed=watch.is_completed,
                last_watched=watch.last_watched,
            )

        return VideoStatsSummary(
            watching_progress=watching,
            exercise_progress=exercise_progress,
            vocabulary_progress=vocabulary_progress,
        )
