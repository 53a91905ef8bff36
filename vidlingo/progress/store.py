"""
Persistence contract consumed by the progress engine.

A ProgressStore hands out units of work through `transaction()`. Everything done
through one unit of work commits or rolls back together. Upserts are keyed on the
natural keys and must be atomic in the store itself (no check-then-write):

    UserProgress     (user_id)
    UserVocabulary   (user_id, word_id, video_id)
    VideoProgress    (user_id, video_id)

ExerciseCompletion is insert-only. Catalog lookups are read-only.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from vidlingo.progress.models import (
    ExerciseCompletionRecord,
    ExerciseRecord,
    SegmentRecord,
    UserProgressRecord,
    VideoProgressRecord,
    VocabularyEntry,
    WordRecord,
)


class ProgressUnitOfWork(Protocol):
    """Operations available inside one store transaction."""

    # ---- user progress ----
    async def get_user_progress(self, user_id: str) -> UserProgressRecord | None: ...

    async def add_xp(self, user_id: str, xp_delta: int, now: datetime) -> UserProgressRecord:
        """Atomically create-or-increment total_xp, recompute level, maintain the streak."""
        ...

    # ---- vocabulary ----
    async def get_vocabulary(
        self, user_id: str, word_id: int, video_id: int
    ) -> VocabularyEntry | None: ...

    async def upsert_vocabulary(
        self,
        user_id: str,
        word_id: int,
        video_id: int,
        mastery_level: int,
        next_review: datetime | None,
        now: datetime,
    ) -> VocabularyEntry:
        """Insert or overwrite level/next_review, stamping last_reviewed and updated_at with now."""
        ...

    async def bump_vocabulary(
        self,
        user_id: str,
        word_id: int,
        video_id: int,
        review_dates: dict[int, datetime],
        now: datetime,
    ) -> tuple[VocabularyEntry, bool]:
        """
        Atomically raise mastery by one (capped at 5), or insert at level 1.

        next_review is taken from review_dates keyed by the resulting level.
        Returns the entry and whether it was newly created.
        """
        ...

    async def list_vocabulary_for_word(self, user_id: str, word_id: int) -> list[VocabularyEntry]: ...

    async def list_vocabulary_for_video(self, user_id: str, video_id: int) -> list[VocabularyEntry]: ...

    async def list_due_vocabulary(self, user_id: str, now: datetime) -> list[VocabularyEntry]:
        """next_review <= now or null; nulls first, then next_review ascending; word attached."""
        ...

    async def count_mastered_vocabulary(self, user_id: str, video_id: int, threshold: int) -> int: ...

    # ---- exercise completions ----
    async def insert_completion(self, completion: ExerciseCompletionRecord) -> ExerciseCompletionRecord: ...

    async def list_completions(self, user_id: str, video_id: int) -> list[ExerciseCompletionRecord]:
        """Newest first."""
        ...

    async def count_completions(self, user_id: str, video_id: int) -> int: ...

    async def latest_completion_at(self, user_id: str, video_id: int) -> datetime | None: ...

    # ---- video progress ----
    async def get_video_progress(self, user_id: str, video_id: int) -> VideoProgressRecord | None: ...

    async def upsert_video_watch(
        self,
        user_id: str,
        video_id: int,
        watched_seconds: int,
        last_segment_id: int | None,
        now: datetime,
    ) -> VideoProgressRecord:
        """Insert (is_completed=False) or update watch fields; never touches is_completed."""
        ...

    async def upsert_video_completed(self, user_id: str, video_id: int, now: datetime) -> VideoProgressRecord:
        """Insert or set is_completed=True, keeping watch and rollup fields."""
        ...

    async def update_video_rollup(
        self,
        user_id: str,
        video_id: int,
        completed_exercises: int,
        mastered_words: int,
        now: datetime,
    ) -> VideoProgressRecord | None:
        """Overwrite the cached counters. Returns None when there is no row to update."""
        ...

    # ---- catalog (read-only) ----
    async def video_exists(self, video_id: int) -> bool: ...

    async def get_exercise(self, exercise_id: int) -> ExerciseRecord | None: ...

    async def get_word(self, word_id: int) -> WordRecord | None: ...

    async def get_segment(self, segment_id: int) -> SegmentRecord | None: ...

    async def list_segments(self, video_id: int) -> list[SegmentRecord]:
        """Ordered by start_time."""
        ...

    async def count_segments(self, video_id: int) -> int: ...

    async def list_segment_exercises(self, segment_id: int) -> list[ExerciseRecord]: ...

    async def list_segment_words(self, segment_id: int) -> list[WordRecord]: ...


class ProgressStore(Protocol):
    """Source of transactional units of work."""

    def transaction(self) -> AbstractAsyncContextManager[ProgressUnitOfWork]: ...
