"""
In-memory ProgressStore.

Holds the catalog and progress tables in dictionaries. Transactions are
serialised with an asyncio.Lock; each one works on live state and is rolled back
by restoring a snapshot taken when it began.

Used for tests, local demos and anywhere a database is not available.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime

from vidlingo.progress.models import (
    ExerciseCompletionRecord,
    ExerciseRecord,
    SegmentRecord,
    UserProgressRecord,
    VideoProgressRecord,
    VocabularyEntry,
    WordRecord,
)
from vidlingo.progress.scheduler import MasteryLevel
from vidlingo.progress.xp_ledger import level_for, streak_after


@dataclass
class _ProgressTables:
    user_progress: dict[str, UserProgressRecord] = field(default_factory=dict)
    vocabulary: dict[tuple[str, int, int], VocabularyEntry] = field(default_factory=dict)
    completions: list[ExerciseCompletionRecord] = field(default_factory=list)
    video_progress: dict[tuple[str, int], VideoProgressRecord] = field(default_factory=dict)
    vocabulary_seq: int = 0
    completion_seq: int = 0


class InMemoryProgressStore:
    """Dictionary-backed store with all-or-nothing transactions."""

    def __init__(self) -> None:
        # Catalog
        self.videos: dict[int, str] = {}
        self.segments: dict[int, SegmentRecord] = {}
        self.words: dict[int, WordRecord] = {}
        self.exercises: dict[int, ExerciseRecord] = {}

        self._tables = _ProgressTables()
        self._lock = asyncio.Lock()

    # =========================================================================
    # Catalog seeding
    # =========================================================================

    def add_video(self, video_id: int, title: str = "") -> None:
        self.videos[video_id] = title

    def add_segment(self, segment: SegmentRecord) -> None:
        self.segments[segment.id] = segment

    def add_word(self, word: WordRecord) -> None:
        self.words[word.id] = word

    def add_exercise(self, exercise: ExerciseRecord) -> None:
        self.exercises[exercise.id] = exercise

    # =========================================================================
    # Inspection (copies, outside any transaction)
    # =========================================================================

    @property
    def completions(self) -> list[ExerciseCompletionRecord]:
        return [replace(c) for c in self._tables.completions]

    @property
    def vocabulary(self) -> list[VocabularyEntry]:
        return [replace(v) for v in self._tables.vocabulary.values()]

    @property
    def user_progress(self) -> dict[str, UserProgressRecord]:
        return {k: replace(v) for k, v in self._tables.user_progress.items()}

    @property
    def video_progress(self) -> dict[tuple[str, int], VideoProgressRecord]:
        return {k: replace(v) for k, v in self._tables.video_progress.items()}

    # =========================================================================
    # Transactions
    # =========================================================================

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryUnitOfWork]:
        async with self._lock:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield InMemoryUnitOfWork(self, self._tables)
            except BaseException:
                self._tables = snapshot
                raise


class InMemoryUnitOfWork:
    """ProgressUnitOfWork over the store's dictionaries. Returns copies, never live rows."""

    def __init__(self, store: InMemoryProgressStore, tables: _ProgressTables):
        self._store = store
        self._t = tables

    # ---- user progress ----

    async def get_user_progress(self, user_id: str) -> UserProgressRecord | None:
        row = self._t.user_progress.get(user_id)
        return replace(row) if row else None

    async def add_xp(self, user_id: str, xp_delta: int, now: datetime) -> UserProgressRecord:
        row = self._t.user_progress.get(user_id)
        if row is None:
            row = UserProgressRecord(
                user_id=user_id,
                total_xp=xp_delta,
                level=level_for(xp_delta),
                current_streak=1,
                last_activity=now,
                created_at=now,
                updated_at=now,
            )
            self._t.user_progress[user_id] = row
        else:
            row.total_xp += xp_delta
            row.level = level_for(row.total_xp)
            row.current_streak = streak_after(row.current_streak, row.last_activity, now)
            row.last_activity = now
            row.updated_at = now
        return replace(row)

    # ---- vocabulary ----

    async def get_vocabulary(self, user_id: str, word_id: int, video_id: int) -> VocabularyEntry | None:
        row = self._t.vocabulary.get((user_id, word_id, video_id))
        return replace(row) if row else None

    async def upsert_vocabulary(
        self,
        user_id: str,
        word_id: int,
        video_id: int,
        mastery_level: int,
        next_review: datetime | None,
        now: datetime,
    ) -> VocabularyEntry:
        key = (user_id, word_id, video_id)
        row = self._t.vocabulary.get(key)
        if row is None:
            self._t.vocabulary_seq += 1
            row = VocabularyEntry(
                id=self._t.vocabulary_seq,
                user_id=user_id,
                word_id=word_id,
                video_id=video_id,
                mastery_level=int(mastery_level),
                next_review=next_review,
                last_reviewed=now,
                created_at=now,
                updated_at=now,
            )
            self._t.vocabulary[key] = row
        else:
            row.mastery_level = int(mastery_level)
            row.next_review = next_review
            row.last_reviewed = now
            row.updated_at = now
        return replace(row)

    async def bump_vocabulary(
        self,
        user_id: str,
        word_id: int,
        video_id: int,
        review_dates: dict[int, datetime],
        now: datetime,
    ) -> tuple[VocabularyEntry, bool]:
        row = self._t.vocabulary.get((user_id, word_id, video_id))
        if row is None:
            entry = await self.upsert_vocabulary(user_id, word_id, video_id, 1, review_dates[1], now)
            return entry, True
        row.mastery_level = min(row.mastery_level + 1, MasteryLevel.MAX)
        row.next_review = review_dates[row.mastery_level]
        row.last_reviewed = now
        row.updated_at = now
        return replace(row), False

    async def list_vocabulary_for_word(self, user_id: str, word_id: int) -> list[VocabularyEntry]:
        rows = [v for v in self._t.vocabulary.values() if v.user_id == user_id and v.word_id == word_id]
        return [replace(v) for v in sorted(rows, key=lambda v: v.video_id)]

    async def list_vocabulary_for_video(self, user_id: str, video_id: int) -> list[VocabularyEntry]:
        rows = [v for v in self._t.vocabulary.values() if v.user_id == user_id and v.video_id == video_id]
        return [replace(v) for v in sorted(rows, key=lambda v: v.id or 0)]

    async def list_due_vocabulary(self, user_id: str, now: datetime) -> list[VocabularyEntry]:
        due = [
            v
            for v in self._t.vocabulary.values()
            if v.user_id == user_id and (v.next_review is None or v.next_review <= now)
        ]
        due.sort(key=lambda v: (v.next_review is not None, v.next_review or now, v.id or 0))
        return [replace(v, word=self._store.words.get(v.word_id)) for v in due]

    async def count_mastered_vocabulary(self, user_id: str, video_id: int, threshold: int) -> int:
        return sum(
            1
            for v in self._t.vocabulary.values()
            if v.user_id == user_id and v.video_id == video_id and v.mastery_level >= threshold
        )

    # ---- exercise completions ----

    async def insert_completion(self, completion: ExerciseCompletionRecord) -> ExerciseCompletionRecord:
        self._t.completion_seq += 1
        row = replace(completion, id=self._t.completion_seq)
        self._t.completions.append(row)
        return replace(row)

    async def list_completions(self, user_id: str, video_id: int) -> list[ExerciseCompletionRecord]:
        rows = [c for c in self._t.completions if c.user_id == user_id and c.video_id == video_id]
        rows.sort(key=lambda c: (c.completed_at, c.id or 0), reverse=True)
        return [replace(c) for c in rows]

    async def count_completions(self, user_id: str, video_id: int) -> int:
        return sum(1 for c in self._t.completions if c.user_id == user_id and c.video_id == video_id)

    async def latest_completion_at(self, user_id: str, video_id: int) -> datetime | None:
        stamps = [
            c.completed_at for c in self._t.completions if c.user_id == user_id and c.video_id == video_id
        ]
        return max(stamps) if stamps else None

    # ---- video progress ----

    async def get_video_progress(self, user_id: str, video_id: int) -> VideoProgressRecord | None:
        row = self._t.video_progress.get((user_id, video_id))
        return replace(row) if row else None

    def _new_video_progress(self, user_id: str, video_id: int, now: datetime) -> VideoProgressRecord:
        row = VideoProgressRecord(
            user_id=user_id, video_id=video_id, last_watched=now, created_at=now, updated_at=now
        )
        self._t.video_progress[(user_id, video_id)] = row
        return row

    async def upsert_video_watch(
        self,
        user_id: str,
        video_id: int,
        watched_seconds: int,
        last_segment_id: int | None,
        now: datetime,
    ) -> VideoProgressRecord:
        row = self._t.video_progress.get((user_id, video_id))
        if row is None:
            row = self._new_video_progress(user_id, video_id, now)
        row.watched_seconds = watched_seconds
        row.last_segment_watched = last_segment_id
        row.last_watched = now
        row.updated_at = now
        return replace(row)

    async def upsert_video_completed(self, user_id: str, video_id: int, now: datetime) -> VideoProgressRecord:
        row = self._t.video_progress.get((user_id, video_id))
        if row is None:
            row = self._new_video_progress(user_id, video_id, now)
        row.is_completed = True
        row.last_watched = now
        row.updated_at = now
        return replace(row)

    async def update_video_rollup(
        self,
        user_id: str,
        video_id: int,
        completed_exercises: int,
        mastered_words: int,
        now: datetime,
    ) -> VideoProgressRecord | None:
        row = self._t.video_progress.get((user_id, video_id))
        if row is None:
            return None
        row.completed_exercises = completed_exercises
        row.mastered_words = mastered_words
        row.updated_at = now
        return replace(row)

    # ---- catalog ----

    async def video_exists(self, video_id: int) -> bool:
        return video_id in self._store.videos

    async def get_exercise(self, exercise_id: int) -> ExerciseRecord | None:
        return self._store.exercises.get(exercise_id)

    async def get_word(self, word_id: int) -> WordRecord | None:
        return self._store.words.get(word_id)

    async def get_segment(self, segment_id: int) -> SegmentRecord | None:
        return self._store.segments.get(segment_id)

    async def list_segments(self, video_id: int) -> list[SegmentRecord]:
        rows = [s for s in self._store.segments.values() if s.video_id == video_id]
        return sorted(rows, key=lambda s: (s.start_time, s.id))

    async def count_segments(self, video_id: int) -> int:
        return sum(1 for s in self._store.segments.values() if s.video_id == video_id)

    async def list_segment_exercises(self, segment_id: int) -> list[ExerciseRecord]:
        rows = [e for e in self._store.exercises.values() if e.segment_id == segment_id]
        return sorted(rows, key=lambda e: e.id)

    async def list_segment_words(self, segment_id: int) -> list[WordRecord]:
        rows = [w for w in self._store.words.values() if w.segment_id == segment_id]
        return sorted(rows, key=lambda w: w.id)
