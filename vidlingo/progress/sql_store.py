"""
SQLAlchemy ProgressStore.

Each transaction is one AsyncSession inside `session.begin()`. Natural-key writes
use the dialect's INSERT ... ON CONFLICT DO UPDATE (PostgreSQL and SQLite), and
XP is incremented inside that same statement, so neither needs a prior read.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Table, and_, case, func, literal_column, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vidlingo.db.models import (
    ExerciseCompletion,
    UserProgress,
    UserVocabulary,
    Video,
    VideoExercise,
    VideoProgress,
    VideoSegment,
    VideoWord,
)
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
from vidlingo.progress.xp_ledger import XP_PER_LEVEL, day_start, level_for

# =============================================================================
# Row -> record converters (work on ORM objects and RETURNING rows alike)
# =============================================================================


def _user_progress(row: Any) -> UserProgressRecord:
    return UserProgressRecord(
        user_id=row.user_id,
        total_xp=row.total_xp,
        level=row.level,
        current_streak=row.current_streak,
        last_activity=row.last_activity,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _vocabulary(row: Any, word: WordRecord | None = None) -> VocabularyEntry:
    return VocabularyEntry(
        id=row.id,
        user_id=row.user_id,
        word_id=row.word_id,
        video_id=row.video_id,
        mastery_level=row.mastery_level,
        next_review=row.next_review,
        last_reviewed=row.last_reviewed,
        created_at=row.created_at,
        updated_at=row.updated_at,
        word=word,
    )


def _completion(row: Any) -> ExerciseCompletionRecord:
    return ExerciseCompletionRecord(
        id=row.id,
        user_id=row.user_id,
        exercise_id=row.exercise_id,
        video_id=row.video_id,
        score=row.score,
        is_correct=row.is_correct,
        time_taken=row.time_taken,
        kind=row.kind,
        completed_at=row.completed_at,
    )


def _video_progress(row: Any) -> VideoProgressRecord:
    return VideoProgressRecord(
        user_id=row.user_id,
        video_id=row.video_id,
        watched_seconds=row.watched_seconds,
        last_segment_watched=row.last_segment_watched,
        is_completed=row.is_completed,
        completed_exercises=row.completed_exercises,
        mastered_words=row.mastered_words,
        last_watched=row.last_watched,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _segment(row: VideoSegment) -> SegmentRecord:
    return SegmentRecord(
        id=row.id,
        video_id=row.video_id,
        start_time=row.start_time,
        end_time=row.end_time,
        transcript_de=row.transcript_de,
        transcript_fr=row.transcript_fr,
    )


def _word(row: VideoWord) -> WordRecord:
    return WordRecord(
        id=row.id,
        video_id=row.video_id,
        segment_id=row.segment_id,
        word_de=row.word_de,
        word_fr=row.word_fr,
        context_de=row.context_de,
        context_fr=row.context_fr,
        difficulty_level=row.difficulty_level,
    )


def _exercise(row: VideoExercise) -> ExerciseRecord:
    return ExerciseRecord(
        id=row.id,
        video_id=row.video_id,
        segment_id=row.segment_id,
        type=row.type,
        question_de=row.question_de,
        question_fr=row.question_fr,
        correct_answer=row.correct_answer,
        options=row.options,
        difficulty_level=row.difficulty_level,
        points=row.points,
    )


# =============================================================================
# Store
# =============================================================================


class SqlProgressStore:
    """ProgressStore backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlProgressUnitOfWork]:
        async with self._session_factory() as session:
            async with session.begin():
                yield SqlProgressUnitOfWork(session)


class SqlProgressUnitOfWork:
    """ProgressUnitOfWork over one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._dialect = session.get_bind().dialect.name

    def _insert(self, table: Table):
        if self._dialect == "postgresql":
            return pg_insert(table)
        if self._dialect == "sqlite":
            return sqlite_insert(table)
        raise NotImplementedError(f"Upsert not supported for dialect '{self._dialect}'")

    # ---- user progress ----

    async def get_user_progress(self, user_id: str) -> UserProgressRecord | None:
        result = await self.session.execute(select(UserProgress).where(UserProgress.user_id == user_id))
        row = result.scalar_one_or_none()
        return _user_progress(row) if row else None

    async def add_xp(self, user_id: str, xp_delta: int, now: datetime) -> UserProgressRecord:
        t = UserProgress.__table__
        today = day_start(now)
        new_total = t.c.total_xp + xp_delta

        stmt = self._insert(t).values(
            user_id=user_id,
            total_xp=xp_delta,
            level=level_for(xp_delta),
            current_streak=1,
            last_activity=now,
            created_at=now,
            updated_at=now,
        )
        # SET expressions read the pre-update row, so the streak sees the old last_activity
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.user_id],
            set_={
                "total_xp": new_total,
                "level": new_total // XP_PER_LEVEL + 1,
                "current_streak": case(
                    (and_(t.c.last_activity >= today, t.c.current_streak > 0), t.c.current_streak),
                    (t.c.last_activity >= today - timedelta(days=1), t.c.current_streak + 1),
                    else_=1,
                ),
                "last_activity": now,
                "updated_at": now,
            },
        ).returning(*t.c)

        result = await self.session.execute(stmt)
        return _user_progress(result.one())

    # ---- vocabulary ----

    async def get_vocabulary(self, user_id: str, word_id: int, video_id: int) -> VocabularyEntry | None:
        result = await self.session.execute(
            select(UserVocabulary).where(
                UserVocabulary.user_id == user_id,
                UserVocabulary.word_id == word_id,
                UserVocabulary.video_id == video_id,
            )
        )
        row = result.scalar_one_or_none()
        return _vocabulary(row) if row else None

    async def upsert_vocabulary(
        self,
        user_id: str,
        word_id: int,
        video_id: int,
        mastery_level: int,
        next_review: datetime | None,
        now: datetime,
    ) -> VocabularyEntry:
        t = UserVocabulary.__table__
        stmt = self._insert(t).values(
            user_id=user_id,
            word_id=word_id,
            video_id=video_id,
            mastery_level=int(mastery_level),
            next_review=next_review,
            last_reviewed=now,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.user_id, t.c.word_id, t.c.video_id],
            set_={
                "mastery_level": stmt.excluded.mastery_level,
                "next_review": stmt.excluded.next_review,
                "last_reviewed": now,
                "updated_at": now,
            },
        ).returning(*t.c)

        result = await self.session.execute(stmt)
        return _vocabulary(result.one())

    async def bump_vocabulary(
        self,
        user_id: str,
        word_id: int,
        video_id: int,
        review_dates: dict[int, datetime],
        now: datetime,
    ) -> tuple[VocabularyEntry, bool]:
        t = UserVocabulary.__table__
        # Read only to report created vs bumped; the written level never depends on it
        existed = None
        if self._dialect != "postgresql":
            existed = await self.get_vocabulary(user_id, word_id, video_id) is not None

        bumped = case(
            (t.c.mastery_level < MasteryLevel.MAX, t.c.mastery_level + 1),
            else_=MasteryLevel.MAX,
        )
        stmt = self._insert(t).values(
            user_id=user_id,
            word_id=word_id,
            video_id=video_id,
            mastery_level=1,
            next_review=review_dates[1],
            last_reviewed=now,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.user_id, t.c.word_id, t.c.video_id],
            set_={
                "mastery_level": bumped,
                "next_review": case(
                    *[(bumped == level, due) for level, due in sorted(review_dates.items())],
                    else_=review_dates[1],
                ),
                "last_reviewed": now,
                "updated_at": now,
            },
        )
        if self._dialect == "postgresql":
            stmt = stmt.returning(*t.c, literal_column("(xmax = 0)").label("inserted"))
        else:
            stmt = stmt.returning(*t.c)

        row = (await self.session.execute(stmt)).one()
        created = row.inserted if existed is None else not existed
        return _vocabulary(row), bool(created)

    async def list_vocabulary_for_word(self, user_id: str, word_id: int) -> list[VocabularyEntry]:
        result = await self.session.execute(
            select(UserVocabulary)
            .where(UserVocabulary.user_id == user_id, UserVocabulary.word_id == word_id)
            .order_by(UserVocabulary.video_id)
        )
        return [_vocabulary(row) for row in result.scalars()]

    async def list_vocabulary_for_video(self, user_id: str, video_id: int) -> list[VocabularyEntry]:
        result = await self.session.execute(
            select(UserVocabulary)
            .where(UserVocabulary.user_id == user_id, UserVocabulary.video_id == video_id)
            .order_by(UserVocabulary.id)
        )
        return [_vocabulary(row) for row in result.scalars()]

    async def list_due_vocabulary(self, user_id: str, now: datetime) -> list[VocabularyEntry]:
        stmt = (
            select(UserVocabulary, VideoWord)
            .outerjoin(VideoWord, VideoWord.id == UserVocabulary.word_id)
            .where(
                UserVocabulary.user_id == user_id,
                or_(UserVocabulary.next_review <= now, UserVocabulary.next_review.is_(None)),
            )
            .order_by(UserVocabulary.next_review.asc().nulls_first(), UserVocabulary.id)
        )
        result = await self.session.execute(stmt)
        return [_vocabulary(entry, _word(word) if word else None) for entry, word in result.all()]

    async def count_mastered_vocabulary(self, user_id: str, video_id: int, threshold: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(UserVocabulary)
            .where(
                UserVocabulary.user_id == user_id,
                UserVocabulary.video_id == video_id,
                UserVocabulary.mastery_level >= threshold,
            )
        )
        return result.scalar_one()

    # ---- exercise completions ----

    async def insert_completion(self, completion: ExerciseCompletionRecord) -> ExerciseCompletionRecord:
        row = ExerciseCompletion(
            user_id=completion.user_id,
            exercise_id=completion.exercise_id,
            video_id=completion.video_id,
            score=completion.score,
            is_correct=completion.is_correct,
            time_taken=completion.time_taken,
            kind=completion.kind,
            completed_at=completion.completed_at,
        )
        self.session.add(row)
        await self.session.flush()
        return _completion(row)

    async def list_completions(self, user_id: str, video_id: int) -> list[ExerciseCompletionRecord]:
        result = await self.session.execute(
            select(ExerciseCompletion)
            .where(ExerciseCompletion.user_id == user_id, ExerciseCompletion.video_id == video_id)
            .order_by(ExerciseCompletion.completed_at.desc(), ExerciseCompletion.id.desc())
        )
        return [_completion(row) for row in result.scalars()]

    async def count_completions(self, user_id: str, video_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(ExerciseCompletion)
            .where(ExerciseCompletion.user_id == user_id, ExerciseCompletion.video_id == video_id)
        )
        return result.scalar_one()

    async def latest_completion_at(self, user_id: str, video_id: int) -> datetime | None:
        result = await self.session.execute(
            select(func.max(ExerciseCompletion.completed_at)).where(
                ExerciseCompletion.user_id == user_id, ExerciseCompletion.video_id == video_id
            )
        )
        return result.scalar_one_or_none()

    # ---- video progress ----

    async def get_video_progress(self, user_id: str, video_id: int) -> VideoProgressRecord | None:
        result = await self.session.execute(
            select(VideoProgress).where(VideoProgress.user_id == user_id, VideoProgress.video_id == video_id)
        )
        row = result.scalar_one_or_none()
        return _video_progress(row) if row else None

    async def upsert_video_watch(
        self,
        user_id: str,
        video_id: int,
        watched_seconds: int,
        last_segment_id: int | None,
        now: datetime,
    ) -> VideoProgressRecord:
        t = VideoProgress.__table__
        stmt = self._insert(t).values(
            user_id=user_id,
            video_id=video_id,
            watched_seconds=watched_seconds,
            last_segment_watched=last_segment_id,
            is_completed=False,
            completed_exercises=0,
            mastered_words=0,
            last_watched=now,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.user_id, t.c.video_id],
            set_={
                "watched_seconds": stmt.excluded.watched_seconds,
                "last_segment_watched": stmt.excluded.last_segment_watched,
                "last_watched": now,
                "updated_at": now,
            },
        ).returning(*t.c)

        result = await self.session.execute(stmt)
        return _video_progress(result.one())

    async def upsert_video_completed(self, user_id: str, video_id: int, now: datetime) -> VideoProgressRecord:
        t = VideoProgress.__table__
        stmt = self._insert(t).values(
            user_id=user_id,
            video_id=video_id,
            watched_seconds=0,
            is_completed=True,
            completed_exercises=0,
            mastered_words=0,
            last_watched=now,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[t.c.user_id, t.c.video_id],
            set_={"is_completed": True, "last_watched": now, "updated_at": now},
        ).returning(*t.c)

        result = await self.session.execute(stmt)
        return _video_progress(result.one())

    async def update_video_rollup(
        self,
        user_id: str,
        video_id: int,
        completed_exercises: int,
        mastered_words: int,
        now: datetime,
    ) -> VideoProgressRecord | None:
        t = VideoProgress.__table__
        stmt = (
            update(t)
            .where(t.c.user_id == user_id, t.c.video_id == video_id)
            .values(completed_exercises=completed_exercises, mastered_words=mastered_words, updated_at=now)
            .returning(*t.c)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        return _video_progress(row) if row else None

    # ---- catalog ----

    async def video_exists(self, video_id: int) -> bool:
        result = await self.session.execute(select(Video.id).where(Video.id == video_id))
        return result.scalar_one_or_none() is not None

    async def get_exercise(self, exercise_id: int) -> ExerciseRecord | None:
        row = await self.session.get(VideoExercise, exercise_id)
        return _exercise(row) if row else None

    async def get_word(self, word_id: int) -> WordRecord | None:
        row = await self.session.get(VideoWord, word_id)
        return _word(row) if row else None

    async def get_segment(self, segment_id: int) -> SegmentRecord | None:
        row = await self.session.get(VideoSegment, segment_id)
        return _segment(row) if row else None

    async def list_segments(self, video_id: int) -> list[SegmentRecord]:
        result = await self.session.execute(
            select(VideoSegment)
            .where(VideoSegment.video_id == video_id)
            .order_by(VideoSegment.start_time, VideoSegment.id)
        )
        return [_segment(row) for row in result.scalars()]

    async def count_segments(self, video_id: int) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(VideoSegment).where(VideoSegment.video_id == video_id)
        )
        return result.scalar_one()

    async def list_segment_exercises(self, segment_id: int) -> list[ExerciseRecord]:
        result = await self.session.execute(
            select(VideoExercise).where(VideoExercise.segment_id == segment_id).order_by(VideoExercise.id)
        )
        return [_exercise(row) for row in result.scalars()]

    async def list_segment_words(self, segment_id: int) -> list[WordRecord]:
        result = await self.session.execute(
            select(VideoWord).where(VideoWord.segment_id == segment_id).order_by(VideoWord.id)
        )
        return [_word(row) for row in result.scalars()]
