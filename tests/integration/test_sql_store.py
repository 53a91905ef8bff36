"""
Integration tests for SqlProgressStore.

Runs the engine against an in-process SQLite database (aiosqlite) created from
the SQLAlchemy models, so the ON CONFLICT upserts, the streak CASE expression
and transaction rollback are exercised for real.

Usage:
    pytest tests/integration/test_sql_store.py -v
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tests.conftest import (
    OTHER_VIDEO_ID,
    OTHER_VIDEO_SEGMENT_ID,
    SEGMENT_ID,
    VIDEO_ID,
    catalog_exercises,
    catalog_segments,
    catalog_words,
)
from vidlingo.db.database import init_db
from vidlingo.db.models import ExerciseCompletion, UserProgress, UserVocabulary, Video, VideoExercise, VideoSegment, VideoWord
from vidlingo.progress import NotFoundError, ProgressEngine
from vidlingo.progress.sql_store import SqlProgressStore, SqlProgressUnitOfWork

USER = "alice"


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database with the catalog seeded."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async with factory() as session, session.begin():
        session.add_all(
            [Video(id=VIDEO_ID, title="Im Café"), Video(id=OTHER_VIDEO_ID, title="Am Bahnhof")]
        )
        await session.flush()
        session.add_all(
            [
                VideoSegment(
                    id=s.id,
                    video_id=s.video_id,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    transcript_de=s.transcript_de,
                )
                for s in catalog_segments()
            ]
        )
        await session.flush()
        session.add_all(
            [
                VideoWord(id=w.id, video_id=w.video_id, segment_id=w.segment_id, word_de=w.word_de, word_fr=w.word_fr)
                for w in catalog_words()
            ]
            + [
                VideoExercise(
                    id=e.id,
                    video_id=e.video_id,
                    segment_id=e.segment_id,
                    type=e.type,
                    question_de=e.question_de,
                    correct_answer=e.correct_answer,
                    options=["Tag", "Nacht"],
                )
                for e in catalog_exercises()
            ]
        )

    yield factory
    await engine.dispose()


@pytest.fixture
def sql_engine(session_factory, clock):
    return ProgressEngine(SqlProgressStore(session_factory), clock=clock)


async def count_rows(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestUserProgress:
    @pytest.mark.asyncio
    async def test_xp_upsert_and_level(self, sql_engine, session_factory):
        assert (await sql_engine.get_user_progress(USER)).total_xp == 0

        await sql_engine.update_user_xp(USER, 700)
        progress = await sql_engine.update_user_xp(USER, 700)

        assert progress.total_xp == 1400
        assert progress.level == 2
        assert await count_rows(session_factory, UserProgress) == 1

    @pytest.mark.asyncio
    async def test_streak_in_sql(self, sql_engine, clock):
        assert (await sql_engine.update_user_xp(USER, 10)).current_streak == 1

        clock.advance(hours=2)
        assert (await sql_engine.update_user_xp(USER, 10)).current_streak == 1

        clock.advance(days=1)
        assert (await sql_engine.update_user_xp(USER, 10)).current_streak == 2

        clock.advance(days=4)
        assert (await sql_engine.update_user_xp(USER, 10)).current_streak == 1


class TestVocabulary:
    @pytest.mark.asyncio
    async def test_upsert_is_keyed_on_user_word_video(self, sql_engine, session_factory, start_time):
        await sql_engine.record_vocabulary_mastery(USER, 100, VIDEO_ID, 1)
        entry = await sql_engine.record_vocabulary_mastery(USER, 100, VIDEO_ID, 4)
        await sql_engine.record_vocabulary_mastery(USER, 102, OTHER_VIDEO_ID, 2)

        assert entry.mastery_level == 4
        assert entry.next_review == start_time + timedelta(days=14)
        assert await count_rows(session_factory, UserVocabulary) == 2

    @pytest.mark.asyncio
    async def test_due_queue_joins_word(self, sql_engine, session_factory, start_time):
        await sql_engine.record_vocabulary_mastery(USER, 100, VIDEO_ID, 1)
        await sql_engine.record_vocabulary_mastery(USER, 101, VIDEO_ID, 5)
        async with SqlProgressStore(session_factory).transaction() as uow:
            await uow.upsert_vocabulary(USER, 102, OTHER_VIDEO_ID, 0, None, start_time)

        due = await sql_engine.get_due_vocabulary(USER, start_time + timedelta(days=2))

        assert [e.word_id for e in due] == [102, 100]
        assert due[1].word.word_fr == "jour"

    @pytest.mark.asyncio
    async def test_same_level_twice_is_idempotent(self, sql_engine, session_factory):
        first = await sql_engine.record_vocabulary_mastery(USER, 100, VIDEO_ID, 2)
        second = await sql_engine.record_vocabulary_mastery(USER, 100, VIDEO_ID, 2)

        assert second.next_review == first.next_review
        assert second.mastery_level == 2
        assert await count_rows(session_factory, UserVocabulary) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "word_id,video_id,entity",
        [(100, 404, "video"), (9999, VIDEO_ID, "word"), (102, VIDEO_ID, "word")],
    )
    async def test_mastery_for_missing_catalog_rows(self, sql_engine, session_factory, word_id, video_id, entity):
        with pytest.raises(NotFoundError) as exc:
            await sql_engine.record_vocabulary_mastery(USER, word_id, video_id, 2)

        assert exc.value.entity == entity
        assert await count_rows(session_factory, UserVocabulary) == 0

    @pytest.mark.asyncio
    async def test_across_videos_unknown_word(self, sql_engine):
        with pytest.raises(NotFoundError):
            await sql_engine.update_word_mastery_across_videos(USER, 9999, 3)

    @pytest.mark.asyncio
    async def test_bump_inserts_raises_and_caps(self, session_factory, start_time):
        dates = {level: start_time + timedelta(days=level) for level in range(1, 6)}
        store = SqlProgressStore(session_factory)

        async with store.transaction() as uow:
            entry, is_new = await uow.bump_vocabulary(USER, 100, VIDEO_ID, dates, start_time)
        assert (entry.mastery_level, entry.next_review, is_new) == (1, dates[1], True)

        async with store.transaction() as uow:
            entry, is_new = await uow.bump_vocabulary(USER, 100, VIDEO_ID, dates, start_time)
        assert (entry.mastery_level, entry.next_review, is_new) == (2, dates[2], False)

        for _ in range(5):
            async with store.transaction() as uow:
                entry, _ = await uow.bump_vocabulary(USER, 100, VIDEO_ID, dates, start_time)
        assert (entry.mastery_level, entry.next_review) == (5, dates[5])
        assert await count_rows(session_factory, UserVocabulary) == 1


class TestExercisesAndSegments:
    @pytest.mark.asyncio
    async def test_exercise_completion(self, sql_engine, session_factory):
        await sql_engine.update_video_watch_progress(USER, VIDEO_ID, 20, SEGMENT_ID)
        result = await sql_engine.record_exercise_completion(USER, 1000, score=90, is_correct=True, time_taken=12.7)

        assert result.xp_awarded == 50
        assert result.completion.id is not None
        assert result.completion.time_taken == 12

        status = await sql_engine.get_video_learning_status(USER, VIDEO_ID)
        stats = await sql_engine.get_video_stats_summary(USER, VIDEO_ID)
        assert status.completed_exercises == 1
        assert stats.watching_progress.watched_seconds == 20

    @pytest.mark.asyncio
    async def test_unknown_exercise(self, sql_engine, session_factory):
        with pytest.raises(NotFoundError):
            await sql_engine.record_exercise_completion(USER, 9999, score=1, is_correct=False)
        assert await count_rows(session_factory, ExerciseCompletion) == 0

    @pytest.mark.asyncio
    async def test_complete_segment_twice(self, sql_engine, session_factory):
        await sql_engine.update_video_watch_progress(USER, VIDEO_ID, 30)
        await sql_engine.complete_segment(USER, VIDEO_ID, SEGMENT_ID)
        result = await sql_engine.complete_segment(USER, VIDEO_ID, SEGMENT_ID)

        assert result.words_bumped == 2
        assert result.progress.total_xp == 100
        assert await count_rows(session_factory, ExerciseCompletion) == 6

        history = await sql_engine.get_video_exercise_history(USER, VIDEO_ID)
        assert all(c.is_presence for c in history)

        status = await sql_engine.get_video_learning_status(USER, VIDEO_ID)
        assert status.progress == 300

    @pytest.mark.asyncio
    async def test_complete_segment_rolls_back(self, sql_engine, session_factory, monkeypatch):
        async def broken_word_lookup(self, segment_id):
            raise RuntimeError("word lookup failed")

        monkeypatch.setattr(SqlProgressUnitOfWork, "list_segment_words", broken_word_lookup)

        with pytest.raises(RuntimeError):
            await sql_engine.complete_segment(USER, VIDEO_ID, SEGMENT_ID)

        assert await count_rows(session_factory, ExerciseCompletion) == 0
        assert await count_rows(session_factory, UserProgress) == 0

    @pytest.mark.asyncio
    async def test_segment_of_other_video(self, sql_engine):
        with pytest.raises(NotFoundError):
            await sql_engine.complete_segment(USER, VIDEO_ID, OTHER_VIDEO_SEGMENT_ID)

    @pytest.mark.asyncio
    async def test_video_completion_is_sticky(self, sql_engine):
        await sql_engine.mark_video_completed(USER, VIDEO_ID)
        progress = await sql_engine.update_video_watch_progress(USER, VIDEO_ID, 3)

        assert progress.is_completed is True
        assert progress.watched_seconds == 3

    @pytest.mark.asyncio
    async def test_segment_details(self, sql_engine):
        details = await sql_engine.get_segment_details(SEGMENT_ID)

        assert [w.word_de for w in details.words] == ["Tag", "gut"]
        assert details.exercises[0].options == ["Tag", "Nacht"]
        assert [s.id for s in await sql_engine.get_video_segments(VIDEO_ID)] == [SEGMENT_ID, 11]
