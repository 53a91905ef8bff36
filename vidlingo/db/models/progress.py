"""
Learning progress models.

Write path is owned by vidlingo.progress.engine:
- UserProgress: XP, level and streak per user
- UserVocabulary: spaced-repetition mastery per (user, word, video)
- ExerciseCompletion: append-only attempt log
- VideoProgress: watch state and cached per-video rollup
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserProgress(Base):
    """Global progress for one user. level == total_xp // 1000 + 1."""

    __tablename__ = "user_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (CheckConstraint("total_xp >= 0", name="ck_user_progress_xp"),)

    def __repr__(self) -> str:
        return f"<UserProgress user={self.user_id} xp={self.total_xp} level={self.level}>"


class UserVocabulary(Base):
    """Mastery of one word as it occurs in one video."""

    __tablename__ = "user_vocabulary"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    word_id: Mapped[int] = mapped_column(
        ForeignKey("video_words.id", ondelete="CASCADE"), nullable=False
    )
    video_id: Mapped[int] = mapped_column(
        ForeignKey("videos.id", ondelete="CASCADE"), nullable=False
    )
    mastery_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review: Mapped[datetime | None] = mapped_column()
    last_reviewed: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "word_id", "video_id", name="uq_user_word_video"),
        CheckConstraint("mastery_level BETWEEN 0 AND 5", name="ck_user_vocabulary_mastery"),
        Index("idx_user_vocabulary_review", "user_id", "next_review"),
        Index("idx_user_vocabulary_video", "user_id", "video_id"),
    )

    def __repr__(self) -> str:
        return f"<UserVocabulary user={self.user_id} word={self.word_id} mastery={self.mastery_level}>"


class ExerciseCompletion(Base):
    """One attempt at an exercise. Rows are never updated."""

    __tablename__ = "exercise_completions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    exercise_id: Mapped[int] = mapped_column(
        ForeignKey("video_exercises.id", ondelete="CASCADE"), nullable=False
    )
    video_id: Mapped[int | None] = mapped_column(ForeignKey("videos.id", ondelete="CASCADE"))
    score: Mapped[float] = mapped_column(Float, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_taken: Mapped[int | None] = mapped_column(Integer)  # seconds
    kind: Mapped[str] = mapped_column(Text, nullable=False, default="attempt")  # 'attempt', 'presence'
    completed_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (Index("idx_exercise_completions_user_video", "user_id", "video_id"),)


class VideoProgress(Base):
    """Watch state per (user, video) plus a cached rollup of completions and mastered words."""

    __tablename__ = "video_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    video_id: Mapped[int] = mapped_column(
        ForeignKey("videos.id", ondelete="CASCADE"), nullable=False
    )
    watched_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_segment_watched: Mapped[int | None] = mapped_column(
        ForeignKey("video_segments.id", ondelete="SET NULL")
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_exercises: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mastered_words: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_watched: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "video_id", name="uq_user_video"),)

    def __repr__(self) -> str:
        return f"<VideoProgress user={self.user_id} video={self.video_id} completed={self.is_completed}>"
