"""
Video catalog models.

Rows here are written by the transcription pipeline. The progress engine only
reads them: exercise -> video mapping, segment -> exercises/words, video -> segments.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Video(Base):
    """An uploaded video with a finished transcript."""

    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, default="ready")  # 'processing', 'ready', 'failed'
    duration_seconds: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    segments: Mapped[list[VideoSegment]] = relationship(
        back_populates="video", order_by="VideoSegment.start_time"
    )

    def __repr__(self) -> str:
        return f"<Video {self.id}: {self.title[:40]}>"


class VideoSegment(Base):
    """A time-bounded slice of a video transcript."""

    __tablename__ = "video_segments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    video_id: Mapped[int] = mapped_column(
        ForeignKey("videos.id", ondelete="CASCADE"), nullable=False
    )
    start_time: Mapped[int] = mapped_column(Integer, nullable=False)
    end_time: Mapped[int] = mapped_column(Integer, nullable=False)
    transcript_de: Mapped[str] = mapped_column(Text, nullable=False)
    transcript_fr: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    video: Mapped[Video] = relationship(back_populates="segments")

    __table_args__ = (Index("idx_video_segments_video", "video_id", "start_time"),)


class VideoWord(Base):
    """A vocabulary word extracted from a video segment."""

    __tablename__ = "video_words"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    video_id: Mapped[int] = mapped_column(
        ForeignKey("videos.id", ondelete="CASCADE"), nullable=False
    )
    segment_id: Mapped[int | None] = mapped_column(
        ForeignKey("video_segments.id", ondelete="SET NULL"), index=True
    )
    word_de: Mapped[str] = mapped_column(Text, nullable=False)
    word_fr: Mapped[str] = mapped_column(Text, nullable=False)
    context_de: Mapped[str | None] = mapped_column(Text)
    context_fr: Mapped[str | None] = mapped_column(Text)
    difficulty_level: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<VideoWord {self.word_de} -> {self.word_fr}>"


class VideoExercise(Base):
    """An exercise generated for a video segment."""

    __tablename__ = "video_exercises"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    video_id: Mapped[int] = mapped_column(
        ForeignKey("videos.id", ondelete="CASCADE"), nullable=False
    )
    segment_id: Mapped[int | None] = mapped_column(
        ForeignKey("video_segments.id", ondelete="SET NULL"), index=True
    )
    type: Mapped[str] = mapped_column(Text, nullable=False)  # 'mcq', 'fill_blank', 'translation'
    question_de: Mapped[str] = mapped_column(Text, nullable=False)
    question_fr: Mapped[str | None] = mapped_column(Text)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[Any | None] = mapped_column(JSON)
    difficulty_level: Mapped[int] = mapped_column(Integer, default=1)
    points: Mapped[int] = mapped_column(Integer, default=10)
    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())
