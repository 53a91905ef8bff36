"""
Plain records exchanged between the engine and its stores.

No ORM object crosses the store boundary: adapters convert rows into these
dataclasses, and the engine returns them to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

COMPLETION_ATTEMPT = "attempt"
COMPLETION_PRESENCE = "presence"


# =============================================================================
# Progress Entities
# =============================================================================


@dataclass
class UserProgressRecord:
    """XP, level and streak for one user."""

    user_id: str
    total_xp: int = 0
    level: int = 1
    current_streak: int = 0
    last_activity: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def zero(cls, user_id: str) -> UserProgressRecord:
        """Zero-state for a user who has never earned XP."""
        return cls(user_id=user_id)


@dataclass
class VocabularyEntry:
    """Mastery of one word within one video."""

    user_id: str
    word_id: int
    video_id: int
    mastery_level: int
    next_review: datetime | None
    last_reviewed: datetime | None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    word: WordRecord | None = None  # Attached by review-queue reads

    @property
    def natural_key(self) -> tuple[str, int, int]:
        return (self.user_id, self.word_id, self.video_id)


@dataclass
class ExerciseCompletionRecord:
    """One logged attempt (or presence mark) at an exercise."""

    user_id: str
    exercise_id: int
    video_id: int | None
    score: float
    is_correct: bool
    completed_at: datetime
    time_taken: int | None = None
    kind: str = COMPLETION_ATTEMPT
    id: int | None = None

    @property
    def is_presence(self) -> bool:
        return self.kind == COMPLETION_PRESENCE


@dataclass
class VideoProgressRecord:
    """Watch state and cached rollup for one (user, video) pair."""

    user_id: str
    video_id: int
    watched_seconds: int = 0
    last_segment_watched: int | None = None
    is_completed: bool = False
    completed_exercises: int = 0
    mastered_words: int = 0
    last_watched: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def state(self) -> str:
        """not_started -> watching -> completed. Completion is never undone."""
        if self.is_completed:
            return "completed"
        if self.watched_seconds > 0:
            return "watching"
        return "not_started"


# =============================================================================
# Catalog Entities (read-only)
# =============================================================================


@dataclass
class SegmentRecord:
    id: int
    video_id: int
    start_time: int
    end_time: int
    transcript_de: str
    transcript_fr: str | None = None


@dataclass
class WordRecord:
    id: int
    video_id: int
    segment_id: int | None
    word_de: str
    word_fr: str
    context_de: str | None = None
    context_fr: str | None = None
    difficulty_level: int = 1


@dataclass
class ExerciseRecord:
    id: int
    video_id: int
    segment_id: int | None
    type: str
    question_de: str
    correct_answer: str
    question_fr: str | None = None
    options: Any = None
    difficulty_level: int = 1
    points: int = 10


@dataclass
class SegmentDetails:
    """A segment together with the words and exercises attached to it."""

    segment: SegmentRecord
    words: list[WordRecord] = field(default_factory=list)
    exercises: list[ExerciseRecord] = field(default_factory=list)


# =============================================================================
# Operation Results & Summaries
# =============================================================================


@dataclass
class ExerciseCompletionResult:
    """Outcome of recording a scored exercise attempt."""

    completion: ExerciseCompletionRecord
    xp_awarded: int
    progress: UserProgressRecord


@dataclass
class SegmentCompletionResult:
    """Outcome of completing a whole segment."""

    segment_id: int
    completions_recorded: int
    words_created: int
    words_bumped: int
    xp_awarded: int
    progress: UserProgressRecord
    vocabulary: list[VocabularyEntry] = field(default_factory=list)


@dataclass
class VideoLearningStatus:
    """Fresh per-video counts, computed from source rows rather than the rollup."""

    completed_exercises: int
    mastered_words: int
    total_segments: int
    progress: int  # 0-100+, completions per segment
    last_activity: datetime | None


@dataclass
class WatchingProgress:
    watched_seconds: int = 0
    is_completed: bool = False
    last_watched: datetime | None = None


@dataclass
class ExerciseProgress:
    total_exercises: int = 0
    correct_exercises: int = 0
    average_score: float = 0.0
    accuracy: float = 0.0
    presence_completions: int = 0


@dataclass
class VocabularyBreakdown:
    total_words: int = 0
    mastered_words: int = 0
    in_progress_words: int = 0
    new_words: int = 0


@dataclass
class VideoStatsSummary:
    """Composite view of watching, exercise and vocabulary progress for a video."""

    watching_progress: WatchingProgress
    exercise_progress: ExerciseProgress
    vocabulary_progress: VocabularyBreakdown
