"""
Learning Progress Router.

Endpoints for learner progress:
- XP, level and streak
- Exercise completions and history
- Vocabulary mastery and the review queue
- Video watch progress, segment completion and per-video statistics

Identity comes from the path; authentication is handled upstream.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field

from vidlingo.api.dependencies import get_progress_engine
from vidlingo.progress.engine import ProgressEngine

router = APIRouter()


# ========================================
# Request Models
# ========================================


class ExerciseCompletionRequest(BaseModel):
    """Request model for recording an exercise attempt."""

    exercise_id: int = Field(..., description="Exercise ID")
    score: float = Field(..., ge=0, description="Score (0-100)")
    is_correct: bool = Field(..., description="Whether the answer was correct")
    time_taken: float | None = Field(None, ge=0, description="Seconds spent on the exercise")


class VocabularyMasteryRequest(BaseModel):
    """Request model for updating a word's mastery."""

    word_id: int = Field(..., description="Word ID")
    mastery_level: int = Field(..., description="Mastery level (0-5)")
    video_id: int | None = Field(
        None, description="Video the word was reviewed in; omit to update every video it appears in"
    )


class VideoProgressRequest(BaseModel):
    """Request model for watch progress."""

    video_id: int = Field(..., description="Video ID")
    watched_seconds: int = Field(0, ge=0, description="Seconds watched so far")
    last_segment_id: int | None = Field(None, description="Last segment the user watched")
    is_completed: bool = Field(False, description="Mark the video as completed")


# ========================================
# Response Models
# ========================================


class UserProgressResponse(BaseModel):
    user_id: str
    total_xp: int
    level: int
    current_streak: int
    last_activity: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WordResponse(BaseModel):
    id: int
    video_id: int
    segment_id: int | None
    word_de: str
    word_fr: str
    context_de: str | None = None
    context_fr: str | None = None
    difficulty_level: int


class VocabularyEntryResponse(BaseModel):
    user_id: str
    word_id: int
    video_id: int
    mastery_level: int
    next_review: datetime | None
    last_reviewed: datetime | None
    word: WordResponse | None = None


class ExerciseCompletionResponse(BaseModel):
    id: int | None
    exercise_id: int
    video_id: int | None
    score: float
    is_correct: bool
    time_taken: int | None
    kind: str
    completed_at: datetime


class ExerciseCompletionResultResponse(BaseModel):
    completion: ExerciseCompletionResponse
    xp_awarded: int
    progress: UserProgressResponse


class VideoProgressResponse(BaseModel):
    user_id: str
    video_id: int
    watched_seconds: int
    last_segment_watched: int | None
    is_completed: bool
    completed_exercises: int
    mastered_words: int
    last_watched: datetime | None


class SegmentCompletionResponse(BaseModel):
    segment_id: int
    completions_recorded: int
    words_created: int
    words_bumped: int
    xp_awarded: int
    progress: UserProgressResponse


class VideoLearningStatusResponse(BaseModel):
    completed_exercises: int
    mastered_words: int
    total_segments: int
    progress: int
    last_activity: datetime | None


class WatchingProgressResponse(BaseModel):
    watched_seconds: int
    is_completed: bool
    last_watched: datetime | None = None


class ExerciseProgressResponse(BaseModel):
    total_exercises: int
    correct_exercises: int
    average_score: float
    accuracy: float
    presence_completions: int


class VocabularyBreakdownResponse(BaseModel):
    total_words: int
    mastered_words: int
    in_progress_words: int
    new_words: int


class VideoStatsResponse(BaseModel):
    watching_progress: WatchingProgressResponse
    exercise_progress: ExerciseProgressResponse
    vocabulary_progress: VocabularyBreakdownResponse


class SegmentResponse(BaseModel):
    id: int
    video_id: int
    start_time: int
    end_time: int
    transcript_de: str
    transcript_fr: str | None


class ExerciseResponse(BaseModel):
    id: int
    video_id: int
    segment_id: int | None
    type: str
    question_de: str
    question_fr: str | None
    options: Any = None
    difficulty_level: int
    points: int


class SegmentDetailsResponse(BaseModel):
    segment: SegmentResponse
    words: list[WordResponse]
    exercises: list[ExerciseResponse]


# ========================================
# XP & Level
# ========================================


@router.get("/users/{user_id}/progress", response_model=UserProgressResponse, summary="Get user progress")
async def get_user_progress(
    user_id: str,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    """Get XP, level and streak. Users without XP get a zero-state record."""
    return await engine.get_user_progress(user_id)


# ========================================
# Exercises
# ========================================


@router.post(
    "/users/{user_id}/exercise-completion",
    response_model=ExerciseCompletionResultResponse,
    summary="Save exercise completion",
)
async def save_exercise_completion(
    user_id: str,
    request: ExerciseCompletionRequest,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    """Record an exercise attempt, refresh the video rollup and award XP."""
    logger.info(f"Exercise completion for {user_id}: exercise={request.exercise_id}")
    return await engine.record_exercise_completion(
        user_id,
        request.exercise_id,
        request.score,
        request.is_correct,
        request.time_taken,
    )


@router.get(
    "/users/{user_id}/videos/{video_id}/exercises",
    response_model=list[ExerciseCompletionResponse],
    summary="Get exercise history for a video",
)
async def get_video_exercise_history(
    user_id: str,
    video_id: int,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    return await engine.get_video_exercise_history(user_id, video_id)


# ========================================
# Vocabulary
# ========================================


@router.post(
    "/users/{user_id}/vocabulary-mastery",
    response_model=list[VocabularyEntryResponse],
    summary="Update vocabulary mastery",
)
async def update_vocabulary_mastery(
    user_id: str,
    request: VocabularyMasteryRequest,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    """
    Update the mastery level of a word.

    With video_id: updates (or creates) the entry for that video.
    Without: updates every existing entry for the word.
    """
    if request.video_id is not None:
        entry = await engine.record_vocabulary_mastery(
            user_id, request.word_id, request.video_id, request.mastery_level
        )
        return [entry]
    return await engine.update_word_mastery_across_videos(user_id, request.word_id, request.mastery_level)


@router.get(
    "/users/{user_id}/vocabulary-review",
    response_model=list[VocabularyEntryResponse],
    summary="Get words for review",
)
async def get_vocabulary_review(
    user_id: str,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    """Words whose review date has passed or was never set, never-reviewed first."""
    return await engine.get_due_vocabulary(user_id)


# ========================================
# Videos & Segments
# ========================================


@router.post(
    "/users/{user_id}/video-progress",
    response_model=VideoProgressResponse,
    summary="Update video progress",
)
async def update_video_progress(
    user_id: str,
    request: VideoProgressRequest,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    if request.is_completed:
        return await engine.mark_video_completed(user_id, request.video_id)
    return await engine.update_video_watch_progress(
        user_id, request.video_id, request.watched_seconds, request.last_segment_id
    )


@router.post(
    "/users/{user_id}/videos/{video_id}/segments/{segment_id}/complete",
    response_model=SegmentCompletionResponse,
    summary="Complete a video segment",
)
async def complete_segment(
    user_id: str,
    video_id: int,
    segment_id: int,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    return await engine.complete_segment(user_id, video_id, segment_id)


@router.get(
    "/users/{user_id}/videos/{video_id}/status",
    response_model=VideoLearningStatusResponse,
    summary="Get video learning status",
)
async def get_video_learning_status(
    user_id: str,
    video_id: int,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    return await engine.get_video_learning_status(user_id, video_id)


@router.get(
    "/users/{user_id}/videos/{video_id}/stats",
    response_model=VideoStatsResponse,
    summary="Get video statistics",
)
async def get_video_stats(
    user_id: str,
    video_id: int,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    return await engine.get_video_stats_summary(user_id, video_id)


@router.get(
    "/videos/{video_id}/segments",
    response_model=list[SegmentResponse],
    summary="List video segments",
)
async def get_video_segments(
    video_id: int,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    return await engine.get_video_segments(video_id)


@router.get(
    "/segments/{segment_id}",
    response_model=SegmentDetailsResponse,
    summary="Get segment details",
)
async def get_segment_details(
    segment_id: int,
    engine: ProgressEngine = Depends(get_progress_engine),
) -> Any:
    return await engine.get_segment_details(segment_id)
