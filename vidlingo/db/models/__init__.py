# SQLAlchemy models
from .base import Base
from .catalog import Video, VideoExercise, VideoSegment, VideoWord
from .progress import ExerciseCompletion, UserProgress, UserVocabulary, VideoProgress

__all__ = [
    # Base
    "Base",
    # Catalog
    "Video",
    "VideoSegment",
    "VideoWord",
    "VideoExercise",
    # Progress
    "UserProgress",
    "UserVocabulary",
    "ExerciseCompletion",
    "VideoProgress",
]
