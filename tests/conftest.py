"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from vidlingo.progress import FixedClock, InMemoryProgressStore, ProgressEngine  # noqa: E402
from vidlingo.progress.models import ExerciseRecord, SegmentRecord, WordRecord  # noqa: E402

VIDEO_ID = 1
OTHER_VIDEO_ID = 2
SEGMENT_ID = 10
SECOND_SEGMENT_ID = 11
OTHER_VIDEO_SEGMENT_ID = 20


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-process SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)
        elif "api" in str(item.fspath):
            item.add_marker(pytest.mark.api)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def start_time():
    """A mid-day timestamp so same-day and next-day streak cases are easy to build."""
    return datetime(2024, 3, 4, 12, 0, 0)


@pytest.fixture
def clock(start_time):
    return FixedClock(start_time)


def catalog_segments():
    return [
        SegmentRecord(id=SEGMENT_ID, video_id=VIDEO_ID, start_time=0, end_time=30, transcript_de="Guten Tag."),
        SegmentRecord(
            id=SECOND_SEGMENT_ID, video_id=VIDEO_ID, start_time=30, end_time=60, transcript_de="Wie geht's?"
        ),
        SegmentRecord(
            id=OTHER_VIDEO_SEGMENT_ID, video_id=OTHER_VIDEO_ID, start_time=0, end_time=20, transcript_de="Hallo!"
        ),
    ]


def catalog_words():
    return [
        WordRecord(id=100, video_id=VIDEO_ID, segment_id=SEGMENT_ID, word_de="Tag", word_fr="jour"),
        WordRecord(id=101, video_id=VIDEO_ID, segment_id=SEGMENT_ID, word_de="gut", word_fr="bon"),
        WordRecord(id=102, video_id=OTHER_VIDEO_ID, segment_id=OTHER_VIDEO_SEGMENT_ID, word_de="Tag", word_fr="jour"),
    ]


def catalog_exercises():
    return [
        ExerciseRecord(
            id=exercise_id,
            video_id=VIDEO_ID,
            segment_id=SEGMENT_ID,
            type="multiple_choice",
            question_de=f"Frage {exercise_id}",
            correct_answer="Tag",
        )
        for exercise_id in (1000, 1001, 1002)
    ] + [
        ExerciseRecord(
            id=2000,
            video_id=OTHER_VIDEO_ID,
            segment_id=OTHER_VIDEO_SEGMENT_ID,
            type="fill_blank",
            question_de="Hallo ___",
            correct_answer="Welt",
        )
    ]


@pytest.fixture
def store():
    """
    In-memory store seeded with two videos.

    Video 1 has two segments; the first carries two words and three exercises,
    the second carries nothing. Video 2 has one segment with one word and one
    exercise.
    """
    store = InMemoryProgressStore()
    store.add_video(VIDEO_ID, "Im Café")
    store.add_video(OTHER_VIDEO_ID, "Am Bahnhof")
    for segment in catalog_segments():
        store.add_segment(segment)
    for word in catalog_words():
        store.add_word(word)
    for exercise in catalog_exercises():
        store.add_exercise(exercise)
    return store


@pytest.fixture
def engine(store, clock):
    return ProgressEngine(store, clock=clock)
