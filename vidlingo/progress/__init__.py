"""
Learning progress and mastery tracking.

- engine: ProgressEngine façade (public operations)
- scheduler: MasteryScheduler, MasteryLevel
- xp_ledger: XPLedger, level/streak math
- video_stats: VideoStatsAggregator (per-video rollup)
- store: ProgressStore / ProgressUnitOfWork contracts
- sql_store / memory_store: store adapters
"""

from vidlingo.progress.clock import Clock, FixedClock, SystemClock
from vidlingo.progress.engine import SEGMENT_COMPLETION_XP, ProgressEngine
from vidlingo.progress.errors import NotFoundError, ProgressError, ValidationFailure
from vidlingo.progress.memory_store import InMemoryProgressStore
from vidlingo.progress.scheduler import MasteryLevel, MasteryScheduler
from vidlingo.progress.video_stats import VideoStatsAggregator
from vidlingo.progress.xp_ledger import XP_PER_LEVEL, XPLedger, level_for

__all__ = [
    # Engine
    "ProgressEngine",
    "SEGMENT_COMPLETION_XP",
    # Components
    "MasteryLevel",
    "MasteryScheduler",
    "XPLedger",
    "XP_PER_LEVEL",
    "level_for",
    "VideoStatsAggregator",
    # Stores
    "InMemoryProgressStore",
    # Time
    "Clock",
    "SystemClock",
    "FixedClock",
    # Errors
    "ProgressError",
    "NotFoundError",
    "ValidationFailure",
]
