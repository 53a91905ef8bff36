"""Dependency providers for API routes."""

from __future__ import annotations

from functools import lru_cache

from vidlingo.db.database import get_async_session_factory
from vidlingo.progress.engine import ProgressEngine
from vidlingo.progress.sql_store import SqlProgressStore


@lru_cache(maxsize=1)
def get_progress_engine() -> ProgressEngine:
    """Engine over the configured database, shared by all requests."""
    return ProgressEngine(SqlProgressStore(get_async_session_factory()))
