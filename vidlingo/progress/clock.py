"""Time sources. All timestamps are naive UTC, matching the DateTime columns."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Manually driven clock for deterministic scheduling in tests and replays."""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by a timedelta built from kwargs (days=1, hours=2, ...)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
