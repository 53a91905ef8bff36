"""
Unit tests for the XP ledger.

Tests:
- Level formula
- Exercise XP bonuses
- Streak transitions (same day, next day, gap)
- Award validation and first-award row creation
"""

from datetime import datetime

import pytest

from vidlingo.progress import InMemoryProgressStore, ValidationFailure, XPLedger, level_for
from vidlingo.progress.xp_ledger import day_start, streak_after

NOON = datetime(2024, 3, 4, 12, 0, 0)


@pytest.fixture
def ledger():
    return XPLedger()


class TestLevel:
    @pytest.mark.parametrize(
        "total_xp,level",
        [(0, 1), (999, 1), (1000, 2), (1999, 2), (2500, 3)],
    )
    def test_level_for(self, total_xp, level):
        assert level_for(total_xp) == level

    @pytest.mark.asyncio
    async def test_crossing_a_level_boundary(self):
        store = InMemoryProgressStore()
        ledger = XPLedger()
        async with store.transaction() as uow:
            assert (await ledger.award(uow, "alice", 950, NOON)).level == 1
            progress = await ledger.award(uow, "alice", 100, NOON)

        assert (progress.total_xp, progress.level) == (1050, 2)


class TestExerciseXP:
    def test_perfect_fast_answer(self, ledger):
        # 10 + 20 (correct) + 15 (score > 80) + 5 (under 30s)
        assert ledger.exercise_xp(90, True, 20) == 50
        assert ledger.exercise_xp(85, True, 20) == 50

    def test_wrong_low_score(self, ledger):
        assert ledger.exercise_xp(40, False) == 10
        assert ledger.exercise_xp(50, False) == 10

    def test_good_score_bonus(self, ledger):
        assert ledger.exercise_xp(70, True) == 40

    def test_score_thresholds_are_strict(self, ledger):
        assert ledger.exercise_xp(80, False) == 20
        assert ledger.exercise_xp(60, False) == 10

    def test_speed_bonus_needs_time(self, ledger):
        assert ledger.exercise_xp(0, False, None) == 10
        assert ledger.exercise_xp(0, False, 30) == 10
        assert ledger.exercise_xp(0, False, 29.5) == 15


class TestStreak:
    def test_first_activity_starts_streak(self):
        assert streak_after(0, None, NOON) == 1

    def test_same_day_keeps_streak(self):
        assert streak_after(3, NOON.replace(hour=8), NOON) == 3

    def test_same_day_with_zero_streak_starts_one(self):
        assert streak_after(0, NOON.replace(hour=8), NOON) == 1

    def test_next_day_extends_streak(self):
        yesterday_late = datetime(2024, 3, 3, 23, 30)
        assert streak_after(3, yesterday_late, NOON) == 4

    def test_gap_resets_streak(self):
        two_days_ago = datetime(2024, 3, 2, 23, 59)
        assert streak_after(7, two_days_ago, NOON) == 1

    def test_day_start(self):
        assert day_start(NOON) == datetime(2024, 3, 4)


class TestAward:
    @pytest.mark.asyncio
    async def test_first_award_creates_row(self, ledger):
        store = InMemoryProgressStore()
        async with store.transaction() as uow:
            progress = await ledger.award(uow, "alice", 1200, NOON)

        assert progress.total_xp == 1200
        assert progress.level == 2
        assert progress.current_streak == 1
        assert progress.last_activity == NOON

    @pytest.mark.asyncio
    async def test_awards_accumulate(self, ledger):
        store = InMemoryProgressStore()
        async with store.transaction() as uow:
            await ledger.award(uow, "alice", 600, NOON)
            progress = await ledger.award(uow, "alice", 600, NOON)

        assert progress.total_xp == 1200
        assert progress.level == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("delta", [-5, 1.5, True])
    async def test_rejects_invalid_delta(self, ledger, delta):
        store = InMemoryProgressStore()
        with pytest.raises(ValidationFailure):
            async with store.transaction() as uow:
                await ledger.award(uow, "alice", delta, NOON)

        assert store.user_progress == {}
