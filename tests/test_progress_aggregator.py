"""Tests for the SQL progress aggregates and streaks."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.plan import StreakInfo
from app.services import progress_aggregator as agg

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)

TODAY = NOW.date()


class TestRollups:

    @pytest.mark.asyncio
    async def test_resource_aggregate(self, db, seed):
        w1 = await seed.word(mastery=0.5, attempts=2)
        w2 = await seed.word(mastery=0.9, attempts=2)
        resource = await seed.resource(words=[w1, w2])
        await seed.attempt(w1, True, resource_id=resource)
        await seed.attempt(w1, False, resource_id=resource)
        await seed.attempt(w2, True, resource_id=resource)
        await seed.attempt(w2, True)

        result = await agg.get_resource_aggregate(db, resource)

        assert result.average_mastery_score == pytest.approx(0.7)
        assert result.total_attempts == 3
        assert result.correct_attempts == 2
        assert result.correct_rate == pytest.approx(0.6667, abs=1e-4)

    @pytest.mark.asyncio
    async def test_skill_aggregate(self, db, seed):
        skill = await seed.skill()
        w1 = await seed.word(mastery=0.2, attempts=1)
        await seed.word(mastery=1.0, attempts=1)
        await seed.attempt(w1, False, skill_id=skill)

        result = await agg.get_skill_aggregate(db, skill)

        assert result.average_mastery_score == pytest.approx(0.2)
        assert result.total_attempts == 1
        assert result.correct_rate == 0.0

    @pytest.mark.asyncio
    async def test_empty_database(self, db):
        result = await agg.get_global_aggregate(db)
        assert result.total_attempts == 0
        assert result.correct_rate == 0.0
        assert result.average_mastery_score == 0.0

    @pytest.mark.asyncio
    async def test_success_rate_ignores_old_attempts(self, db, seed):
        word = await seed.word()
        await seed.attempt(word, True, created_at=NOW - timedelta(days=1))
        await seed.attempt(word, False, created_at=NOW - timedelta(days=2))
        await seed.attempt(word, False, created_at=NOW - timedelta(days=10))
        assert await agg.get_success_rate_7d(db, NOW) == 0.5

    @pytest.mark.asyncio
    async def test_count_due_vocabulary(self, db, seed):
        await seed.due_words(3)
        await seed.word(mastery=0.3, due_at=NOW + timedelta(days=1), attempts=1)
        await seed.word()
        assert await agg.count_due_vocabulary(db, NOW) == 3


class TestVocabSummary:

    @pytest.mark.asyncio
    async def test_buckets(self, db, seed):
        await seed.word()                                                     # new, no progress row
        await seed.word(mastery=0.9, attempts=8, production_in_streak=3,
                        due_at=NOW - timedelta(days=1))                       # known beats due
        await seed.word(mastery=0.9, attempts=8, production_in_streak=1,
                        due_at=NOW + timedelta(days=3))                       # learning
        await seed.word(mastery=0.4, attempts=2, due_at=NOW - timedelta(hours=2))  # review

        summary = await agg.get_vocab_summary(db, NOW)

        assert (summary.new, summary.learning, summary.review, summary.known) == (1, 1, 1, 1)


class TestDashboardSeries:

    @pytest.mark.asyncio
    async def test_practice_heat_is_zero_filled(self, db, seed):
        word = await seed.word()
        await seed.attempt(word, created_at=NOW)
        await seed.attempt(word, created_at=NOW - timedelta(days=2))
        await seed.attempt(word, created_at=NOW - timedelta(days=2))
        await seed.attempt(word, created_at=NOW - timedelta(days=30))

        points = await agg.get_practice_heat(db, TODAY - timedelta(days=3), TODAY)

        assert [p.date for p in points] == [TODAY - timedelta(days=d) for d in (3, 2, 1, 0)]
        assert [p.count for p in points] == [0, 2, 0, 1]

    @pytest.mark.asyncio
    async def test_recent_resources_most_recent_first(self, db, seed):
        word = await seed.word(mastery=0.6, attempts=1)
        older = await seed.resource(title="Older", words=[word])
        newer = await seed.resource(title="Newer")
        await seed.attempt(word, True, created_at=NOW - timedelta(days=3), resource_id=older)
        await seed.attempt(word, False, created_at=NOW - timedelta(hours=1), resource_id=newer)

        progress = await agg.get_recent_resource_progress(db, NOW - timedelta(days=7))

        assert [p.title for p in progress] == ["Newer", "Older"]
        assert progress[1].proficiency == pytest.approx(0.6)
        assert progress[0].proficiency == 0.0
        assert progress[0].correct_rate == 0.0

    @pytest.mark.asyncio
    async def test_recent_skill_delta(self, db, seed):
        skill = await seed.skill("Small talk")
        word = await seed.word(mastery=0.5, attempts=3)
        await seed.attempt(word, True, created_at=NOW - timedelta(days=1), skill_id=skill)
        await seed.attempt(word, True, created_at=NOW - timedelta(days=2), skill_id=skill)
        await seed.attempt(word, False, created_at=NOW - timedelta(days=9), skill_id=skill)

        [progress] = await agg.get_recent_skill_progress(db, NOW - timedelta(days=14), now=NOW)

        assert progress.title == "Small talk"
        assert progress.delta_7d == pytest.approx(1.0)
        assert progress.proficiency == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_skill_progress_without_attempts(self, db, seed):
        skill = await seed.skill("Directions")
        progress = await agg.get_skill_progress(db, skill, NOW)
        assert progress.title == "Directions"
        assert progress.proficiency == 0.0
        assert await agg.get_skill_progress(db, 999, NOW) is None


class TestStreak:

    def test_compute_streak_counts_back_from_yesterday(self):
        days = [TODAY - timedelta(days=d) for d in (1, 2, 3, 6, 7)]
        streak = agg.compute_streak(days, TODAY)
        assert streak == StreakInfo(current_streak=3, longest_streak=3, last_practice_date=TODAY - timedelta(days=1))

    def test_compute_streak_broken(self):
        days = [TODAY - timedelta(days=d) for d in (2, 3)]
        streak = agg.compute_streak(days, TODAY)
        assert streak.current_streak == 0
        assert streak.longest_streak == 2

    def test_compute_streak_empty(self):
        assert agg.compute_streak([], TODAY) == StreakInfo()

    @pytest.mark.asyncio
    async def test_get_streak_combines_sources(self, db, seed):
        word = await seed.word()
        await seed.attempt(word, created_at=NOW)
        await seed.user_activity(created_at=NOW - timedelta(days=1))
        await seed.attempt(word, created_at=NOW - timedelta(days=2))
        await seed.user_activity(created_at=NOW - timedelta(days=2))

        streak = await agg.get_streak(db, TODAY)

        assert streak.current_streak == 3
        assert streak.longest_streak == 3
        assert streak.last_practice_date == TODAY

    def test_compute_streak_ignores_days_after_today(self):
        days = [TODAY - timedelta(days=d) for d in (0, 1, 8, 9)]
        streak = agg.compute_streak(days, TODAY - timedelta(days=8))
        assert streak == StreakInfo(current_streak=2, longest_streak=2, last_practice_date=TODAY - timedelta(days=8))

    @pytest.mark.asyncio
    async def test_get_streak_for_past_date_ignores_later_practice(self, db, seed):
        for d in range(5):
            await seed.user_activity(created_at=NOW - timedelta(days=d))

        streak = await agg.get_streak(db, TODAY - timedelta(days=10))

        assert streak == StreakInfo()
