"""Tests for the in-memory progress cache."""

from datetime import date

from app.models.plan import (
    PracticeHeatPoint,
    SkillProgress,
    TodaysPlan,
    VocabProgressSummary,
)
from app.services.progress_cache import ProgressCache


class TestAggregateEntries:

    def test_miss_then_hit(self, cache):
        assert cache.get_vocab_summary() is None
        cache.set_vocab_summary(VocabProgressSummary(new=3, known=1))
        assert cache.get_vocab_summary().new == 3

    def test_entries_expire_after_ttl(self, cache, clock):
        cache.set_practice_heat([PracticeHeatPoint(date=date(2026, 3, 10), count=4)])
        clock.advance(seconds=299)
        assert cache.get_practice_heat() is not None
        clock.advance(seconds=1)
        assert cache.get_practice_heat() is None

    def test_custom_ttl(self, clock):
        short = ProgressCache(ttl_seconds=10, clock=clock)
        short.set_vocab_summary(VocabProgressSummary())
        clock.advance(seconds=11)
        assert short.get_vocab_summary() is None

    def test_returned_values_are_copies(self, cache):
        cache.set_vocab_summary(VocabProgressSummary(review=2))
        cache.get_vocab_summary().review = 99
        assert cache.get_vocab_summary().review == 2

    def test_skill_entries_are_per_skill(self, cache):
        cache.set_skill_progress(1, SkillProgress(skill_id=1, title="A", proficiency=0.5))
        cache.set_skill_progress(2, SkillProgress(skill_id=2, title="B", proficiency=0.1))
        cache.invalidate_skill_progress(1)
        assert cache.get_skill_progress(1) is None
        assert cache.get_skill_progress(2).title == "B"

    def test_invalidate_all_keeps_plan(self, cache):
        day = date(2026, 3, 10)
        cache.set_vocab_summary(VocabProgressSummary())
        cache.set_resource_progress([])
        cache.set_plan(TodaysPlan(generated_for_date=day))
        cache.invalidate_all()
        assert cache.get_vocab_summary() is None
        assert cache.get_resource_progress() is None
        assert cache.get_plan(day) is not None

    def test_clear_drops_everything(self, cache):
        day = date(2026, 3, 10)
        cache.set_plan(TodaysPlan(generated_for_date=day))
        cache.set_vocab_summary(VocabProgressSummary())
        cache.clear()
        assert cache.get_plan(day) is None
        assert cache.get_vocab_summary() is None


class TestPlanEntry:

    def test_plan_does_not_expire(self, cache, clock):
        day = date(2026, 3, 10)
        cache.set_plan(TodaysPlan(generated_for_date=day, rationale="r"))
        clock.advance(hours=6)
        assert cache.get_plan(day).rationale == "r"

    def test_other_date_misses_and_evicts(self, cache):
        cache.set_plan(TodaysPlan(generated_for_date=date(2026, 3, 10)))
        assert cache.get_plan(date(2026, 3, 11)) is None
        assert cache.get_plan(date(2026, 3, 10)) is None

    def test_cached_plan_cannot_be_mutated_through_a_read(self, cache):
        day = date(2026, 3, 10)
        cache.set_plan(TodaysPlan(generated_for_date=day, completed_count=0))
        cache.get_plan(day).completed_count = 5
        assert cache.get_plan(day).completed_count == 0
