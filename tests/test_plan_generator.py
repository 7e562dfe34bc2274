"""Tests for the generative plan adapter and the LLM-backed planner."""

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from app.models.plan import PlanActivity, PlanActivityType
from app.services.plan_generator import LlmPlanner, build_plan_request, generate_plan

DAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


class TestGeneratePlan:

    @pytest.mark.asyncio
    async def test_successful_generation_is_enriched(self, db, seed, planner_factory):
        resource = await seed.resource(title="News in slow Korean")
        skill = await seed.skill("Listening for numbers")
        await seed.due_words(6)
        planner = planner_factory([
            PlanActivity(activity_type="Listening", estimated_minutes=10, priority=1,
                         resource_id=resource, skill_id=skill),
            PlanActivity(activity_type="VocabularyReview", estimated_minutes=5, priority=2),
        ])

        plan = await generate_plan(db, planner, DAY, now=NOW)

        assert not plan.is_fallback
        assert plan.resource_titles == "News in slow Korean"
        assert plan.skill_title == "Listening for numbers"
        listening, review = plan.items
        assert listening.skill_name == "Listening for numbers"
        assert review.vocab_due_count == 6

    @pytest.mark.asyncio
    async def test_planner_exception_never_escapes(self, db, seed, planner_factory):
        await seed.due_words(12)
        plan = await generate_plan(db, planner_factory(error=ValueError("bad json")), DAY, now=NOW)
        assert plan.is_fallback
        assert plan.items[0].estimated_minutes == 3

    @pytest.mark.asyncio
    async def test_no_usable_activity_falls_back(self, db, seed, planner_factory):
        await seed.due_words(5)
        planner = planner_factory([PlanActivity(activity_type="Karaoke", priority=1)], rationale="Sing!")

        plan = await generate_plan(db, planner, DAY, now=NOW)

        assert plan.is_fallback
        assert plan.rationale != "Sing!"
        assert [i.activity_type for i in plan.items] == [PlanActivityType.VOCABULARY_REVIEW]


class TestLlmPlanner:

    @pytest.mark.asyncio
    async def test_builds_request_context(self, db, seed):
        await seed.resource(title="Webtoon ep. 1", words=[await seed.word()])
        await seed.skill("Reading signs")
        await seed.due_words(4)

        request = await build_plan_request(db, NOW)

        assert request.vocabulary_due_count == 4
        assert [r.title for r in request.available_resources] == ["Webtoon ep. 1"]
        assert request.available_resources[0].word_count == 1
        assert [s.title for s in request.available_skills] == ["Reading signs"]
        assert request.recent_history == []

    @pytest.mark.asyncio
    async def test_parses_model_output(self, db, seed):
        resource = await seed.resource()
        payload = {
            "activities": [
                {"activity_type": "Shadowing", "resource_id": resource, "estimated_minutes": 8, "priority": 1}
            ],
            "rationale": "Shadow the dialogue you read yesterday.",
        }
        fake_chat = AsyncMock(return_value=json.dumps(payload))

        with patch("app.services.plan_generator.ai_chat", fake_chat):
            response = await LlmPlanner(clock=lambda: NOW).generate_plan(db)

        assert response.activities[0].activity_type == "Shadowing"
        assert response.rationale.startswith("Shadow")
        kwargs = fake_chat.await_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["use_case"] == "plan"
        assert "Date: 2026-03-10" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_invalid_model_output_falls_back(self, db, seed):
        await seed.due_words(9)
        with patch("app.services.plan_generator.ai_chat", AsyncMock(return_value="not json")):
            plan = await generate_plan(db, LlmPlanner(clock=lambda: NOW), DAY, now=NOW)

        assert plan.is_fallback
        assert plan.items[0].vocab_due_count == 9
