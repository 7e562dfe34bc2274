"""
plan_generator.py - Generative plan adapter

Asks a GenerativePlanner for today's activities, converts the answer into a
TodaysPlan and enriches it with titles, the due-vocabulary count and the
streak. Any planner failure, and any answer that leaves no usable activity,
switches to the deterministic fallback plan. Nothing raised by the planner
escapes generate_plan().
"""

import json
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol

from app.config import settings
from app.db.catalog import get_resource_titles, get_skill_names, list_resources, list_skills
from app.db.plan_records import get_records_since
from app.models.plan import (
    ActivitySummary,
    DailyPlanRequest,
    DailyPlanResponse,
    ResourceOption,
    SkillOption,
    TodaysPlan,
)
from app.services.ai_client import ai_chat
from app.services.fallback_plan import build_fallback_response
from app.services.plan_converter import convert_to_plan
from app.services.progress_aggregator import count_due_vocabulary, get_streak
from app.services.prompts import load_prompt

logger = logging.getLogger(__name__)

HISTORY_DAYS = 14


class GenerativePlanner(Protocol):
    async def generate_plan(self, db) -> DailyPlanResponse:
        """Propose today's activities, or raise."""
        ...


# ══════════════════════════════════════════════════════════════════════════════
# LLM-BACKED PLANNER
# ══════════════════════════════════════════════════════════════════════════════

async def build_plan_request(db, now: datetime) -> DailyPlanRequest:
    """Gather the learner context the planner sees."""
    today = now.date()
    records = await get_records_since(db, today - timedelta(days=HISTORY_DAYS))
    titles = await get_resource_titles(db, [r["resource_id"] for r in records])
    names = await get_skill_names(db, [r["skill_id"] for r in records])

    history = [
        ActivitySummary(
            date=date.fromisoformat(r["plan_date"]),
            activity_type=r["activity_type"],
            resource_id=r["resource_id"],
            resource_title=titles.get(r["resource_id"]),
            skill_id=r["skill_id"],
            skill_name=names.get(r["skill_id"]),
            minutes_spent=r["minutes_spent"] or 0,
        )
        for r in records
        if r["minutes_spent"] or r["is_completed"]
    ]

    resources = [
        ResourceOption(
            id=r["id"],
            title=r["title"],
            media_type=r["media_type"] or "",
            language=r["language"] or "",
            word_count=r["word_count"] or 0,
        )
        for r in await list_resources(db)
    ]
    skills = [
        SkillOption(id=s["id"], title=s["title"] or f"Skill #{s['id']}", description=s["description"] or "")
        for s in await list_skills(db)
    ]

    return DailyPlanRequest(
        preferred_session_minutes=settings.preferred_session_minutes,
        target_level=settings.target_level,
        native_language=settings.native_language,
        target_language=settings.target_language,
        vocabulary_due_count=await count_due_vocabulary(db, now),
        recent_history=history,
        available_resources=resources,
        available_skills=skills,
    )


def _render_list(models: list, empty: str) -> str:
    if not models:
        return empty
    return json.dumps([m.model_dump(mode="json", exclude_none=True) for m in models], indent=2)


class LlmPlanner:
    """GenerativePlanner backed by ai_chat and prompts/daily_plan.yaml."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, temperature: float = 0.4):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._temperature = temperature

    async def generate_plan(self, db) -> DailyPlanResponse:
        now = self._clock()
        request = await build_plan_request(db, now)
        prompt = load_prompt("daily_plan.yaml")

        user_message = prompt["user_template"].format(
            plan_date=now.date().isoformat(),
            target_language=request.target_language,
            native_language=request.native_language,
            target_level=request.target_level,
            preferred_session_minutes=request.preferred_session_minutes,
            vocabulary_due_count=request.vocabulary_due_count,
            recent_history=_render_list(request.recent_history, "No activity in the last 14 days."),
            available_resources=_render_list(request.available_resources, "None."),
            available_skills=_render_list(request.available_skills, "None."),
        )

        logger.info(
            "Requesting daily plan: %d resources, %d skills, %d due words",
            len(request.available_resources),
            len(request.available_skills),
            request.vocabulary_due_count,
        )
        result_text = await ai_chat(
            messages=[
                {"role": "system", "content": prompt["system_prompt"]},
                {"role": "user", "content": user_message},
            ],
            use_case="plan",
            temperature=self._temperature,
            json_mode=True,
        )
        return DailyPlanResponse.model_validate(json.loads(result_text))


# ══════════════════════════════════════════════════════════════════════════════
# ADAPTER
# ══════════════════════════════════════════════════════════════════════════════

async def _convert_enriched(
    db,
    response: DailyPlanResponse,
    plan_date: date,
    due_count: int,
    streak,
    is_fallback: bool,
) -> TodaysPlan:
    resource_ids: List[int] = [a.resource_id for a in response.activities if a.resource_id is not None]
    skill_ids: List[int] = [a.skill_id for a in response.activities if a.skill_id is not None]
    return convert_to_plan(
        response,
        plan_date,
        resource_titles=await get_resource_titles(db, resource_ids),
        skill_names=await get_skill_names(db, skill_ids),
        vocab_due_count=due_count,
        streak=streak,
        is_fallback=is_fallback,
    )


async def generate_plan(
    db,
    planner: GenerativePlanner,
    plan_date: date,
    now: Optional[datetime] = None,
) -> TodaysPlan:
    """Produce today's plan from the planner, or the fallback plan if it cannot deliver."""
    now = now or datetime.now(timezone.utc)
    due_count = await count_due_vocabulary(db, now)
    streak = await get_streak(db, plan_date)

    response: Optional[DailyPlanResponse] = None
    try:
        response = await planner.generate_plan(db)
    except Exception:
        logger.exception("Generative planner failed for %s; using fallback plan", plan_date)

    if response is not None:
        if response.activities:
            plan = await _convert_enriched(db, response, plan_date, due_count, streak, is_fallback=False)
            if plan.items:
                logger.info(
                    "Generated plan for %s: %d items, %d min",
                    plan_date, plan.total_count, plan.estimated_total_minutes,
                )
                return plan
            logger.warning("No planner activity survived parsing for %s; using fallback plan", plan_date)
        else:
            logger.warning("Generative planner returned no activities for %s; using fallback plan", plan_date)

    fallback = build_fallback_response(
        due_count,
        threshold=settings.fallback_vocab_threshold,
        max_minutes=settings.fallback_max_minutes,
    )
    return await _convert_enriched(db, fallback, plan_date, due_count, streak, is_fallback=True)
