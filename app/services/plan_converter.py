"""
plan_converter.py - Turn planner output into TodaysPlan items

Everything the UI needs to open an activity (route, route parameters, display
keys) is derived here from the activity type and the referenced ids. None of it
is stored, so reconstructing a plan from its durable records goes through the
same functions as building it fresh.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from app.models.plan import DailyPlanResponse, PlanActivityType, PlanItem, StreakInfo, TodaysPlan
from app.services.plan_identity import generate_plan_item_id

logger = logging.getLogger(__name__)


ROUTES: Dict[PlanActivityType, str] = {
    PlanActivityType.VOCABULARY_REVIEW: "/vocabulary-quiz",
    PlanActivityType.READING: "/reading",
    PlanActivityType.LISTENING: "/listening",
    PlanActivityType.VIDEO_WATCHING: "/video",
    PlanActivityType.SHADOWING: "/shadowing",
    PlanActivityType.CLOZE: "/cloze",
    PlanActivityType.TRANSLATION: "/translation",
    PlanActivityType.CONVERSATION: "/conversation",
    PlanActivityType.VOCABULARY_GAME: "/vocabulary-matching",
    PlanActivityType.WRITING: "/writing",
}

_KEY_STEMS: Dict[PlanActivityType, str] = {
    PlanActivityType.VOCABULARY_REVIEW: "vocab_review",
    PlanActivityType.READING: "reading",
    PlanActivityType.LISTENING: "listening",
    PlanActivityType.VIDEO_WATCHING: "video_watching",
    PlanActivityType.SHADOWING: "shadowing",
    PlanActivityType.CLOZE: "cloze",
    PlanActivityType.TRANSLATION: "translation",
    PlanActivityType.CONVERSATION: "conversation",
    PlanActivityType.VOCABULARY_GAME: "vocab_game",
    PlanActivityType.WRITING: "writing",
}

TITLE_KEYS: Dict[PlanActivityType, str] = {
    t: f"plan_item_{stem}_title" for t, stem in _KEY_STEMS.items()
}
DESCRIPTION_KEYS: Dict[PlanActivityType, str] = {
    t: f"plan_item_{stem}_desc" for t, stem in _KEY_STEMS.items()
}

# Planners tend to drift between spellings of the same activity
_ALIASES = {
    "vocabularyreview": PlanActivityType.VOCABULARY_REVIEW,
    "vocabreview": PlanActivityType.VOCABULARY_REVIEW,
    "srs": PlanActivityType.VOCABULARY_REVIEW,
    "video": PlanActivityType.VIDEO_WATCHING,
    "videowatching": PlanActivityType.VIDEO_WATCHING,
    "vocabularygame": PlanActivityType.VOCABULARY_GAME,
    "vocabularymatching": PlanActivityType.VOCABULARY_GAME,
}


def parse_activity_type(raw: Optional[str]) -> Optional[PlanActivityType]:
    """Parse an activity type leniently (case, spaces, underscores). None if unknown."""
    if not raw:
        return None
    normalized = str(raw).strip().replace("_", "").replace("-", "").replace(" ", "").lower()
    for member in PlanActivityType:
        if member.value.lower() == normalized:
            return member
    return _ALIASES.get(normalized)


def build_route_parameters(
    activity_type: PlanActivityType,
    resource_id: Optional[int] = None,
    skill_id: Optional[int] = None,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if activity_type == PlanActivityType.VOCABULARY_REVIEW:
        params["Mode"] = "SRS"
        params["DueOnly"] = True
        if resource_id is not None:
            params["ResourceId"] = resource_id
    elif activity_type == PlanActivityType.VOCABULARY_GAME:
        if skill_id is not None:
            params["SkillId"] = skill_id
    else:
        if resource_id is not None:
            params["ResourceId"] = resource_id
        if skill_id is not None:
            params["SkillId"] = skill_id
    return params


def build_plan_item(
    plan_date: date,
    activity_type: PlanActivityType,
    estimated_minutes: int,
    priority: int,
    resource_id: Optional[int] = None,
    skill_id: Optional[int] = None,
    resource_title: Optional[str] = None,
    skill_name: Optional[str] = None,
    vocab_due_count: Optional[int] = None,
    difficulty_level: Optional[str] = None,
) -> PlanItem:
    """Build a fresh (not yet started) PlanItem with its derived id and navigation."""
    return PlanItem(
        id=generate_plan_item_id(plan_date, activity_type, resource_id, skill_id),
        title_key=TITLE_KEYS[activity_type],
        description_key=DESCRIPTION_KEYS[activity_type],
        activity_type=activity_type,
        estimated_minutes=max(0, estimated_minutes),
        priority=priority,
        route=ROUTES[activity_type],
        route_parameters=build_route_parameters(activity_type, resource_id, skill_id),
        resource_id=resource_id,
        resource_title=resource_title,
        skill_id=skill_id,
        skill_name=skill_name,
        vocab_due_count=vocab_due_count if activity_type == PlanActivityType.VOCABULARY_REVIEW else None,
        difficulty_level=difficulty_level,
    )


def recompute_totals(plan: TodaysPlan) -> TodaysPlan:
    """Refresh the counters and the time-weighted completion percentage in place."""
    plan.total_count = len(plan.items)
    plan.completed_count = sum(1 for item in plan.items if item.is_completed)
    plan.estimated_total_minutes = sum(item.estimated_minutes for item in plan.items)
    spent = sum(item.minutes_spent for item in plan.items)
    if plan.estimated_total_minutes > 0:
        plan.completion_percentage = min(100.0, spent / plan.estimated_total_minutes * 100.0)
    else:
        plan.completion_percentage = 0.0
    return plan


def summarize_titles(items: List[PlanItem]) -> tuple:
    """(comma-joined distinct resource titles, first skill name) for the plan header."""
    titles: List[str] = []
    for item in items:
        if item.resource_title and item.resource_title not in titles:
            titles.append(item.resource_title)
    skill_title = next((item.skill_name for item in items if item.skill_name), None)
    return (", ".join(titles) or None, skill_title)


def convert_to_plan(
    response: DailyPlanResponse,
    plan_date: date,
    resource_titles: Optional[Dict[int, str]] = None,
    skill_names: Optional[Dict[int, str]] = None,
    vocab_due_count: Optional[int] = None,
    streak: Optional[StreakInfo] = None,
    is_fallback: bool = False,
) -> TodaysPlan:
    """Convert a planner response into a TodaysPlan for `plan_date`.

    Activities with an unknown type are dropped with a log line. Activities that
    collapse onto the same id (same date, type, resource and skill) keep only
    the most important one (lowest priority number, earliest on ties).
    Items come back ordered by priority.
    """
    resource_titles = resource_titles or {}
    skill_names = skill_names or {}

    ordered = sorted(enumerate(response.activities), key=lambda pair: (pair[1].priority, pair[0]))
    items: List[PlanItem] = []
    seen_ids = set()
    for _, activity in ordered:
        activity_type = parse_activity_type(activity.activity_type)
        if activity_type is None:
            logger.warning("Skipping planner activity with unknown type %r", activity.activity_type)
            continue

        item = build_plan_item(
            plan_date,
            activity_type,
            activity.estimated_minutes,
            activity.priority,
            resource_id=activity.resource_id,
            skill_id=activity.skill_id,
            resource_title=resource_titles.get(activity.resource_id) if activity.resource_id is not None else None,
            skill_name=skill_names.get(activity.skill_id) if activity.skill_id is not None else None,
            vocab_due_count=vocab_due_count,
            difficulty_level=activity.difficulty_level,
        )
        if item.id in seen_ids:
            logger.info("Dropping duplicate %s activity (priority %d)", activity_type.value, activity.priority)
            continue
        seen_ids.add(item.id)
        items.append(item)

    joined_titles, skill_title = summarize_titles(items)
    plan = TodaysPlan(
        generated_for_date=plan_date,
        items=items,
        streak=streak or StreakInfo(),
        resource_titles=joined_titles,
        skill_title=skill_title,
        rationale=response.rationale or "",
        is_fallback=is_fallback,
    )
    return recompute_totals(plan)
