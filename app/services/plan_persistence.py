"""
plan_persistence.py - Durable side of the daily plan

The daily_plan_completions rows are the authority on plan progress. This
module writes them when a plan is generated, rebuilds a plan from them when
the in-memory copy is gone, and overlays their progress onto a plan before it
is handed out.
"""

import logging
from datetime import date, datetime
from typing import Optional

from app.db.catalog import get_resource_titles, get_skill_names
from app.db.plan_records import delete_plan_records, get_plan_records, upsert_plan_record
from app.models.plan import PlanItem, TodaysPlan
from app.services.fallback_plan import FALLBACK_RATIONALE_PREFIX
from app.services.plan_converter import (
    build_plan_item,
    parse_activity_type,
    recompute_totals,
    summarize_titles,
)
from app.services.progress_aggregator import count_due_vocabulary, get_streak

logger = logging.getLogger(__name__)


def _parse_completed_at(raw) -> Optional[datetime]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable completed_at %r", raw)
        return None


def _apply_progress(item: PlanItem, record: dict) -> None:
    item.is_completed = bool(record["is_completed"])
    item.completed_at = _parse_completed_at(record["completed_at"])
    item.minutes_spent = record["minutes_spent"] or 0


async def pre_create_records(db, plan: TodaysPlan) -> None:
    """Write one progress record per plan item.

    Existing records keep their progress, so calling this twice for the same
    plan changes nothing the learner has done.

    PostgreSQL commits each statement on its own, so a failure part-way leaves
    some rows behind. Those rows are removed before the error propagates;
    otherwise reconstruction would serve the truncated plan for the rest of
    the day instead of regenerating.
    """
    try:
        for item in plan.items:
            await upsert_plan_record(
                db,
                plan.generated_for_date,
                item.id,
                activity_type=item.activity_type.value,
                estimated_minutes=item.estimated_minutes,
                priority=item.priority,
                title_key=item.title_key,
                description_key=item.description_key,
                rationale=plan.rationale,
                resource_id=item.resource_id,
                skill_id=item.skill_id,
                difficulty_level=item.difficulty_level,
                commit=False,
            )
        await db.commit()
    except Exception:
        logger.error("Pre-creating plan records for %s failed; removing partial plan", plan.generated_for_date)
        await delete_plan_records(db, plan.generated_for_date)
        raise
    logger.info("Pre-created %d plan records for %s", len(plan.items), plan.generated_for_date)


async def reconstruct_plan(db, for_date: date, now: Optional[datetime] = None) -> Optional[TodaysPlan]:
    """Rebuild the plan for `for_date` from its records alone.

    Records whose activity type no longer exists are skipped. Returns None when
    there are no records, or none of them could be used.
    """
    records = await get_plan_records(db, for_date)
    if not records:
        return None

    titles = await get_resource_titles(db, [r["resource_id"] for r in records])
    names = await get_skill_names(db, [r["skill_id"] for r in records])
    due_count = await count_due_vocabulary(db, now) if now is not None else None

    items = []
    for record in records:
        activity_type = parse_activity_type(record["activity_type"])
        if activity_type is None:
            logger.warning(
                "Skipping plan record %s with unknown activity type %r",
                record["plan_item_id"], record["activity_type"],
            )
            continue
        item = build_plan_item(
            for_date,
            activity_type,
            record["estimated_minutes"] or 0,
            record["priority"] or 0,
            resource_id=record["resource_id"],
            skill_id=record["skill_id"],
            resource_title=titles.get(record["resource_id"]),
            skill_name=names.get(record["skill_id"]),
            vocab_due_count=due_count,
            difficulty_level=record.get("difficulty_level"),
        )
        # The stored id wins; it is what progress was recorded against
        item.id = record["plan_item_id"]
        _apply_progress(item, record)
        items.append(item)

    if not items:
        logger.warning("No usable plan records for %s; plan will be regenerated", for_date)
        return None

    rationale = records[0]["rationale"] or ""
    joined_titles, skill_title = summarize_titles(items)
    plan = TodaysPlan(
        generated_for_date=for_date,
        items=items,
        streak=await get_streak(db, for_date),
        resource_titles=joined_titles,
        skill_title=skill_title,
        rationale=rationale,
        is_fallback=rationale.startswith(FALLBACK_RATIONALE_PREFIX),
    )
    logger.info("Reconstructed plan for %s from %d records", for_date, len(items))
    return recompute_totals(plan)


async def enrich_with_latest(db, plan: TodaysPlan) -> TodaysPlan:
    """Overlay the stored progress of every item onto `plan` and refresh its totals."""
    records = await get_plan_records(db, plan.generated_for_date)
    by_id = {r["plan_item_id"]: r for r in records}
    for item in plan.items:
        record = by_id.get(item.id)
        if record is not None:
            _apply_progress(item, record)
    return recompute_totals(plan)
