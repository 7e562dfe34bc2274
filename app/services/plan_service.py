"""
plan_service.py - Daily plan orchestration

PlanService is the single entry point the routes use. It is built once in the
server lifespan with the process ProgressCache, a GenerativePlanner and a
clock, and every call receives the request's database connection.

Lookup order for today's plan: cache, then durable records, then a fresh
generation (which falls back to the deterministic plan on its own). Mutations
write the durable record first and touch the cached plan only afterwards; a
failed write propagates and leaves the cache as it was.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from app.db.plan_records import delete_plan_records, update_plan_record_progress
from app.models.plan import TodaysPlan
from app.services.plan_converter import recompute_totals
from app.services.plan_generator import GenerativePlanner, generate_plan
from app.services.plan_persistence import enrich_with_latest, pre_create_records, reconstruct_plan
from app.services.progress_cache import ProgressCache

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlanService:
    def __init__(
        self,
        cache: ProgressCache,
        planner: GenerativePlanner,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.cache = cache
        self.planner = planner
        self._clock = clock

    def today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    async def get_cached_plan(self, db, for_date: date) -> Optional[TodaysPlan]:
        """The plan for `for_date` from cache or durable records. Never generates."""
        # Only today's plan is ever cached
        plan = self.cache.get_plan(for_date) if for_date == self.today() else None
        if plan is None:
            plan = await reconstruct_plan(db, for_date, now=self._clock())
            if plan is None:
                return None
            if for_date == self.today():
                self.cache.set_plan(plan)
        return await enrich_with_latest(db, plan)

    async def get_or_generate_todays_plan(self, db) -> TodaysPlan:
        today = self.today()
        plan = await self.get_cached_plan(db, today)
        if plan is not None:
            return plan

        logger.info("No plan for %s; generating", today)
        plan = await generate_plan(db, self.planner, today, now=self._clock())
        await pre_create_records(db, plan)
        self.cache.set_plan(plan)
        return await enrich_with_latest(db, plan)

    async def mark_item_complete(self, db, plan_item_id: str, minutes_spent: int) -> None:
        """Mark an item of today's plan complete. Repeating the call changes nothing."""
        await self._record_progress(db, plan_item_id, minutes_spent, completed_at=self._clock())

    async def update_item_progress(self, db, plan_item_id: str, minutes_spent: int) -> None:
        """Record time spent on an item without completing it. Minutes never go down."""
        await self._record_progress(db, plan_item_id, minutes_spent, completed_at=None)

    async def _record_progress(
        self,
        db,
        plan_item_id: str,
        minutes_spent: int,
        completed_at: Optional[datetime],
    ) -> None:
        today = self.today()
        record = await update_plan_record_progress(
            db, today, plan_item_id, minutes_spent, completed_at=completed_at
        )
        if record is None:
            logger.warning("Plan item %s not found for %s; ignoring progress update", plan_item_id, today)
            return

        plan = self.cache.get_plan(today)
        if plan is None:
            return
        item = next((i for i in plan.items if i.id == plan_item_id), None)
        if item is None:
            logger.warning("Plan item %s is stored but missing from the cached plan", plan_item_id)
            self.cache.invalidate_plan()
            return

        item.minutes_spent = record["minutes_spent"]
        item.is_completed = record["is_completed"]
        if record["completed_at"]:
            item.completed_at = datetime.fromisoformat(record["completed_at"])
        # Concurrent updates may overwrite each other's item here; every read re-applies the records
        self.cache.set_plan(recompute_totals(plan))
        logger.debug(
            "Plan item %s: %d min, completed=%s (%.1f%%)",
            plan_item_id, item.minutes_spent, item.is_completed, plan.completion_percentage,
        )

    async def clear_todays_plan(self, db) -> int:
        """Drop today's records and cached plan so the next read regenerates. Returns rows deleted."""
        today = self.today()
        deleted = await delete_plan_records(db, today)
        self.cache.invalidate_plan()
        logger.info("Cleared plan for %s (%d records)", today, deleted)
        return deleted
