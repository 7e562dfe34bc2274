"""In-memory cache for dashboard aggregates and today's plan.

One ProgressCache is built when the server starts (see app.server.lifespan)
and handed to everything that needs it; nothing reaches it through a module
global. Aggregate entries expire after ``ttl_seconds``. The plan entry has no
TTL: it is keyed by its UTC date and is only dropped by invalidate_plan() or
when a lookup for a different date finds it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from app.models.plan import (
    PracticeHeatPoint,
    ResourceProgress,
    SkillProgress,
    TodaysPlan,
    VocabProgressSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _copy(value: Any) -> Any:
    if isinstance(value, list):
        return [_copy(v) for v in value]
    if hasattr(value, "model_copy"):
        return value.model_copy(deep=True)
    return value


@dataclass
class _CacheEntry:
    data: Any
    expires_at: Optional[datetime]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class ProgressCache:
    """Process-local cache with per-entry expiry."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Clock = _utc_now) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._vocab_summary: Optional[_CacheEntry] = None
        self._practice_heat: Optional[_CacheEntry] = None
        self._resource_progress: Optional[_CacheEntry] = None
        self._skill_progress: Dict[int, _CacheEntry] = {}
        self._plan: Optional[_CacheEntry] = None

    # ── internals ────────────────────────────────────────────────────

    def _entry(self, data: Any) -> _CacheEntry:
        return _CacheEntry(data=_copy(data), expires_at=self._clock() + self._ttl)

    def _read(self, entry: Optional[_CacheEntry], label: str) -> Any:
        if entry is None or entry.is_expired(self._clock()):
            logger.debug("Cache MISS: %s", label)
            return None
        logger.debug("Cache HIT: %s", label)
        return _copy(entry.data)

    # ── vocabulary summary ───────────────────────────────────────────

    def get_vocab_summary(self) -> Optional[VocabProgressSummary]:
        return self._read(self._vocab_summary, "vocab_summary")

    def set_vocab_summary(self, data: VocabProgressSummary) -> None:
        self._vocab_summary = self._entry(data)

    def invalidate_vocab_summary(self) -> None:
        self._vocab_summary = None

    # ── practice heat ────────────────────────────────────────────────

    def get_practice_heat(self) -> Optional[List[PracticeHeatPoint]]:
        return self._read(self._practice_heat, "practice_heat")

    def set_practice_heat(self, data: List[PracticeHeatPoint]) -> None:
        self._practice_heat = self._entry(data)

    def invalidate_practice_heat(self) -> None:
        self._practice_heat = None

    # ── resource progress ────────────────────────────────────────────

    def get_resource_progress(self) -> Optional[List[ResourceProgress]]:
        return self._read(self._resource_progress, "resource_progress")

    def set_resource_progress(self, data: List[ResourceProgress]) -> None:
        self._resource_progress = self._entry(data)

    def invalidate_resource_progress(self) -> None:
        self._resource_progress = None

    # ── skill progress ───────────────────────────────────────────────

    def get_skill_progress(self, skill_id: int) -> Optional[SkillProgress]:
        return self._read(self._skill_progress.get(skill_id), f"skill_progress[{skill_id}]")

    def set_skill_progress(self, skill_id: int, data: SkillProgress) -> None:
        self._skill_progress[skill_id] = self._entry(data)

    def invalidate_skill_progress(self, skill_id: int) -> None:
        self._skill_progress.pop(skill_id, None)

    # ── today's plan ─────────────────────────────────────────────────

    def get_plan(self, for_date: date) -> Optional[TodaysPlan]:
        if self._plan is None:
            logger.debug("Cache MISS: plan[%s]", for_date)
            return None
        plan: TodaysPlan = self._plan.data
        if plan.generated_for_date != for_date:
            logger.info(
                "Evicting cached plan for %s (requested %s)", plan.generated_for_date, for_date
            )
            self._plan = None
            return None
        logger.debug("Cache HIT: plan[%s]", for_date)
        return _copy(plan)

    def set_plan(self, plan: TodaysPlan) -> None:
        self._plan = _CacheEntry(data=_copy(plan), expires_at=None)

    def invalidate_plan(self) -> None:
        self._plan = None

    # ── bulk ─────────────────────────────────────────────────────────

    def invalidate_all(self) -> None:
        """Drop every aggregate. The plan survives: activity does not change its shape."""
        self._vocab_summary = None
        self._practice_heat = None
        self._resource_progress = None
        self._skill_progress.clear()
        logger.debug("Cache INVALIDATED: all aggregates")

    def clear(self) -> None:
        self.invalidate_all()
        self._plan = None
