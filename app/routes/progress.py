"""Dashboard progress endpoints and activity recording.

Reads go through the process ProgressCache and only hit the aggregate queries
on a miss. Writes go to the activity store, which drops the cache entries they
make stale.
"""

from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.db.activity_store import record_activity, record_vocabulary_attempt
from app.db.database import get_db
from app.models.plan import (
    ActivityEntry,
    PracticeHeatPoint,
    ResourceProgress,
    SkillProgress,
    VocabProgressSummary,
    VocabularyAttemptEntry,
)
from app.services import progress_aggregator as agg
from app.services.progress_cache import ProgressCache

router = APIRouter(prefix="/api", tags=["progress"])

RECENT_RESOURCE_WINDOW_DAYS = 30


def _cache(request: Request) -> ProgressCache:
    return request.app.state.progress_cache


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("/progress/vocabulary", response_model=VocabProgressSummary)
async def vocabulary_summary(cache: ProgressCache = Depends(_cache), db=Depends(get_db)):
    summary = cache.get_vocab_summary()
    if summary is None:
        summary = await agg.get_vocab_summary(db, _now())
        cache.set_vocab_summary(summary)
    return summary


@router.get("/progress/heat", response_model=List[PracticeHeatPoint])
async def practice_heat(
    days: int = Query(default=30, ge=1, le=366),
    cache: ProgressCache = Depends(_cache),
    db=Depends(get_db),
):
    """Attempts per day for the last `days` days, today included."""
    today = _now().date()
    points = cache.get_practice_heat()
    # One cached series; a different window or a new day means recompute
    if points is None or len(points) != days or points[-1].date != today:
        points = await agg.get_practice_heat(db, today - timedelta(days=days - 1), today)
        cache.set_practice_heat(points)
    return points


@router.get("/progress/resources", response_model=List[ResourceProgress])
async def recent_resources(cache: ProgressCache = Depends(_cache), db=Depends(get_db)):
    resources = cache.get_resource_progress()
    if resources is None:
        since = _now() - timedelta(days=RECENT_RESOURCE_WINDOW_DAYS)
        resources = await agg.get_recent_resource_progress(db, since, limit=3)
        cache.set_resource_progress(resources)
    return resources


@router.get("/progress/skills/{skill_id}", response_model=SkillProgress)
async def skill_progress(skill_id: int, cache: ProgressCache = Depends(_cache), db=Depends(get_db)):
    progress = cache.get_skill_progress(skill_id)
    if progress is None:
        progress = await agg.get_skill_progress(db, skill_id, _now())
        if progress is None:
            raise HTTPException(status_code=404, detail="Skill not found")
        cache.set_skill_progress(skill_id, progress)
    return progress


@router.post("/activities", status_code=201)
async def create_activity(
    entry: ActivityEntry,
    cache: ProgressCache = Depends(_cache),
    db=Depends(get_db),
):
    activity_id = await record_activity(
        db,
        entry.activity,
        input=entry.input,
        fluency=entry.fluency,
        accuracy=entry.accuracy,
        cache=cache,
    )
    return {"id": activity_id}


@router.post("/vocabulary/attempts", status_code=201)
async def create_vocabulary_attempt(
    entry: VocabularyAttemptEntry,
    cache: ProgressCache = Depends(_cache),
    db=Depends(get_db),
):
    cursor = await db.execute(
        "SELECT id FROM vocabulary_words WHERE id = ?", (entry.vocabulary_word_id,)
    )
    if not await cursor.fetchone():
        raise HTTPException(status_code=404, detail="Vocabulary word not found")

    attempt_id = await record_vocabulary_attempt(
        db,
        entry.vocabulary_word_id,
        entry.activity,
        entry.was_correct,
        resource_id=entry.resource_id,
        skill_id=entry.skill_id,
        input_mode=entry.input_mode,
        response_time_ms=entry.response_time_ms,
        cache=cache,
    )
    # Attempts also move resource and skill rollups
    cache.invalidate_resource_progress()
    if entry.skill_id is not None:
        cache.invalidate_skill_progress(entry.skill_id)
    return {"id": attempt_id}
