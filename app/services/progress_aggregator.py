"""Progress aggregation service.

Every number here is computed in SQL (COUNT / SUM(CASE …) / AVG with GROUP BY)
straight from the attempt-level tables; no collection is loaded into memory
and nothing is stored. Because all of it can be recomputed at any time, the
ProgressCache in front of it may be emptied whenever it is convenient.

Provides:
- per-resource, per-skill and global mastery / attempt / correct-rate rollups
- 7-day success rate and due-vocabulary count
- the dashboard series (vocabulary summary, practice heat, recent resources
  and skills)
- practice streaks
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from app.models.plan import (
    AggregateProgress,
    PracticeHeatPoint,
    ResourceProgress,
    SkillProgress,
    StreakInfo,
    VocabProgressSummary,
)

logger = logging.getLogger(__name__)

# A word is "known" once it clears this mastery score with enough production answers
MASTERY_THRESHOLD = 0.85
MIN_PRODUCTION_FOR_KNOWN = 2


def _parse_dt(raw) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None


def _rate(correct, total) -> float:
    return round((correct or 0) / total, 4) if total else 0.0


def _start_of_day(day: date) -> str:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc).isoformat()


# ── Rollups ──────────────────────────────────────────────────────────

async def _attempt_totals(db, where: str = "", params: tuple = ()) -> tuple:
    cursor = await db.execute(
        f"""SELECT COUNT(*) AS total,
                   COALESCE(SUM(was_correct), 0) AS correct
            FROM vocabulary_attempts {where}""",
        params,
    )
    row = await cursor.fetchone()
    return (row["total"] or 0, row["correct"] or 0)


async def get_resource_aggregate(db, resource_id: int) -> AggregateProgress:
    """Mastery over the resource's vocabulary, volume/accuracy over attempts made in it."""
    cursor = await db.execute(
        """SELECT AVG(vp.mastery_score) AS avg_mastery
           FROM resource_vocabulary rv
           JOIN vocabulary_progress vp ON vp.vocabulary_word_id = rv.vocabulary_word_id
           WHERE rv.resource_id = ?""",
        (resource_id,),
    )
    row = await cursor.fetchone()
    total, correct = await _attempt_totals(db, "WHERE resource_id = ?", (resource_id,))
    return AggregateProgress(
        average_mastery_score=round(row["avg_mastery"] or 0.0, 4),
        total_attempts=total,
        correct_attempts=correct,
        correct_rate=_rate(correct, total),
    )


async def get_skill_aggregate(db, skill_id: int) -> AggregateProgress:
    """Mastery over words practiced under the skill, volume/accuracy over its attempts."""
    cursor = await db.execute(
        """SELECT AVG(vp.mastery_score) AS avg_mastery
           FROM vocabulary_progress vp
           WHERE vp.vocabulary_word_id IN (
               SELECT DISTINCT vocabulary_word_id FROM vocabulary_attempts WHERE skill_id = ?
           )""",
        (skill_id,),
    )
    row = await cursor.fetchone()
    total, correct = await _attempt_totals(db, "WHERE skill_id = ?", (skill_id,))
    return AggregateProgress(
        average_mastery_score=round(row["avg_mastery"] or 0.0, 4),
        total_attempts=total,
        correct_attempts=correct,
        correct_rate=_rate(correct, total),
    )


async def get_global_aggregate(db) -> AggregateProgress:
    cursor = await db.execute(
        "SELECT AVG(mastery_score) AS avg_mastery FROM vocabulary_progress"
    )
    row = await cursor.fetchone()
    total, correct = await _attempt_totals(db)
    return AggregateProgress(
        average_mastery_score=round(row["avg_mastery"] or 0.0, 4),
        total_attempts=total,
        correct_attempts=correct,
        correct_rate=_rate(correct, total),
    )


async def get_success_rate_7d(db, now: datetime) -> float:
    """Share of vocabulary attempts answered correctly in the trailing seven days."""
    since = (now - timedelta(days=7)).isoformat()
    total, correct = await _attempt_totals(db, "WHERE created_at >= ?", (since,))
    return _rate(correct, total)


async def count_due_vocabulary(db, now: datetime) -> int:
    """Words whose spaced-repetition review date has arrived."""
    cursor = await db.execute(
        """SELECT COUNT(*) AS due
           FROM vocabulary_progress
           WHERE next_review_date IS NOT NULL AND next_review_date <= ?""",
        (now.isoformat(),),
    )
    row = await cursor.fetchone()
    return row["due"] or 0


# ── Dashboard series ─────────────────────────────────────────────────

async def get_vocab_summary(db, now: datetime) -> VocabProgressSummary:
    """Bucket every vocabulary word into new / learning / review / known.

    Known wins over review; a word with no progress row is new.
    """
    now_iso = now.isoformat()
    cursor = await db.execute(
        """SELECT
             SUM(CASE WHEN COALESCE(vp.total_attempts, 0) = 0 THEN 1 ELSE 0 END) AS new_words,
             SUM(CASE WHEN vp.mastery_score >= ? AND vp.production_in_streak >= ?
                      THEN 1 ELSE 0 END) AS known,
             SUM(CASE WHEN NOT (vp.mastery_score >= ? AND vp.production_in_streak >= ?)
                       AND vp.next_review_date IS NOT NULL AND vp.next_review_date <= ?
                      THEN 1 ELSE 0 END) AS review,
             SUM(CASE WHEN vp.total_attempts > 0
                       AND NOT (vp.mastery_score >= ? AND vp.production_in_streak >= ?)
                       AND (vp.next_review_date IS NULL OR vp.next_review_date > ?)
                      THEN 1 ELSE 0 END) AS learning
           FROM vocabulary_words w
           LEFT JOIN vocabulary_progress vp ON vp.vocabulary_word_id = w.id""",
        (
            MASTERY_THRESHOLD, MIN_PRODUCTION_FOR_KNOWN,
            MASTERY_THRESHOLD, MIN_PRODUCTION_FOR_KNOWN, now_iso,
            MASTERY_THRESHOLD, MIN_PRODUCTION_FOR_KNOWN, now_iso,
        ),
    )
    row = await cursor.fetchone()
    return VocabProgressSummary(
        new=row["new_words"] or 0,
        learning=row["learning"] or 0,
        review=row["review"] or 0,
        known=row["known"] or 0,
        success_rate_7d=await get_success_rate_7d(db, now),
    )


async def get_practice_heat(db, from_date: date, to_date: date) -> List[PracticeHeatPoint]:
    """Attempts per UTC day over [from_date, to_date], zero-filled."""
    cursor = await db.execute(
        """SELECT substr(created_at, 1, 10) AS day, COUNT(*) AS cnt
           FROM vocabulary_attempts
           WHERE created_at >= ? AND created_at < ?
           GROUP BY substr(created_at, 1, 10)""",
        (_start_of_day(from_date), _start_of_day(to_date + timedelta(days=1))),
    )
    counts = {row["day"]: row["cnt"] for row in await cursor.fetchall()}

    points = []
    day = from_date
    while day <= to_date:
        points.append(PracticeHeatPoint(date=day, count=counts.get(day.isoformat(), 0)))
        day += timedelta(days=1)
    return points


async def get_recent_resource_progress(db, since: datetime, limit: int = 3) -> List[ResourceProgress]:
    """Resources practiced since `since`, most recent first."""
    cursor = await db.execute(
        """SELECT a.resource_id AS resource_id, r.title AS title,
                  COUNT(*) AS attempts,
                  COALESCE(SUM(a.was_correct), 0) AS correct,
                  MAX(a.created_at) AS last_activity
           FROM vocabulary_attempts a
           JOIN learning_resources r ON r.id = a.resource_id
           WHERE a.created_at >= ?
           GROUP BY a.resource_id, r.title
           ORDER BY MAX(a.created_at) DESC
           LIMIT ?""",
        (since.isoformat(), limit),
    )
    rows = await cursor.fetchall()
    if not rows:
        return []

    ids = [row["resource_id"] for row in rows]
    placeholders = ", ".join("?" for _ in ids)
    cursor = await db.execute(
        f"""SELECT rv.resource_id AS resource_id, AVG(vp.mastery_score) AS avg_mastery
            FROM resource_vocabulary rv
            JOIN vocabulary_progress vp ON vp.vocabulary_word_id = rv.vocabulary_word_id
            WHERE rv.resource_id IN ({placeholders})
            GROUP BY rv.resource_id""",
        tuple(ids),
    )
    mastery = {row["resource_id"]: row["avg_mastery"] or 0.0 for row in await cursor.fetchall()}

    return [
        ResourceProgress(
            resource_id=row["resource_id"],
            title=row["title"] or f"Resource #{row['resource_id']}",
            proficiency=round(mastery.get(row["resource_id"], 0.0), 4),
            last_activity_utc=_parse_dt(row["last_activity"]),
            attempts=row["attempts"],
            correct_rate=_rate(row["correct"], row["attempts"]),
            minutes=max(0, min(row["attempts"] // 3, 180)),
        )
        for row in rows
    ]


async def _skill_rows(db, now: datetime, where: str, params: tuple):
    week_ago = (now - timedelta(days=7)).isoformat()
    two_weeks_ago = (now - timedelta(days=14)).isoformat()
    cursor = await db.execute(
        f"""SELECT a.skill_id AS skill_id, s.title AS title,
                   MAX(a.created_at) AS last_activity,
                   SUM(CASE WHEN a.created_at >= ? THEN 1 ELSE 0 END) AS recent_total,
                   SUM(CASE WHEN a.created_at >= ? THEN a.was_correct ELSE 0 END) AS recent_correct,
                   SUM(CASE WHEN a.created_at >= ? AND a.created_at < ? THEN 1 ELSE 0 END) AS prior_total,
                   SUM(CASE WHEN a.created_at >= ? AND a.created_at < ? THEN a.was_correct ELSE 0 END) AS prior_correct
            FROM vocabulary_attempts a
            JOIN skill_profiles s ON s.id = a.skill_id
            {where}
            GROUP BY a.skill_id, s.title
            ORDER BY MAX(a.created_at) DESC""",
        (week_ago, week_ago, two_weeks_ago, week_ago, two_weeks_ago, week_ago) + params,
    )
    return await cursor.fetchall()


async def _skill_progress_from_row(db, row) -> SkillProgress:
    aggregate = await get_skill_aggregate(db, row["skill_id"])
    recent = _rate(row["recent_correct"], row["recent_total"])
    prior = _rate(row["prior_correct"], row["prior_total"])
    delta = round(recent - prior, 4) if row["prior_total"] else 0.0
    return SkillProgress(
        skill_id=row["skill_id"],
        title=row["title"] or f"Skill #{row['skill_id']}",
        proficiency=aggregate.average_mastery_score,
        delta_7d=delta,
        last_activity_utc=_parse_dt(row["last_activity"]),
    )


async def get_recent_skill_progress(
    db, since: datetime, limit: int = 3, now: Optional[datetime] = None
) -> List[SkillProgress]:
    """Skills practiced since `since`, most recent first, with their 7-day accuracy delta."""
    now = now or datetime.now(timezone.utc)
    rows = await _skill_rows(db, now, "WHERE a.created_at >= ?", (since.isoformat(),))
    return [await _skill_progress_from_row(db, row) for row in rows[:limit]]


async def get_skill_progress(db, skill_id: int, now: datetime) -> Optional[SkillProgress]:
    """Progress for one skill; None if the skill does not exist."""
    rows = await _skill_rows(db, now, "WHERE a.skill_id = ?", (skill_id,))
    if rows:
        return await _skill_progress_from_row(db, rows[0])

    cursor = await db.execute(
        "SELECT id, title, updated_at FROM skill_profiles WHERE id = ?", (skill_id,)
    )
    skill = await cursor.fetchone()
    if not skill:
        return None
    return SkillProgress(
        skill_id=skill["id"],
        title=skill["title"] or f"Skill #{skill['id']}",
        proficiency=0.0,
        delta_7d=0.0,
        last_activity_utc=_parse_dt(skill["updated_at"]),
    )


# ── Streaks ──────────────────────────────────────────────────────────

def compute_streak(practice_days: List[date], today: date) -> StreakInfo:
    """Current and longest run of consecutive practice days.

    The current streak is still alive if the last practice was today or
    yesterday; it ends the moment a full day passes with nothing recorded.
    Days after `today` are ignored, so a past date sees the streak as it was.
    """
    days = sorted(d for d in set(practice_days) if d <= today)
    if not days:
        return StreakInfo()

    longest = 1
    run = 1
    for prev, cur in zip(days, days[1:]):
        if (cur - prev).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    last = days[-1]
    current = 0
    if (today - last).days <= 1:
        current = 1
        for prev, cur in zip(reversed(days[:-1]), reversed(days[1:])):
            if (cur - prev).days != 1:
                break
            current += 1

    return StreakInfo(current_streak=current, longest_streak=longest, last_practice_date=last)


async def get_streak(db, today: date) -> StreakInfo:
    """Streak over UTC days with at least one activity or vocabulary attempt."""
    cursor = await db.execute(
        """SELECT DISTINCT day FROM (
               SELECT substr(created_at, 1, 10) AS day FROM user_activities
               WHERE substr(created_at, 1, 10) <= ?
               UNION
               SELECT substr(created_at, 1, 10) AS day FROM vocabulary_attempts
               WHERE substr(created_at, 1, 10) <= ?
           ) practice
           ORDER BY day ASC""",
        (today.isoformat(), today.isoformat())
    )
    rows = await cursor.fetchall()
    days = []
    for row in rows:
        try:
            days.append(date.fromisoformat(row["day"]))
        except (TypeError, ValueError):
            logger.warning("Skipping unparseable practice day %r", row["day"])
    return compute_streak(days, today)
