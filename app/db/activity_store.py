"""
activity_store.py - Append-only learning attempt records

Two tables feed every progress aggregate and the streak:
- user_activities: one row per finished learning activity
- vocabulary_attempts: one row per vocabulary answer

Writers accept the process ProgressCache and drop the vocabulary summary and
practice heat entries after a successful insert, so the dashboard reflects a
just-recorded attempt without waiting out the TTL. Today's plan is never
invalidated here; activity does not change the plan's shape.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

logger = logging.getLogger(__name__)


def _invalidate_activity_aggregates(cache) -> None:
    if cache is None:
        return
    cache.invalidate_vocab_summary()
    cache.invalidate_practice_heat()


async def record_activity(
    db,
    activity: str,
    input: Optional[str] = None,
    fluency: float = 0.0,
    accuracy: float = 0.0,
    created_at: Optional[datetime] = None,
    cache=None,
) -> int:
    """Append a user activity. Returns the new row id."""
    created = (created_at or datetime.now(timezone.utc)).isoformat()
    cursor = await db.execute(
        """INSERT INTO user_activities (activity, input, fluency, accuracy, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (activity, input, fluency, accuracy, created, created)
    )
    await db.commit()
    _invalidate_activity_aggregates(cache)
    logger.debug("Recorded activity %s (accuracy=%.1f)", activity, accuracy)
    return cursor.lastrowid


async def record_vocabulary_attempt(
    db,
    vocabulary_word_id: int,
    activity: str,
    was_correct: bool,
    resource_id: Optional[int] = None,
    skill_id: Optional[int] = None,
    input_mode: Optional[str] = None,
    response_time_ms: Optional[int] = None,
    created_at: Optional[datetime] = None,
    cache=None,
) -> int:
    """Append a vocabulary attempt and bump the word's attempt counters."""
    created = (created_at or datetime.now(timezone.utc)).isoformat()
    cursor = await db.execute(
        """INSERT INTO vocabulary_attempts
           (vocabulary_word_id, resource_id, skill_id, activity, input_mode,
            was_correct, response_time_ms, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (vocabulary_word_id, resource_id, skill_id, activity, input_mode,
         1 if was_correct else 0, response_time_ms, created)
    )
    attempt_id = cursor.lastrowid

    progress = await db.execute(
        "SELECT id FROM vocabulary_progress WHERE vocabulary_word_id = ?",
        (vocabulary_word_id,)
    )
    if await progress.fetchone():
        await db.execute(
            """UPDATE vocabulary_progress
               SET total_attempts = total_attempts + 1,
                   correct_attempts = correct_attempts + ?,
                   last_practiced_at = ?
               WHERE vocabulary_word_id = ?""",
            (1 if was_correct else 0, created, vocabulary_word_id)
        )
    else:
        await db.execute(
            """INSERT INTO vocabulary_progress
               (vocabulary_word_id, total_attempts, correct_attempts, first_seen_at, last_practiced_at)
               VALUES (?, 1, ?, ?, ?)""",
            (vocabulary_word_id, 1 if was_correct else 0, created, created)
        )
    await db.commit()
    _invalidate_activity_aggregates(cache)
    return attempt_id


async def get_activities_between(db, from_utc: datetime, to_utc: datetime) -> List[Dict[str, Any]]:
    """User activities created within [from_utc, to_utc], oldest first."""
    cursor = await db.execute(
        """SELECT * FROM user_activities
           WHERE created_at >= ? AND created_at <= ?
           ORDER BY created_at ASC""",
        (from_utc.isoformat(), to_utc.isoformat())
    )
    rows = await cursor.fetchall()
    return [dict(r) for r in rows]
