"""
plan_records.py - Database helpers for daily_plan_completions

One row per (plan_date, plan_item_id). Rows are pre-created when a plan is
generated and then updated as the learner works, so every writer goes through
upsert_plan_record() / update_plan_record_progress() which look the key up
first and only insert when it is missing.
"""

from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_dict(row) -> Dict[str, Any]:
    record = dict(row)
    record["is_completed"] = bool(record.get("is_completed"))
    return record


# ══════════════════════════════════════════════════════════════════════════════
# READS
# ══════════════════════════════════════════════════════════════════════════════

async def get_plan_record(db, plan_date: date, plan_item_id: str) -> Optional[Dict[str, Any]]:
    """Get the record for one plan item on one date."""
    cursor = await db.execute(
        """SELECT * FROM daily_plan_completions
           WHERE plan_date = ? AND plan_item_id = ?""",
        (plan_date.isoformat(), plan_item_id)
    )
    row = await cursor.fetchone()
    return _row_to_dict(row) if row else None


async def get_plan_records(db, plan_date: date) -> List[Dict[str, Any]]:
    """Get every record for a date, ordered the way the plan is displayed."""
    cursor = await db.execute(
        """SELECT * FROM daily_plan_completions
           WHERE plan_date = ?
           ORDER BY priority ASC, id ASC""",
        (plan_date.isoformat(),)
    )
    rows = await cursor.fetchall()
    return [_row_to_dict(r) for r in rows]


async def get_records_since(db, since: date) -> List[Dict[str, Any]]:
    """Records from `since` onwards (inclusive), newest first. Feeds planner history."""
    cursor = await db.execute(
        """SELECT * FROM daily_plan_completions
           WHERE plan_date >= ?
           ORDER BY plan_date DESC, priority ASC""",
        (since.isoformat(),)
    )
    rows = await cursor.fetchall()
    return [_row_to_dict(r) for r in rows]


# ══════════════════════════════════════════════════════════════════════════════
# WRITES
# ══════════════════════════════════════════════════════════════════════════════

async def upsert_plan_record(
    db,
    plan_date: date,
    plan_item_id: str,
    activity_type: str,
    estimated_minutes: int,
    priority: int,
    title_key: str,
    description_key: str,
    rationale: str = "",
    resource_id: Optional[int] = None,
    skill_id: Optional[int] = None,
    difficulty_level: Optional[str] = None,
    commit: bool = True,
) -> int:
    """Insert the record for a plan item, or refresh its descriptive fields.

    Progress columns (is_completed, completed_at, minutes_spent) of an
    existing row are left alone, so pre-creating twice never resets work.
    Returns the row id.
    """
    now = _now_iso()
    existing = await get_plan_record(db, plan_date, plan_item_id)
    if existing:
        await db.execute(
            """UPDATE daily_plan_completions
               SET activity_type = ?, resource_id = ?, skill_id = ?,
                   estimated_minutes = ?, priority = ?, title_key = ?,
                   description_key = ?, rationale = ?, difficulty_level = ?,
                   updated_at = ?
               WHERE id = ?""",
            (activity_type, resource_id, skill_id, estimated_minutes, priority,
             title_key, description_key, rationale, difficulty_level, now, existing["id"])
        )
        row_id = existing["id"]
    else:
        cursor = await db.execute(
            """INSERT INTO daily_plan_completions
               (plan_date, plan_item_id, activity_type, resource_id, skill_id,
                is_completed, completed_at, minutes_spent, estimated_minutes, priority,
                title_key, description_key, rationale, difficulty_level, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, 0, NULL, 0, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (plan_date.isoformat(), plan_item_id, activity_type, resource_id, skill_id,
             estimated_minutes, priority, title_key, description_key, rationale,
             difficulty_level, now, now)
        )
        row_id = cursor.lastrowid
    if commit:
        await db.commit()
    return row_id


async def update_plan_record_progress(
    db,
    plan_date: date,
    plan_item_id: str,
    minutes_spent: int,
    completed_at: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Record progress on an existing plan item. Returns the updated row, or None if absent.

    minutes_spent only moves forward: the stored value becomes
    max(stored, minutes_spent). When completed_at is given the row is marked
    complete; a row that is already complete keeps its original completed_at,
    which makes repeated completion calls leave the row unchanged.
    """
    existing = await get_plan_record(db, plan_date, plan_item_id)
    if not existing:
        return None

    minutes = max(existing["minutes_spent"] or 0, minutes_spent)
    is_completed = existing["is_completed"]
    completed_iso = existing["completed_at"]
    if completed_at is not None:
        is_completed = True
        if not completed_iso:
            completed_iso = completed_at.isoformat()

    unchanged = (
        minutes == existing["minutes_spent"]
        and is_completed == existing["is_completed"]
        and completed_iso == existing["completed_at"]
    )
    if unchanged:
        return existing

    now = _now_iso()
    await db.execute(
        """UPDATE daily_plan_completions
           SET minutes_spent = ?, is_completed = ?, completed_at = ?, updated_at = ?
           WHERE id = ?""",
        (minutes, 1 if is_completed else 0, completed_iso, now, existing["id"])
    )
    await db.commit()

    existing.update(
        minutes_spent=minutes,
        is_completed=is_completed,
        completed_at=completed_iso,
        updated_at=now,
    )
    return existing


async def delete_plan_records(db, plan_date: date) -> int:
    """Delete every record for a date. Returns how many rows existed."""
    cursor = await db.execute(
        "SELECT COUNT(*) AS cnt FROM daily_plan_completions WHERE plan_date = ?",
        (plan_date.isoformat(),)
    )
    row = await cursor.fetchone()
    count = row["cnt"] if row else 0

    await db.execute(
        "DELETE FROM daily_plan_completions WHERE plan_date = ?",
        (plan_date.isoformat(),)
    )
    await db.commit()
    return count
