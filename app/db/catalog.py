"""
catalog.py - Lightweight lookups over learning resources and skills

Only id/title-level columns are read here; transcripts and media payloads are
never loaded.
"""

from typing import Dict, Iterable, List, Any


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


async def get_resource_titles(db, resource_ids: Iterable[int]) -> Dict[int, str]:
    """Map resource id → display title for the given ids (missing ids are omitted)."""
    ids = sorted({int(i) for i in resource_ids if i is not None})
    if not ids:
        return {}
    cursor = await db.execute(
        f"SELECT id, title FROM learning_resources WHERE id IN ({_placeholders(len(ids))})",
        tuple(ids)
    )
    rows = await cursor.fetchall()
    return {row["id"]: row["title"] or f"Resource #{row['id']}" for row in rows}


async def get_skill_names(db, skill_ids: Iterable[int]) -> Dict[int, str]:
    """Map skill id → display name for the given ids (missing ids are omitted)."""
    ids = sorted({int(i) for i in skill_ids if i is not None})
    if not ids:
        return {}
    cursor = await db.execute(
        f"SELECT id, title FROM skill_profiles WHERE id IN ({_placeholders(len(ids))})",
        tuple(ids)
    )
    rows = await cursor.fetchall()
    return {row["id"]: row["title"] or f"Skill #{row['id']}" for row in rows}


async def list_resources(db) -> List[Dict[str, Any]]:
    """All resources with their vocabulary word counts, most recently updated first."""
    cursor = await db.execute(
        """SELECT r.id, r.title, r.media_type, r.language, r.updated_at,
                  COUNT(rv.id) AS word_count
           FROM learning_resources r
           LEFT JOIN resource_vocabulary rv ON rv.resource_id = r.id
           WHERE r.title IS NOT NULL AND r.title <> ''
           GROUP BY r.id, r.title, r.media_type, r.language, r.updated_at
           ORDER BY r.updated_at DESC"""
    )
    rows = await cursor.fetchall()
    return [dict(r) for r in rows]


async def list_skills(db) -> List[Dict[str, Any]]:
    cursor = await db.execute(
        "SELECT id, title, description FROM skill_profiles ORDER BY id ASC"
    )
    rows = await cursor.fetchall()
    return [dict(r) for r in rows]
