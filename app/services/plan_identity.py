"""Content-addressed identifiers for daily plan items.

A plan item's id is derived only from what the item *is*: the UTC date it
belongs to, its activity type, and the resource/skill it points at. The same
logical activity therefore maps to the same id after a cache loss or a process
restart, which is what lets progress written against yesterday's process be
found again today.

Changing the separator, the field order, the prefixes or the hash makes every
already-persisted daily_plan_completions row unreachable.
"""

import hashlib
import uuid
from datetime import date
from typing import Optional

from app.models.plan import PlanActivityType

_SEPARATOR = "_"


def plan_item_key(
    plan_date: date,
    activity_type: PlanActivityType,
    resource_id: Optional[int] = None,
    skill_id: Optional[int] = None,
) -> str:
    """Return the canonical string the id is hashed from."""
    components = [plan_date.isoformat(), PlanActivityType(activity_type).value]
    if resource_id is not None:
        components.append(f"R{resource_id}")
    if skill_id is not None:
        components.append(f"S{skill_id}")
    return _SEPARATOR.join(components)


def generate_plan_item_id(
    plan_date: date,
    activity_type: PlanActivityType,
    resource_id: Optional[int] = None,
    skill_id: Optional[int] = None,
) -> str:
    """SHA-256 of the canonical key, first 16 bytes rendered as a UUID string."""
    key = plan_item_key(plan_date, activity_type, resource_id, skill_id)
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return str(uuid.UUID(bytes=digest[:16]))
