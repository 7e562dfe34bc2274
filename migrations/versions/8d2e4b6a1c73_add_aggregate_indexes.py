"""add_aggregate_indexes

Indexes behind the progress aggregates, the streak and plan reconstruction.

Revision ID: 8d2e4b6a1c73
Revises: 3c1f9a7e5b20
Create Date: 2026-10-05

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "8d2e4b6a1c73"
down_revision: Union[str, Sequence[str], None] = "3c1f9a7e5b20"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_INDEXES = [
    ("idx_vocab_attempts_created", "vocabulary_attempts(created_at)"),
    ("idx_vocab_attempts_resource", "vocabulary_attempts(resource_id, created_at)"),
    ("idx_vocab_attempts_skill", "vocabulary_attempts(skill_id, created_at)"),
    ("idx_vocab_progress_review", "vocabulary_progress(next_review_date)"),
    ("idx_resource_vocab_resource", "resource_vocabulary(resource_id)"),
    ("idx_user_activities_created", "user_activities(created_at)"),
    ("idx_plan_completions_date", "daily_plan_completions(plan_date, priority)"),
]


def upgrade() -> None:
    for name, target in _INDEXES:
        op.execute(sa.text(f"CREATE INDEX IF NOT EXISTS {name} ON {target}"))


def downgrade() -> None:
    for name, _ in reversed(_INDEXES):
        op.execute(sa.text(f"DROP INDEX IF EXISTS {name}"))
