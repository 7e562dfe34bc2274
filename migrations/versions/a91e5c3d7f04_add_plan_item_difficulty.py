"""add_plan_item_difficulty

Store the planner's difficulty level with each plan record so a
reconstructed plan shows the same level as the generated one.

Revision ID: a91e5c3d7f04
Revises: 8d2e4b6a1c73
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "a91e5c3d7f04"
down_revision: Union[str, Sequence[str], None] = "8d2e4b6a1c73"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _column_exists(bind, table: str, column: str) -> bool:
    if bind.dialect.name == "postgresql":
        result = bind.execute(sa.text(
            "SELECT 1 FROM information_schema.columns "
            "WHERE table_name = :t AND column_name = :c"
        ), {"t": table, "c": column})
        return result.fetchone() is not None
    result = bind.execute(sa.text(f"PRAGMA table_info({table})"))
    return any(row[1] == column for row in result.fetchall())


def upgrade() -> None:
    # Databases created from the current baseline already have the column
    if not _column_exists(op.get_bind(), "daily_plan_completions", "difficulty_level"):
        op.execute(sa.text(
            "ALTER TABLE daily_plan_completions ADD COLUMN difficulty_level TEXT"
        ))


def downgrade() -> None:
    op.execute(sa.text("ALTER TABLE daily_plan_completions DROP COLUMN difficulty_level"))
