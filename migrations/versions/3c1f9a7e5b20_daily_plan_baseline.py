"""daily_plan_baseline

Catalog, vocabulary, activity log and daily plan record tables, created from
app/db/schema.sql.

Revision ID: 3c1f9a7e5b20
Revises:
Create Date: 2026-09-28 10:14:03.518220

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "3c1f9a7e5b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _adapt_sql(sql: str, dialect_name: str) -> str:
    """Adapt DDL for the target database dialect."""
    if dialect_name == "postgresql":
        sql = sql.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    return sql


def upgrade() -> None:
    """Create the baseline schema.

    schema.sql only uses IF NOT EXISTS, so running this against a database
    that already has the tables is harmless.
    """
    dialect_name = op.get_bind().dialect.name

    schema_path = Path(__file__).resolve().parents[2] / "app" / "db" / "schema.sql"
    schema_sql = schema_path.read_text(encoding="utf-8")
    # op.execute runs one statement at a time
    for statement in schema_sql.split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(_adapt_sql(cleaned, dialect_name)))


def downgrade() -> None:
    """Drop all tables, dependents first."""
    tables = [
        "daily_plan_completions",
        "user_activities",
        "vocabulary_attempts",
        "vocabulary_progress",
        "resource_vocabulary",
        "vocabulary_words",
        "skill_profiles",
        "learning_resources",
    ]
    for table in tables:
        op.execute(sa.text(f"DROP TABLE IF EXISTS {table}"))
