"""Shared fixtures: an in-memory database built from schema.sql, a fixed clock,
a scripted planner and a small data seeder."""

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest
import pytest_asyncio

from app.db.database import SCHEMA_PATH
from app.models.plan import DailyPlanResponse
from app.services.progress_cache import ProgressCache

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db():
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
    await conn.commit()
    yield conn
    await conn.close()


class FixedClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def cache(clock):
    return ProgressCache(ttl_seconds=300, clock=clock)


class ScriptedPlanner:
    """GenerativePlanner stand-in: returns `response`, or raises `error`."""

    def __init__(self, response: DailyPlanResponse = None, error: Exception = None):
        self.response = response
        self.error = error
        self.calls = 0

    async def generate_plan(self, db) -> DailyPlanResponse:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def planner_factory():
    def _make(activities=None, rationale="Start with reading, then review.", error=None):
        response = DailyPlanResponse(activities=activities or [], rationale=rationale)
        return ScriptedPlanner(response=response, error=error)
    return _make


class Seeder:
    def __init__(self, conn):
        self.db = conn

    async def resource(self, title="Seoul Café Dialogue", media_type="Podcast", words=()):
        ts = NOW.isoformat()
        cursor = await self.db.execute(
            """INSERT INTO learning_resources (title, media_type, language, created_at, updated_at)
               VALUES (?, ?, 'Korean', ?, ?)""",
            (title, media_type, ts, ts),
        )
        resource_id = cursor.lastrowid
        for word_id in words:
            await self.db.execute(
                "INSERT INTO resource_vocabulary (resource_id, vocabulary_word_id) VALUES (?, ?)",
                (resource_id, word_id),
            )
        await self.db.commit()
        return resource_id

    async def skill(self, title="Ordering food"):
        ts = NOW.isoformat()
        cursor = await self.db.execute(
            """INSERT INTO skill_profiles (title, description, language, created_at, updated_at)
               VALUES (?, '', 'Korean', ?, ?)""",
            (title, ts, ts),
        )
        await self.db.commit()
        return cursor.lastrowid

    async def word(self, term="커피", mastery=None, due_at=None, attempts=0, production_in_streak=0):
        cursor = await self.db.execute(
            "INSERT INTO vocabulary_words (target_term, native_term, created_at) VALUES (?, ?, ?)",
            (term, "coffee", NOW.isoformat()),
        )
        word_id = cursor.lastrowid
        if mastery is not None or due_at is not None or attempts:
            await self.db.execute(
                """INSERT INTO vocabulary_progress
                   (vocabulary_word_id, mastery_score, total_attempts, production_in_streak, next_review_date)
                   VALUES (?, ?, ?, ?, ?)""",
                (word_id, mastery or 0.0, attempts, production_in_streak,
                 due_at.isoformat() if due_at else None),
            )
        await self.db.commit()
        return word_id

    async def due_words(self, count, due_at=None):
        due_at = due_at or NOW - timedelta(hours=1)
        return [
            await self.word(term=f"단어{i}", mastery=0.4, due_at=due_at, attempts=3)
            for i in range(count)
        ]

    async def attempt(self, word_id, was_correct=True, created_at=NOW, resource_id=None, skill_id=None):
        await self.db.execute(
            """INSERT INTO vocabulary_attempts
               (vocabulary_word_id, resource_id, skill_id, activity, was_correct, created_at)
               VALUES (?, ?, ?, 'VocabularyQuiz', ?, ?)""",
            (word_id, resource_id, skill_id, 1 if was_correct else 0, created_at.isoformat()),
        )
        await self.db.commit()

    async def user_activity(self, created_at=NOW, activity="Reading"):
        await self.db.execute(
            """INSERT INTO user_activities (activity, input, fluency, accuracy, created_at, updated_at)
               VALUES (?, '', 0, 0, ?, ?)""",
            (activity, created_at.isoformat(), created_at.isoformat()),
        )
        await self.db.commit()


@pytest.fixture
def seed(db):
    return Seeder(db)
