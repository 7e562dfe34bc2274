from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class PlanActivityType(str, Enum):
    VOCABULARY_REVIEW = "VocabularyReview"
    READING = "Reading"
    LISTENING = "Listening"
    VIDEO_WATCHING = "VideoWatching"
    SHADOWING = "Shadowing"
    CLOZE = "Cloze"
    TRANSLATION = "Translation"
    CONVERSATION = "Conversation"
    VOCABULARY_GAME = "VocabularyGame"
    WRITING = "Writing"


# ── Daily plan ───────────────────────────────────────────────────────

class StreakInfo(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    last_practice_date: Optional[date] = None


class PlanItem(BaseModel):
    id: str
    title_key: str
    description_key: str
    activity_type: PlanActivityType
    estimated_minutes: int
    priority: int
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    route: str
    route_parameters: dict[str, Any] = {}
    resource_id: Optional[int] = None
    resource_title: Optional[str] = None
    skill_id: Optional[int] = None
    skill_name: Optional[str] = None
    vocab_due_count: Optional[int] = None
    difficulty_level: Optional[str] = None
    minutes_spent: int = 0


class TodaysPlan(BaseModel):
    generated_for_date: date
    items: list[PlanItem] = []
    estimated_total_minutes: int = 0
    completed_count: int = 0
    total_count: int = 0
    completion_percentage: float = 0.0
    streak: StreakInfo = Field(default_factory=StreakInfo)
    resource_titles: Optional[str] = None
    skill_title: Optional[str] = None
    rationale: str = ""
    is_fallback: bool = False


# ── Generative planner contract ──────────────────────────────────────

class PlanActivity(BaseModel):
    """One activity proposed by the generative planner.

    activity_type stays a plain string here: the planner may invent types the
    engine does not know, and those are dropped during conversion rather than
    failing validation of the whole response.
    """

    activity_type: str
    resource_id: Optional[int] = None
    skill_id: Optional[int] = None
    estimated_minutes: int = Field(default=10, ge=0)
    priority: int = 1
    vocab_word_count: Optional[int] = None
    difficulty_level: Optional[str] = None


class DailyPlanResponse(BaseModel):
    activities: list[PlanActivity] = []
    rationale: str = ""


class ActivitySummary(BaseModel):
    date: date
    activity_type: str
    resource_id: Optional[int] = None
    resource_title: Optional[str] = None
    skill_id: Optional[int] = None
    skill_name: Optional[str] = None
    minutes_spent: int = 0


class ResourceOption(BaseModel):
    id: int
    title: str
    media_type: str = ""
    language: str = ""
    word_count: int = 0


class SkillOption(BaseModel):
    id: int
    title: str
    description: str = ""


class DailyPlanRequest(BaseModel):
    preferred_session_minutes: int = 20
    target_level: str = "Not Set"
    native_language: str = "English"
    target_language: str = "Korean"
    vocabulary_due_count: int = 0
    recent_history: list[ActivitySummary] = []
    available_resources: list[ResourceOption] = []
    available_skills: list[SkillOption] = []


# ── Progress aggregates ──────────────────────────────────────────────

class AggregateProgress(BaseModel):
    average_mastery_score: float = 0.0
    total_attempts: int = 0
    correct_attempts: int = 0
    correct_rate: float = 0.0


class ResourceProgress(BaseModel):
    resource_id: int
    title: str
    proficiency: float  # 0..1
    last_activity_utc: Optional[datetime] = None
    attempts: int = 0
    correct_rate: float = 0.0  # 0..1
    minutes: int = 0


class SkillProgress(BaseModel):
    skill_id: int
    title: str
    proficiency: float  # 0..1
    delta_7d: float = 0.0  # -1..+1
    last_activity_utc: Optional[datetime] = None


class VocabProgressSummary(BaseModel):
    new: int = 0
    learning: int = 0
    review: int = 0
    known: int = 0
    success_rate_7d: float = 0.0  # 0..1


class PracticeHeatPoint(BaseModel):
    date: date
    count: int


# ── Request bodies ───────────────────────────────────────────────────

class PlanItemProgress(BaseModel):
    minutes_spent: int = Field(ge=0)


class ActivityEntry(BaseModel):
    activity: str
    input: Optional[str] = None
    fluency: float = 0.0
    accuracy: float = 0.0


class VocabularyAttemptEntry(BaseModel):
    vocabulary_word_id: int
    activity: str
    was_correct: bool
    resource_id: Optional[int] = None
    skill_id: Optional[int] = None
    input_mode: Optional[str] = None
    response_time_ms: Optional[int] = Field(default=None, ge=0)
