"""
fallback_plan.py - Deterministic plan used when the generative planner is unavailable

Built from the due-vocabulary count alone so it can always be produced: no
network, no model, and the same input gives the same plan.
"""

import logging

from app.models.plan import DailyPlanResponse, PlanActivity, PlanActivityType

logger = logging.getLogger(__name__)

FALLBACK_RATIONALE_PREFIX = "Fallback plan"


def build_fallback_response(
    due_count: int,
    threshold: int = 5,
    max_minutes: int = 15,
) -> DailyPlanResponse:
    """A single SRS review sized to the backlog, or nothing if the backlog is small.

    About four due words fit in a minute of review, capped at `max_minutes`.
    """
    if due_count < threshold:
        logger.info("Fallback plan: %d due words (< %d), no activities", due_count, threshold)
        return DailyPlanResponse(
            activities=[],
            rationale=(
                f"{FALLBACK_RATIONALE_PREFIX}: the personalized planner is unavailable "
                f"and only {due_count} words are due for review, so there is nothing to schedule yet."
            ),
        )

    minutes = min(due_count // 4, max_minutes)
    logger.info("Fallback plan: VocabularyReview for %d due words, %d min", due_count, minutes)
    return DailyPlanResponse(
        activities=[
            PlanActivity(
                activity_type=PlanActivityType.VOCABULARY_REVIEW.value,
                estimated_minutes=minutes,
                priority=1,
                vocab_word_count=due_count,
            )
        ],
        rationale=(
            f"{FALLBACK_RATIONALE_PREFIX}: the personalized planner is unavailable, "
            f"so today starts with reviewing your {due_count} due words."
        ),
    )
