"""
REHABCOACH Rehab Service - Feedback Selection

Priority-ordered coaching rules; the first matching rule wins.
"""

from typing import Callable, NamedTuple, Tuple

from core.config import Settings, settings
from .metrics import MovementMetrics


DEFAULT_FEEDBACK = "Focus on slower, more controlled movements."


class FeedbackRule(NamedTuple):
    name: str
    message: str
    applies: Callable[[MovementMetrics, Settings], bool]


FEEDBACK_RULES: Tuple[FeedbackRule, ...] = (
    FeedbackRule(
        "pain",
        "Take a break if you feel any discomfort. Consider adjusting your form.",
        lambda m, c: bool(m.pain_indicators),
    ),
    FeedbackRule(
        "fatigue",
        "You seem tired. Consider taking a short rest.",
        lambda m, c: m.fatigue_level > c.REST_FATIGUE_THRESHOLD,
    ),
    FeedbackRule(
        "balance",
        "Focus on maintaining your balance. Keep your feet steady.",
        # Unmeasured balance (feet out of view) is not a balance problem
        lambda m, c: m.balance_measured and m.balance_score < c.LOW_BALANCE_THRESHOLD,
    ),
    FeedbackRule(
        "excellent",
        "Excellent form! Keep up the great work!",
        lambda m, c: m.movement_quality > c.EXCELLENT_QUALITY_THRESHOLD,
    ),
    FeedbackRule(
        "good",
        "Good form. Try to maintain steady movements.",
        lambda m, c: m.movement_quality > c.GOOD_QUALITY_THRESHOLD,
    ),
)


def select_feedback(metrics: MovementMetrics, config: Settings = settings) -> str:
    """Coaching message for the current metrics."""
    for rule in FEEDBACK_RULES:
        if rule.applies(metrics, config):
            return rule.message
    return DEFAULT_FEEDBACK
