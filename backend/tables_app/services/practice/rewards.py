"""
Reward and scoring rules.

Coins are granted per attempt; the session score is computed once when a
session ends.
"""

import math
from typing import Optional

from tables_app.enums.practice import RewardKind

COINS: dict[RewardKind, int] = {
    RewardKind.FIRST_MASTERY: 200,
    RewardKind.REVIEW_CORRECT: 10,
    RewardKind.NO_REWARD: 0,
}

DEFAULT_SCORE_BASE = 100


def coins_for(kind: RewardKind) -> int:
    return COINS.get(kind, 0)


def parse_reward_kind(value: Optional[str]) -> RewardKind:
    """Map a client-supplied kind name to a RewardKind; unknown names earn nothing."""
    if not value:
        return RewardKind.NO_REWARD
    try:
        return RewardKind(value.strip().upper())
    except ValueError:
        return RewardKind.NO_REWARD


def reward_for_attempt(correct: bool, previous_level: int, new_level: int) -> RewardKind:
    """
    Reward earned by one attempt.

    A correct answer that lifts a fact off level 0 is a first mastery. Any
    other correct answer is a review.
    """
    if not correct:
        return RewardKind.NO_REWARD
    if new_level > previous_level and previous_level == 0:
        return RewardKind.FIRST_MASTERY
    return RewardKind.REVIEW_CORRECT


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def session_score(
    accuracy: float,
    unique_mastered: int,
    base: int = DEFAULT_SCORE_BASE,
) -> int:
    """
    End-of-session score.

    score = round(base × accuracy² × sqrt(max(1, unique_mastered)))

    Accuracy is clamped into [0, 1] first.
    """
    safe_accuracy = max(0.0, min(1.0, accuracy or 0.0))
    mastered = max(1, unique_mastered or 0)
    return round_half_up(base * safe_accuracy**2 * math.sqrt(mastered))
