"""
Practice System Enums

Defines enums for practice sessions, word problem themes and rewards.
"""

from enum import Enum


class SessionMode(str, Enum):
    """
    Kinds of practice sitting.

    The mode only labels the session; scheduling is identical for all modes.
    """

    PRACTICE = "PRACTICE"  # Free practice from the scheduler batch
    CHALLENGE = "CHALLENGE"  # Timed quiz built from the batch
    BOSS = "BOSS"  # End-of-level round


class Theme(str, Enum):
    """Word problem themes."""

    ANIMALS = "animals"
    SPACE = "space"
    PIRATES = "pirates"
    SPORTS = "sports"


class RewardKind(str, Enum):
    """
    Reward events produced by a recorded attempt.

    - FIRST_MASTERY: correct answer that lifted the fact off level 0
    - REVIEW_CORRECT: any other correct answer
    - NO_REWARD: incorrect answer
    """

    FIRST_MASTERY = "FIRST_MASTERY"
    REVIEW_CORRECT = "REVIEW_CORRECT"
    NO_REWARD = "NO_REWARD"
