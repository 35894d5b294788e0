"""
Practice API Models (Pydantic)

Request/response schemas for the times tables practice API:
- Scheduler batches
- Attempts and rewards
- Sessions and summaries
- Hints, word problems and challenge questions

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation.
    The SQLAlchemy tables live in tables_app/db/models.py.

    Data flows: API Request → Pydantic → PracticeService → PracticeStore → Database
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tables_app.models.base import StrictRequest, StrictResponse
from tables_app.enums.practice import RewardKind, SessionMode


# ===========================================
# Scheduler Models
# ===========================================


class NextFact(StrictResponse):
    """
    One fact selected for practice, annotated with the learner's mastery.

    Batches that fall back to catalog order still use this shape; facts the
    learner has no record for report level 0 and are due now.
    """

    fact_id: int
    a: int = Field(..., ge=1, le=12)
    b: int = Field(..., ge=1, le=12)
    op: str = "*"
    mastery_level: int = Field(0, ge=0, le=5)
    due_at: datetime


class NextBatchResponse(StrictResponse):
    """Ordered batch returned by the scheduler endpoint."""

    user_id: str
    targets: list[NextFact]


# ===========================================
# Attempt Models
# ===========================================


class AttemptRequest(StrictRequest):
    """
    Submitted answer for one fact.

    Note: Uses StrictRequest - unknown fields will be rejected with 422.
    """

    user_id: Optional[str] = Field(None, description="Learner id (default learner if omitted)")
    session_id: Optional[int] = Field(None, description="Session to log the attempt in")
    fact_id: int = Field(..., description="Fact being answered")
    answer: int = Field(..., description="Learner's answer")
    latency_ms: Optional[float] = Field(None, description="Time to answer in milliseconds")
    hint_used: bool = Field(False, description="Whether a hint was shown first")


class AttemptResult(StrictResponse):
    """
    Outcome of a recorded attempt.

    `awarded` is 200 for the first climb off level 0, 10 for any other
    correct answer and 0 for a miss.
    """

    correct: bool
    expected: int
    awarded: int
    reward: RewardKind
    mastery_level: int = Field(..., ge=0, le=5)
    streak: int = Field(..., ge=0)
    due_at: datetime
    session_id: int


# ===========================================
# Session Models
# ===========================================


class SessionStartRequest(StrictRequest):
    """Request to open a practice session with its first batch."""

    user_id: Optional[str] = None
    mode: SessionMode = SessionMode.PRACTICE
    batch_size: Optional[int] = Field(None, ge=1)


class SessionStartResponse(StrictResponse):
    """Newly opened session and the facts to practice first."""

    session_id: int
    user_id: str
    mode: SessionMode
    targets: list[NextFact]


class SessionSummary(StrictResponse):
    """
    Summary of a practice session.

    `score` rewards accuracy quadratically and breadth of facts answered
    correctly by its square root.
    """

    session_id: int
    mode: SessionMode
    ended: bool
    attempts: int = 0
    correct_count: int = 0
    accuracy: float = Field(0.0, ge=0.0, le=1.0)
    facts_mastered: int = 0
    score: int = 0


# ===========================================
# Content Models
# ===========================================


class HintRequest(StrictRequest):
    """Request for a deterministic hint."""

    a: float
    b: float


class HintResponse(StrictResponse):
    """Hint text for an operand pair."""

    hint: str


class WordProblemRequest(StrictRequest):
    """Request for a themed word problem."""

    a: float
    b: float
    theme: Optional[str] = None


class WordProblem(StrictResponse):
    """
    Deterministic word problem.

    Identical (a, b, theme) inputs always produce identical text, so
    responses can be cached and tested against golden outputs.
    """

    problem: str = Field(..., max_length=160)
    operands: tuple[int, int]
    op: str = "*"
    theme: str


class ChallengeRequest(StrictRequest):
    """Request for a challenge round."""

    user_id: Optional[str] = None
    batch_size: Optional[float] = None


class ChallengeQuestion(StrictResponse):
    """One plain challenge question built from a scheduled fact."""

    fact_id: int
    a: int
    b: int
    prompt: str
    answer: int


class ChallengeResponse(StrictResponse):
    """Challenge session with its questions."""

    session_id: int
    user_id: str
    questions: list[ChallengeQuestion]


class RewardClaimRequest(StrictRequest):
    """Request to price a reward event."""

    kind: Optional[str] = None


class RewardClaimResponse(StrictResponse):
    """Coins granted for a reward event."""

    kind: RewardKind
    coins: int


# ===========================================
# Self-test Models
# ===========================================


class SelfTestResult(BaseModel):
    """Outcome of one built-in self check."""

    name: str
    ok: bool
    info: Optional[str] = None


class SelfTestReport(BaseModel):
    """All built-in self checks."""

    ok: bool
    results: list[SelfTestResult]
