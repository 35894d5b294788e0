"""Pydantic API models."""

from tables_app.models.base import ErrorDetail, StrictRequest, StrictResponse
from tables_app.models.practice import (
    AttemptRequest,
    AttemptResult,
    ChallengeQuestion,
    ChallengeRequest,
    ChallengeResponse,
    HintRequest,
    HintResponse,
    NextBatchResponse,
    NextFact,
    RewardClaimRequest,
    RewardClaimResponse,
    SelfTestReport,
    SelfTestResult,
    SessionStartRequest,
    SessionStartResponse,
    SessionSummary,
    WordProblem,
    WordProblemRequest,
)

__all__ = [
    "ErrorDetail",
    "StrictRequest",
    "StrictResponse",
    "AttemptRequest",
    "AttemptResult",
    "ChallengeQuestion",
    "ChallengeRequest",
    "ChallengeResponse",
    "HintRequest",
    "HintResponse",
    "NextBatchResponse",
    "NextFact",
    "RewardClaimRequest",
    "RewardClaimResponse",
    "SelfTestReport",
    "SelfTestResult",
    "SessionStartRequest",
    "SessionStartResponse",
    "SessionSummary",
    "WordProblem",
    "WordProblemRequest",
]
