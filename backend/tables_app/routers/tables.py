"""
Times Tables API Router

Endpoints for scheduling, attempts, sessions and offline content.

Endpoints:
- GET /api/tables/scheduler/next - Next batch of facts for a learner
- POST /api/tables/session - Start a session with its first batch
- POST /api/tables/session/{id}/end - End a session and get its summary
- POST /api/tables/attempt - Submit an answer
- POST /api/tables/coach/hint - Deterministic strategy hint
- POST /api/tables/content/wordproblem - Themed word problem
- POST /api/tables/challenge/questions - Shuffled CHALLENGE round
- POST /api/tables/rewards/claim - Coin value of a reward event
- GET /api/tables/selftest - Built-in sanity checks

Service errors (unknown fact or session, missing mastery record) propagate
to the error handling middleware, which renders the JSON error body.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tables_app.config.settings import get_settings
from tables_app.db.base import get_db
from tables_app.models.base import ErrorDetail
from tables_app.models.practice import (
    AttemptRequest,
    AttemptResult,
    ChallengeRequest,
    ChallengeResponse,
    HintRequest,
    HintResponse,
    NextBatchResponse,
    RewardClaimRequest,
    RewardClaimResponse,
    SelfTestReport,
    SessionStartRequest,
    SessionStartResponse,
    SessionSummary,
    WordProblem,
    WordProblemRequest,
)
from tables_app.services.practice import PracticeService, SQLPracticeStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/tables", tags=["tables"])

NOT_FOUND_RESPONSE = {404: {"model": ErrorDetail, "description": "Unknown fact or session"}}
INTEGRITY_RESPONSE = {500: {"model": ErrorDetail, "description": "Mastery record missing"}}


# ===========================================
# Dependency Injection
# ===========================================


async def get_practice_service(
    db: AsyncSession = Depends(get_db),
) -> PracticeService:
    """Get practice service bound to the request's database session."""
    return PracticeService(SQLPracticeStore(db), get_settings())


# ===========================================
# Scheduling
# ===========================================


@router.get("/scheduler/next", response_model=NextBatchResponse)
async def next_batch(
    user_id: Optional[str] = Query(None, description="Learner id"),
    batch_size: Optional[int] = Query(None, ge=1, description="Number of facts"),
    service: PracticeService = Depends(get_practice_service),
) -> NextBatchResponse:
    """
    Get the learner's next facts, weakest and most overdue first.
    """
    resolved = service.resolve_user(user_id)
    targets = await service.get_next_batch(resolved, batch_size)
    return NextBatchResponse(user_id=resolved, targets=targets)


# ===========================================
# Session Endpoints
# ===========================================


@router.post("/session", response_model=SessionStartResponse)
async def create_session(
    request: SessionStartRequest,
    service: PracticeService = Depends(get_practice_service),
) -> SessionStartResponse:
    """Start a session and return its first batch."""
    return await service.create_session_with_targets(
        request.user_id,
        mode=request.mode,
        batch_size=request.batch_size,
    )


@router.post(
    "/session/{session_id}/end",
    response_model=SessionSummary,
    responses=NOT_FOUND_RESPONSE,
)
async def end_session(
    session_id: int,
    service: PracticeService = Depends(get_practice_service),
) -> SessionSummary:
    """
    End a session and get summary statistics.

    Ending an already ended session returns the same summary.
    """
    await service.end_session(session_id)
    return await service.summarize_session(session_id)


# ===========================================
# Attempt Endpoints
# ===========================================


@router.post(
    "/attempt",
    response_model=AttemptResult,
    responses={**NOT_FOUND_RESPONSE, **INTEGRITY_RESPONSE},
)
async def submit_attempt(
    request: AttemptRequest,
    service: PracticeService = Depends(get_practice_service),
) -> AttemptResult:
    """
    Grade an answer and update the learner's schedule.

    A missing or unknown session_id opens a new PRACTICE session; the id is
    returned in the result.
    """
    return await service.record_attempt(
        request.user_id,
        fact_id=request.fact_id,
        answer=request.answer,
        session_id=request.session_id,
        latency_ms=request.latency_ms,
        hint_used=request.hint_used,
    )


# ===========================================
# Content Endpoints
# ===========================================


@router.post("/coach/hint", response_model=HintResponse)
async def coach_hint(
    request: HintRequest,
    service: PracticeService = Depends(get_practice_service),
) -> HintResponse:
    """Strategy hint for a × b. Works offline."""
    return HintResponse(hint=service.get_hint(request.a, request.b))


@router.post("/content/wordproblem", response_model=WordProblem)
async def word_problem(
    request: WordProblemRequest,
    service: PracticeService = Depends(get_practice_service),
) -> WordProblem:
    """Themed one-sentence word problem for a × b."""
    return service.get_word_problem(request.a, request.b, request.theme)


@router.post("/challenge/questions", response_model=ChallengeResponse)
async def challenge_questions(
    request: ChallengeRequest,
    service: PracticeService = Depends(get_practice_service),
) -> ChallengeResponse:
    """Open a CHALLENGE session with shuffled questions from the next batch."""
    return await service.challenge_questions(request.user_id, request.batch_size)


# ===========================================
# Rewards & Diagnostics
# ===========================================


@router.post("/rewards/claim", response_model=RewardClaimResponse)
async def claim_reward(
    request: RewardClaimRequest,
    service: PracticeService = Depends(get_practice_service),
) -> RewardClaimResponse:
    """Coins for a reward event. Unknown kinds are worth nothing."""
    return service.claim_reward(request.kind)


@router.get("/selftest", response_model=SelfTestReport)
async def self_test(
    service: PracticeService = Depends(get_practice_service),
) -> SelfTestReport:
    """Run the scheduler and content sanity checks."""
    report = service.self_test()
    if not report.ok:
        logger.warning(f"Self-test failed: {[r.name for r in report.results if not r.ok]}")
    return report
