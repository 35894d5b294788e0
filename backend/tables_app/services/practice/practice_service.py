"""
Times Tables Practice Service

Orchestrates practice around the pure scheduler: makes sure the catalog and
a learner's mastery records exist, hands out batches, grades attempts and
keeps the session log.

Every entry point that touches a learner runs the ensure steps first:

1. ensure_catalog      seed the 144 facts (skip duplicates)
2. ensure_user         create the learner row if it is new
3. ensure_user_facts   seed one staggered MasteryRecord per missing fact

All three are idempotent and safe under concurrent first requests.

Usage:
    from tables_app.services.practice.practice_service import PracticeService
    from tables_app.services.practice.store import SQLPracticeStore

    service = PracticeService(SQLPracticeStore(db))

    batch = await service.get_next_batch("demo-student", batch_size=10)
    result = await service.record_attempt("demo-student", fact_id=batch[0].fact_id, answer=12)
"""

import logging
import math
import random
import re
from datetime import datetime, timezone
from typing import Any, Optional

from tables_app.config.settings import Settings, get_settings
from tables_app.enums.practice import SessionMode
from tables_app.middleware.error_handling import DataIntegrityError, NotFoundError
from tables_app.models.practice import (
    AttemptResult,
    ChallengeQuestion,
    ChallengeResponse,
    NextFact,
    RewardClaimResponse,
    SelfTestReport,
    SelfTestResult,
    SessionStartResponse,
    SessionSummary,
    WordProblem,
)
from tables_app.services.practice.catalog import CATALOG_SIZE, catalog_rows
from tables_app.services.practice.hints import hint
from tables_app.services.practice.operands import sanitize_operands
from tables_app.services.practice.problems import problem
from tables_app.services.practice.rewards import (
    coins_for,
    parse_reward_kind,
    reward_for_attempt,
    round_half_up,
    session_score,
)
from tables_app.services.practice.scheduler import (
    MasteryRecord,
    seed_mastery_record,
    select_next_batch,
    update_on_attempt,
)
from tables_app.services.practice.store import PracticeStore

logger = logging.getLogger(__name__)

SEVEN_EIGHT_RHYME = re.compile(r"five-six|five\s*six|56", re.IGNORECASE)


def coerce_latency(value: Any) -> int:
    """Non-negative integer milliseconds; 0 when absent or not a finite number."""
    if value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, round_half_up(number))


class PracticeService:
    """
    Times tables practice orchestration.

    The store is injected so the same logic runs on PostgreSQL in production
    and on an in-memory double in tests.
    """

    def __init__(
        self,
        store: PracticeStore,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize practice service.

        Args:
            store: Persistence collaborator
            settings: Application settings (defaults to the cached settings)
            rng: Random source for shuffling challenge questions
        """
        self.store = store
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()

    def resolve_user(self, user_id: Optional[str]) -> str:
        user_id = (user_id or "").strip()
        return user_id or self.settings.PRACTICE_DEFAULT_USER_ID

    def _resolve_batch_size(self, batch_size: Optional[int]) -> int:
        if batch_size is None:
            return self.settings.PRACTICE_BATCH_SIZE
        return min(int(batch_size), self.settings.PRACTICE_MAX_BATCH_SIZE)

    # =========================================================================
    # Ensure Steps
    # =========================================================================

    async def ensure_catalog(self) -> None:
        """Seed the fact catalog if any of the 144 facts is missing."""
        count = await self.store.count_facts()
        if count >= CATALOG_SIZE:
            return
        await self.store.insert_facts(catalog_rows())
        logger.info(f"Seeded fact catalog ({count} facts were present)")

    async def ensure_user(self, user_id: str) -> None:
        await self.store.upsert_user(user_id)

    async def ensure_user_facts(self, user_id: str, now: Optional[datetime] = None) -> None:
        """Create a staggered MasteryRecord for every fact the learner lacks."""
        now = now or datetime.now(timezone.utc)
        facts = await self.store.list_facts()
        existing = {r.fact_id for r in await self.store.find_mastery_records(user_id)}

        missing = [
            seed_mastery_record(
                user_id,
                fact.id,
                now=now,
                window_minutes=self.settings.PRACTICE_STAGGER_WINDOW_MINUTES,
            )
            for fact in facts
            if fact.id not in existing
        ]
        if not missing:
            return

        await self.store.insert_mastery_records_if_absent(missing)
        logger.info(f"Seeded {len(missing)} mastery records for user {user_id}")

    async def _ensure_all(self, user_id: str, now: datetime) -> None:
        await self.ensure_catalog()
        await self.ensure_user(user_id)
        await self.ensure_user_facts(user_id, now=now)

    # =========================================================================
    # Sessions
    # =========================================================================

    async def start_session(
        self,
        user_id: Optional[str],
        mode: SessionMode = SessionMode.PRACTICE,
    ) -> int:
        """Open a new session and return its id."""
        user_id = self.resolve_user(user_id)
        await self.ensure_user(user_id)
        session = await self.store.create_session(user_id, mode)
        logger.info(f"Started {mode.value} session {session.id} for user {user_id}")
        return session.id

    async def end_session(self, session_id: int, now: Optional[datetime] = None) -> None:
        """
        Mark a session as ended.

        Ending an already ended session is a no-op.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(
                f"Session {session_id} not found", details={"session_id": session_id}
            )
        if session.ended_at is not None:
            return

        await self.store.end_session(session_id, now or datetime.now(timezone.utc))
        logger.info(f"Ended session {session_id}")

    async def create_session_with_targets(
        self,
        user_id: Optional[str],
        mode: SessionMode = SessionMode.PRACTICE,
        batch_size: Optional[int] = None,
    ) -> SessionStartResponse:
        """Start a session and return it together with its first batch."""
        user_id = self.resolve_user(user_id)
        targets = await self.get_next_batch(user_id, batch_size)
        session_id = await self.start_session(user_id, mode)
        return SessionStartResponse(
            session_id=session_id,
            user_id=user_id,
            mode=mode,
            targets=targets,
        )

    async def summarize_session(self, session_id: int) -> SessionSummary:
        """
        Tally a session's attempts.

        The score rewards accuracy (squared) and breadth: the number of
        distinct facts answered correctly.

        Raises:
            NotFoundError: If the session does not exist
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(
                f"Session {session_id} not found", details={"session_id": session_id}
            )

        attempts = await self.store.list_attempts(session_id)
        total = len(attempts)
        correct_count = sum(1 for a in attempts if a.correct)
        accuracy = correct_count / total if total else 0.0
        facts_mastered = len({a.fact_id for a in attempts if a.correct})

        return SessionSummary(
            session_id=session_id,
            mode=SessionMode(session.mode),
            ended=session.ended_at is not None,
            attempts=total,
            correct_count=correct_count,
            accuracy=accuracy,
            facts_mastered=facts_mastered,
            score=session_score(
                accuracy,
                facts_mastered,
                base=self.settings.PRACTICE_SESSION_SCORE_BASE,
            ),
        )

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def get_next_batch(
        self,
        user_id: Optional[str],
        batch_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[NextFact]:
        """
        Next facts to practice, weakest and most overdue first.

        Falls back to the first facts in catalog order when the scheduler
        produces nothing, so a learner always gets something to do.

        Args:
            user_id: Learner id (default learner when empty)
            batch_size: Maximum number of facts (default from settings)
            now: Reference instant (defaults to current UTC time)

        Returns:
            Up to batch_size facts with their current mastery level and due date
        """
        user_id = self.resolve_user(user_id)
        k = self._resolve_batch_size(batch_size)
        now = now or datetime.now(timezone.utc)

        await self._ensure_all(user_id, now)
        if k <= 0:
            return []

        due = await self.store.find_mastery_records(user_id, due_before=now)
        backlog = await self.store.find_mastery_records(user_id, due_after=now)
        logger.debug(f"User {user_id}: {len(due)} due, {len(backlog)} in backlog")

        batch = select_next_batch(due, backlog, k)
        if batch:
            facts = {fact.id: fact for fact in await self.store.list_facts()}
            targets = [
                self._to_next_fact(facts[record.fact_id], record)
                for record in batch
                if record.fact_id in facts
            ]
            if targets:
                return targets

        logger.warning(f"Scheduler returned no facts for user {user_id}, using catalog order")
        return await self._catalog_fallback(user_id, k, now)

    async def _catalog_fallback(self, user_id: str, k: int, now: datetime) -> list[NextFact]:
        facts = await self.store.list_facts(take=k)
        records = {r.fact_id: r for r in await self.store.find_mastery_records(user_id)}
        return [
            NextFact(
                fact_id=fact.id,
                a=fact.a,
                b=fact.b,
                op=fact.op,
                mastery_level=records[fact.id].mastery_level if fact.id in records else 0,
                due_at=records[fact.id].due_at if fact.id in records else now,
            )
            for fact in facts
        ]

    @staticmethod
    def _to_next_fact(fact, record: MasteryRecord) -> NextFact:
        return NextFact(
            fact_id=fact.id,
            a=fact.a,
            b=fact.b,
            op=fact.op,
            mastery_level=record.mastery_level,
            due_at=record.due_at,
        )

    # =========================================================================
    # Attempts
    # =========================================================================

    async def record_attempt(
        self,
        user_id: Optional[str],
        fact_id: int,
        answer: int,
        session_id: Optional[int] = None,
        latency_ms: Optional[float] = None,
        hint_used: bool = False,
        now: Optional[datetime] = None,
    ) -> AttemptResult:
        """
        Grade an answer, log it and update the learner's mastery record.

        A missing or unknown session id opens a new PRACTICE session.

        Args:
            user_id: Learner id (default learner when empty)
            fact_id: Fact being answered
            answer: Learner's answer
            session_id: Session to log the attempt in
            latency_ms: Time to answer; coerced to a non-negative integer
            hint_used: Whether a hint was shown before answering
            now: Reference instant (defaults to current UTC time)

        Returns:
            AttemptResult with correctness, reward and the updated schedule

        Raises:
            NotFoundError: If the fact does not exist
            DataIntegrityError: If the mastery record is missing after seeding
        """
        user_id = self.resolve_user(user_id)
        now = now or datetime.now(timezone.utc)
        latency = coerce_latency(latency_ms)

        await self._ensure_all(user_id, now)

        fact = await self.store.get_fact(fact_id)
        if fact is None:
            raise NotFoundError(f"Fact {fact_id} not found", details={"fact_id": fact_id})

        expected = fact.a * fact.b
        correct = answer == expected

        session = await self.store.get_session(session_id) if session_id is not None else None
        if session is None:
            session = await self.store.create_session(user_id, SessionMode.PRACTICE)
            logger.info(f"Opened PRACTICE session {session.id} for user {user_id}")

        await self.store.create_attempt(
            session_id=session.id,
            fact_id=fact.id,
            correct=correct,
            latency_ms=latency,
            hint_used=hint_used,
        )

        record = await self.store.get_mastery_record(user_id, fact.id)
        if record is None or record.id is None:
            raise DataIntegrityError(
                f"Mastery record missing for user {user_id} and fact {fact.id}",
                details={"user_id": user_id, "fact_id": fact.id},
            )

        updated = update_on_attempt(record, correct, now=now)
        stored = await self.store.update_mastery_record(
            record.id,
            {
                "mastery_level": updated.mastery_level,
                "streak": updated.streak,
                "easiness": updated.easiness,
                "interval_days": updated.interval_days,
                "due_at": updated.due_at,
                "last_latency_ms": latency,
                "last_accuracy": 1.0 if correct else 0.0,
            },
        )
        if stored is None:
            raise DataIntegrityError(
                f"Mastery record {record.id} vanished while recording an attempt",
                details={"user_id": user_id, "fact_id": fact.id},
            )

        kind = reward_for_attempt(correct, record.mastery_level, stored.mastery_level)
        awarded = coins_for(kind)

        logger.info(
            f"Attempt user={user_id} fact={fact.a}x{fact.b} correct={correct} "
            f"level {record.mastery_level}->{stored.mastery_level} awarded={awarded}"
        )

        return AttemptResult(
            correct=correct,
            expected=expected,
            awarded=awarded,
            reward=kind,
            mastery_level=stored.mastery_level,
            streak=stored.streak,
            due_at=stored.due_at,
            session_id=session.id,
        )

    # =========================================================================
    # Content
    # =========================================================================

    def get_hint(self, a: Any, b: Any) -> str:
        return hint(*sanitize_operands(a, b))

    def get_word_problem(self, a: Any, b: Any, theme: Optional[str] = None) -> WordProblem:
        x, y = sanitize_operands(a, b)
        return problem(x, y, theme)

    def _challenge_size(self, batch_size: Optional[float]) -> int:
        low = self.settings.PRACTICE_CHALLENGE_MIN_BATCH
        high = self.settings.PRACTICE_CHALLENGE_MAX_BATCH
        try:
            number = float(batch_size)
        except (TypeError, ValueError):
            return self.settings.PRACTICE_BATCH_SIZE
        if not math.isfinite(number):
            return self.settings.PRACTICE_BATCH_SIZE
        return max(low, min(high, round_half_up(number)))

    async def challenge_questions(
        self,
        user_id: Optional[str],
        batch_size: Optional[float] = None,
    ) -> ChallengeResponse:
        """
        Build a CHALLENGE round from the learner's next batch.

        The batch size is clamped into the configured challenge range and
        the questions are shuffled.
        """
        user_id = self.resolve_user(user_id)
        size = self._challenge_size(batch_size)

        targets = await self.get_next_batch(user_id, size)
        session_id = await self.start_session(user_id, SessionMode.CHALLENGE)

        questions = [
            ChallengeQuestion(
                fact_id=t.fact_id,
                a=t.a,
                b=t.b,
                prompt=f"What is {t.a} × {t.b}?",
                answer=t.a * t.b,
            )
            for t in targets
        ]
        self.rng.shuffle(questions)

        return ChallengeResponse(session_id=session_id, user_id=user_id, questions=questions)

    def claim_reward(self, kind: Optional[str]) -> RewardClaimResponse:
        reward = parse_reward_kind(kind)
        return RewardClaimResponse(kind=reward, coins=coins_for(reward))

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def self_test(self) -> SelfTestReport:
        """Run the built-in sanity checks for the scheduler and content generators."""
        checks = [
            ("scheduler_correct", self._check_scheduler_correct),
            ("scheduler_wrong", self._check_scheduler_wrong),
            ("hint_7x8", self._check_hint_rhyme),
            ("word_problem", self._check_word_problem),
        ]

        results = []
        for name, check in checks:
            try:
                ok, info = check()
            except Exception as e:
                logger.warning(f"Self-test {name} raised: {e}")
                ok, info = False, f"{type(e).__name__}: {e}"
            results.append(SelfTestResult(name=name, ok=ok, info=info))

        return SelfTestReport(ok=all(r.ok for r in results), results=results)

    @staticmethod
    def _check_scheduler_correct() -> tuple[bool, str]:
        record = update_on_attempt(MasteryRecord(user_id="selftest", fact_id=0), True)
        ok = record.streak == 1 and record.mastery_level == 1
        return ok, f"streak={record.streak} level={record.mastery_level}"

    @staticmethod
    def _check_scheduler_wrong() -> tuple[bool, str]:
        start = MasteryRecord(
            user_id="selftest",
            fact_id=0,
            mastery_level=2,
            streak=3,
            easiness=2.5,
            interval_days=1.0,
        )
        record = update_on_attempt(start, False)
        ok = record.streak == 0 and record.mastery_level == 1
        return ok, f"streak={record.streak} level={record.mastery_level}"

    @staticmethod
    def _check_hint_rhyme() -> tuple[bool, str]:
        text = hint(7, 8)
        return bool(SEVEN_EIGHT_RHYME.search(text)), text

    @staticmethod
    def _check_word_problem() -> tuple[bool, str]:
        result = problem(3, 4, "animals")
        ok = result.op == "*" and len(result.operands) == 2 and bool(result.problem)
        return ok, result.problem
