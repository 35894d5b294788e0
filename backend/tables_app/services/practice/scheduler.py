"""
Times Table Scheduler

A small SM-2 flavoured spaced repetition rule tuned for single multiplication
facts. Each learner has one MasteryRecord per fact; every attempt moves the
record up or down and pushes its due date out by the new interval.

Key Concepts:
- Mastery level: 0-5, one step up per correct answer, one step down per miss
- Streak: consecutive correct answers, drives the interval growth
- Easiness: per-fact multiplier, never below 1.3
- Due: a record is due when due_at <= now; the rest is backlog

Interval growth on a correct answer:
    streak 1 → 1 day, streak 2 → 3 days, streak n → 2^n days
    then multiplied by easiness and capped at 30 days.
A miss resets the streak and brings the fact back in ~1 hour (0.04 days).

Usage:
    from tables_app.services.practice.scheduler import update_on_attempt, select_next_batch

    record = update_on_attempt(record, correct=True)
    batch = select_next_batch(due, backlog, k=10)
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from tables_app.services.practice.hashing import fnv1a_32, polynomial_hash_32


MAX_MASTERY_LEVEL = 5
MIN_EASINESS = 1.3
DEFAULT_EASINESS = 2.5
EASINESS_GAIN = 0.1
EASINESS_PENALTY = 0.2
MAX_INTERVAL_DAYS = 30.0
RETRY_INTERVAL_DAYS = 0.04
DEFAULT_BATCH_SIZE = 10
MINUTES_PER_DAY = 24 * 60


@dataclass
class MasteryRecord:
    """
    A learner's scheduling state for one fact.

    Maps to a row in the user_facts table. All datetimes are
    timezone-aware UTC.
    """

    user_id: str
    fact_id: int
    mastery_level: int = 0  # 0-5
    streak: int = 0
    easiness: float = DEFAULT_EASINESS
    interval_days: float = 0.0
    due_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None
    last_latency_ms: Optional[int] = None
    last_accuracy: Optional[float] = None


def interval_for_streak(streak: int, easiness: float) -> float:
    """Days until the next review after a correct answer."""
    if streak == 1:
        base = 1
    elif streak == 2:
        base = 3
    else:
        base = 2**streak
    return min(MAX_INTERVAL_DAYS, base * easiness)


def update_on_attempt(
    record: MasteryRecord,
    correct: bool,
    now: Optional[datetime] = None,
) -> MasteryRecord:
    """
    Apply one attempt to a record.

    The input record is left untouched; a new record is returned.

    Args:
        record: Current scheduling state
        correct: Whether the learner answered correctly
        now: Reference instant (defaults to current UTC time)

    Returns:
        Updated record with new level, streak, easiness, interval and due date
    """
    now = now or datetime.now(timezone.utc)

    if correct:
        streak = record.streak + 1
        easiness = max(MIN_EASINESS, record.easiness + EASINESS_GAIN)
        mastery_level = min(MAX_MASTERY_LEVEL, record.mastery_level + 1)
        interval_days = interval_for_streak(streak, easiness)
    else:
        streak = 0
        easiness = max(MIN_EASINESS, record.easiness - EASINESS_PENALTY)
        mastery_level = max(0, record.mastery_level - 1)
        interval_days = RETRY_INTERVAL_DAYS

    return replace(
        record,
        streak=streak,
        easiness=easiness,
        mastery_level=mastery_level,
        interval_days=interval_days,
        due_at=now + timedelta(days=interval_days),
    )


def weakness_key(record: MasteryRecord) -> tuple:
    """Sort key: lowest level first, then earliest due, then a stable scramble."""
    return (record.mastery_level, record.due_at, fnv1a_32(str(record.fact_id)))


def select_next_batch(
    due: Iterable[MasteryRecord],
    backlog: Iterable[MasteryRecord],
    k: int = DEFAULT_BATCH_SIZE,
) -> list[MasteryRecord]:
    """
    Pick up to k records, weakest first.

    Due records are taken first; any shortfall is filled from the backlog.
    Both groups use the same ordering, so the result is stable for
    identical inputs.

    Args:
        due: Records with due_at <= now
        backlog: Records with due_at > now
        k: Batch size

    Returns:
        At most k records (empty when k <= 0 or nothing is available)
    """
    if k <= 0:
        return []

    batch = sorted(due, key=weakness_key)[:k]
    if len(batch) < k:
        batch.extend(sorted(backlog, key=weakness_key)[: k - len(batch)])
    return batch


def seed_offset_minutes(user_id: str, fact_id: int, window_minutes: int) -> int:
    """Deterministic per-(user, fact) offset in [0, window_minutes)."""
    if window_minutes <= 0:
        return 0
    return polynomial_hash_32(f"{user_id}:{fact_id}") % window_minutes


def seed_mastery_record(
    user_id: str,
    fact_id: int,
    now: Optional[datetime] = None,
    window_minutes: int = 6 * 60,
) -> MasteryRecord:
    """
    Initial record for a fact the learner has never seen.

    New records are spread over the stagger window in the past so a fresh
    learner does not get every fact due at the same instant.
    """
    now = now or datetime.now(timezone.utc)
    offset = seed_offset_minutes(user_id, fact_id, window_minutes)
    return MasteryRecord(
        user_id=user_id,
        fact_id=fact_id,
        mastery_level=0,
        streak=0,
        easiness=DEFAULT_EASINESS,
        interval_days=offset / MINUTES_PER_DAY,
        due_at=now - timedelta(minutes=offset),
    )
