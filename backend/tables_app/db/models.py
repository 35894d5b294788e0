"""
SQLAlchemy Database Models for Times Tables Practice

Tables:
- facts: The fixed 12x12 multiplication catalog
- users: Learners seen by the practice backend
- user_facts: Per-learner mastery state for every fact
- practice_sessions: Practice sittings grouping attempts
- practice_attempts: Append-only log of submitted answers

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    The scheduler works on the MasteryRecord dataclass in
    tables_app/services/practice/scheduler.py; the store converts between them.

    Data flows: Service Layer → MasteryRecord → SQLPracticeStore → SQLAlchemy → Database
"""

from datetime import datetime, timezone
from typing import List, Optional


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tables_app.db.base import Base


# ===========================================
# Fact Catalog
# ===========================================


class Fact(Base):
    """
    One multiplication fact from the fixed catalog.

    Seeded once (144 rows, a and b in 1..12) and never mutated.

    Attributes:
        id: Primary key. Callers treat it as an opaque identifier.
        a: Left operand (1-12).
        b: Right operand (1-12).
        op: Operation symbol, always "*".
    """

    __tablename__ = "facts"
    __table_args__ = (UniqueConstraint("a", "b", "op", name="uq_facts_a_b_op"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    a: Mapped[int] = mapped_column(Integer)
    b: Mapped[int] = mapped_column(Integer)
    op: Mapped[str] = mapped_column(String(4), default="*")

    user_facts: Mapped[List["UserFact"]] = relationship(back_populates="fact")


class User(Base):
    """
    Learner row created lazily the first time a user id is seen.

    Authentication lives outside this service; the row only anchors
    per-learner mastery and sessions.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(String(20), default="STUDENT")
    ai_allowed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


# ===========================================
# Mastery State
# ===========================================


class UserFact(Base):
    """
    Per-learner mastery state for one fact.

    At most one row exists per (user_id, fact_id); the unique constraint
    backs the insert-or-ignore seeding used when a learner is first seen.

    Attributes:
        mastery_level: Learned strength, 0-5.
        streak: Consecutive correct answers since the last miss.
        easiness: Interval multiplier, never below 1.3.
        interval_days: Days until the fact is due again.
        due_at: When the fact is next due (now + interval_days at last update).
        last_latency_ms: Latency of the most recent attempt (diagnostic only).
        last_accuracy: 1.0 or 0.0 for the most recent attempt (diagnostic only).
    """

    __tablename__ = "user_facts"
    __table_args__ = (
        UniqueConstraint("user_id", "fact_id", name="uq_user_facts_user_fact"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    fact_id: Mapped[int] = mapped_column(ForeignKey("facts.id"))

    mastery_level: Mapped[int] = mapped_column(Integer, default=0)
    streak: Mapped[int] = mapped_column(Integer, default=0)
    easiness: Mapped[float] = mapped_column(Float, default=2.5)
    interval_days: Mapped[float] = mapped_column(Float, default=0.0)
    due_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, index=True
    )

    last_latency_ms: Mapped[Optional[int]] = mapped_column(Integer)
    last_accuracy: Mapped[Optional[float]] = mapped_column(Float)

    fact: Mapped["Fact"] = relationship(back_populates="user_facts")


# ===========================================
# Practice Sessions & Attempts
# ===========================================


class PracticeSession(Base):
    """
    One practice sitting.

    A session is active while ended_at is null and ended once it is set.
    Sessions never reactivate.
    """

    __tablename__ = "practice_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    mode: Mapped[str] = mapped_column(String(20))
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    attempts: Mapped[List["PracticeAttempt"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )


class PracticeAttempt(Base):
    """Append-only record of one submitted answer."""

    __tablename__ = "practice_attempts"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("practice_sessions.id"), index=True
    )
    fact_id: Mapped[int] = mapped_column(ForeignKey("facts.id"))

    correct: Mapped[bool] = mapped_column(Boolean)
    latency_ms: Mapped[int] = mapped_column(Integer, default=0)
    hint_used: Mapped[bool] = mapped_column(Boolean, default=False)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    session: Mapped["PracticeSession"] = relationship(back_populates="attempts")
