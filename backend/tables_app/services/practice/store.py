"""
Practice Persistence

PracticeStore is the storage contract the practice service depends on.
SQLPracticeStore implements it on an async SQLAlchemy session.

Seeding writes (catalog, users, mastery records) use INSERT ... ON CONFLICT
DO NOTHING so concurrent first requests for the same learner cannot create
duplicates. The dialect-specific insert is picked from the bound engine:
PostgreSQL in production, SQLite in tests.

Mastery rows leave the store as MasteryRecord dataclasses. The conversion
normalizes datetimes to UTC (SQLite hands back naive values) and clamps the
scheduling fields into their valid ranges.

Usage:
    from tables_app.services.practice.store import SQLPracticeStore

    store = SQLPracticeStore(db)
    records = await store.find_mastery_records("demo-student", due_before=now)
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tables_app.db.models import Fact, PracticeAttempt, PracticeSession, User, UserFact
from tables_app.enums.practice import SessionMode
from tables_app.services.practice.scheduler import (
    DEFAULT_EASINESS,
    MAX_MASTERY_LEVEL,
    MIN_EASINESS,
    MasteryRecord,
)

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_mastery_record(row: UserFact) -> MasteryRecord:
    """Convert a user_facts row into a validated MasteryRecord."""
    return MasteryRecord(
        id=row.id,
        user_id=row.user_id,
        fact_id=row.fact_id,
        mastery_level=max(0, min(MAX_MASTERY_LEVEL, row.mastery_level or 0)),
        streak=max(0, row.streak or 0),
        easiness=max(MIN_EASINESS, row.easiness if row.easiness is not None else DEFAULT_EASINESS),
        interval_days=max(0.0, row.interval_days or 0.0),
        due_at=_as_utc(row.due_at),
        last_latency_ms=row.last_latency_ms,
        last_accuracy=row.last_accuracy,
    )


class PracticeStore(ABC):
    """Storage operations needed by PracticeService."""

    # Catalog
    @abstractmethod
    async def count_facts(self) -> int: ...

    @abstractmethod
    async def insert_facts(self, rows: list[dict[str, Any]]) -> None:
        """Insert catalog rows, skipping any (a, b, op) that already exists."""

    @abstractmethod
    async def get_fact(self, fact_id: int) -> Optional[Fact]: ...

    @abstractmethod
    async def list_facts(self, take: Optional[int] = None) -> list[Fact]:
        """Catalog facts ordered by (a, b), optionally limited to the first `take`."""

    # Users
    @abstractmethod
    async def upsert_user(self, user_id: str) -> None: ...

    # Mastery records
    @abstractmethod
    async def find_mastery_records(
        self,
        user_id: str,
        due_before: Optional[datetime] = None,
        due_after: Optional[datetime] = None,
    ) -> list[MasteryRecord]:
        """
        Records for a learner.

        due_before keeps records with due_at <= due_before; due_after keeps
        records with due_at > due_after.
        """

    @abstractmethod
    async def insert_mastery_records_if_absent(self, records: list[MasteryRecord]) -> None:
        """Insert records, skipping any (user_id, fact_id) that already exists."""

    @abstractmethod
    async def get_mastery_record(self, user_id: str, fact_id: int) -> Optional[MasteryRecord]: ...

    @abstractmethod
    async def update_mastery_record(
        self, record_id: int, fields: dict[str, Any]
    ) -> Optional[MasteryRecord]:
        """Apply field updates and return the stored record (None for an unknown id)."""

    # Sessions and attempts
    @abstractmethod
    async def create_session(self, user_id: str, mode: SessionMode) -> PracticeSession: ...

    @abstractmethod
    async def get_session(self, session_id: int) -> Optional[PracticeSession]: ...

    @abstractmethod
    async def end_session(self, session_id: int, ended_at: datetime) -> None: ...

    @abstractmethod
    async def create_attempt(
        self,
        session_id: int,
        fact_id: int,
        correct: bool,
        latency_ms: int,
        hint_used: bool,
    ) -> PracticeAttempt: ...

    @abstractmethod
    async def list_attempts(self, session_id: int) -> list[PracticeAttempt]:
        """Attempts of a session in the order they were logged."""


class SQLPracticeStore(PracticeStore):
    """PracticeStore backed by an async SQLAlchemy session."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the store.

        Args:
            db: Database session (committed by the caller)
        """
        self.db = db

    def _insert(self, table):
        """Dialect-specific INSERT that supports ON CONFLICT DO NOTHING."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(table)
        if dialect == "sqlite":
            return sqlite_insert(table)
        raise NotImplementedError(f"Insert-or-ignore is not supported for dialect '{dialect}'")

    # =========================================================================
    # Catalog
    # =========================================================================

    async def count_facts(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(Fact))
        return result.scalar_one()

    async def insert_facts(self, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return
        stmt = self._insert(Fact.__table__).on_conflict_do_nothing()
        await self.db.execute(stmt, rows)

    async def get_fact(self, fact_id: int) -> Optional[Fact]:
        return await self.db.get(Fact, fact_id)

    async def list_facts(self, take: Optional[int] = None) -> list[Fact]:
        query = select(Fact).order_by(Fact.a, Fact.b)
        if take is not None:
            query = query.limit(take)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # =========================================================================
    # Users
    # =========================================================================

    async def upsert_user(self, user_id: str) -> None:
        stmt = self._insert(User.__table__).values(id=user_id).on_conflict_do_nothing()
        await self.db.execute(stmt)

    # =========================================================================
    # Mastery records
    # =========================================================================

    async def find_mastery_records(
        self,
        user_id: str,
        due_before: Optional[datetime] = None,
        due_after: Optional[datetime] = None,
    ) -> list[MasteryRecord]:
        query = select(UserFact).where(UserFact.user_id == user_id)
        if due_before is not None:
            query = query.where(UserFact.due_at <= due_before)
        if due_after is not None:
            query = query.where(UserFact.due_at > due_after)
        query = query.order_by(UserFact.fact_id)

        result = await self.db.execute(query)
        return [to_mastery_record(row) for row in result.scalars().all()]

    async def insert_mastery_records_if_absent(self, records: list[MasteryRecord]) -> None:
        if not records:
            return
        rows = [
            {
                "user_id": record.user_id,
                "fact_id": record.fact_id,
                "mastery_level": record.mastery_level,
                "streak": record.streak,
                "easiness": record.easiness,
                "interval_days": record.interval_days,
                "due_at": record.due_at,
            }
            for record in records
        ]
        logger.debug(f"Inserting {len(rows)} mastery records for user {records[0].user_id}")
        stmt = self._insert(UserFact.__table__).on_conflict_do_nothing()
        await self.db.execute(stmt, rows)

    async def get_mastery_record(self, user_id: str, fact_id: int) -> Optional[MasteryRecord]:
        result = await self.db.execute(
            select(UserFact).where(
                UserFact.user_id == user_id,
                UserFact.fact_id == fact_id,
            )
        )
        row = result.scalar_one_or_none()
        return to_mastery_record(row) if row else None

    async def update_mastery_record(
        self, record_id: int, fields: dict[str, Any]
    ) -> Optional[MasteryRecord]:
        row = await self.db.get(UserFact, record_id)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        await self.db.flush()
        return to_mastery_record(row)

    # =========================================================================
    # Sessions and attempts
    # =========================================================================

    async def create_session(self, user_id: str, mode: SessionMode) -> PracticeSession:
        session = PracticeSession(
            user_id=user_id,
            mode=mode.value,
            started_at=datetime.now(timezone.utc),
        )
        self.db.add(session)
        await self.db.flush()
        return session

    async def get_session(self, session_id: int) -> Optional[PracticeSession]:
        return await self.db.get(PracticeSession, session_id)

    async def end_session(self, session_id: int, ended_at: datetime) -> None:
        session = await self.db.get(PracticeSession, session_id)
        if session is None or session.ended_at is not None:
            return
        session.ended_at = ended_at
        await self.db.flush()

    async def create_attempt(
        self,
        session_id: int,
        fact_id: int,
        correct: bool,
        latency_ms: int,
        hint_used: bool,
    ) -> PracticeAttempt:
        attempt = PracticeAttempt(
            session_id=session_id,
            fact_id=fact_id,
            correct=correct,
            latency_ms=latency_ms,
            hint_used=hint_used,
            attempted_at=datetime.now(timezone.utc),
        )
        self.db.add(attempt)
        await self.db.flush()
        return attempt

    async def list_attempts(self, session_id: int) -> list[PracticeAttempt]:
        result = await self.db.execute(
            select(PracticeAttempt)
            .where(PracticeAttempt.session_id == session_id)
            .order_by(PracticeAttempt.id)
        )
        return list(result.scalars().all())
