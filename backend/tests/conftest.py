"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests.
"""

import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

import pytest
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any fixtures run
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from tables_app.config.settings import Settings  # noqa: E402
from tables_app.db.models import Fact, PracticeAttempt, PracticeSession  # noqa: E402
from tables_app.enums.practice import SessionMode  # noqa: E402
from tables_app.services.practice.practice_service import PracticeService  # noqa: E402
from tables_app.services.practice.scheduler import MasteryRecord  # noqa: E402
from tables_app.services.practice.store import PracticeStore  # noqa: E402


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    Tests never reach a real database; the values only keep the
    configuration predictable.
    """
    original_env = os.environ.copy()

    test_env = {
        "POSTGRES_HOST": os.environ.get("POSTGRES_HOST", "localhost"),
        "POSTGRES_PORT": os.environ.get("POSTGRES_PORT", "5432"),
        "POSTGRES_USER": os.environ.get("POSTGRES_TEST_USER", "testuser"),
        "POSTGRES_PASSWORD": os.environ.get("POSTGRES_TEST_PASSWORD", "testpass"),
        "POSTGRES_DB": os.environ.get("POSTGRES_TEST_DB", "testdb"),
    }
    os.environ.update(test_env)

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# In-memory Store
# ============================================================================


class FakePracticeStore(PracticeStore):
    """
    PracticeStore kept in dictionaries.

    Mirrors the SQL store's observable behaviour: skip-duplicate inserts,
    (a, b) catalog ordering and copies of MasteryRecords on every read.
    """

    def __init__(self):
        self.facts: dict[int, Fact] = {}
        self.users: set[str] = set()
        self.records: dict[tuple[str, int], MasteryRecord] = {}
        self.sessions: dict[int, PracticeSession] = {}
        self.attempts: list[PracticeAttempt] = []
        self._next_record_id = 1

    async def count_facts(self) -> int:
        return len(self.facts)

    async def insert_facts(self, rows: list[dict[str, Any]]) -> None:
        existing = {(f.a, f.b, f.op) for f in self.facts.values()}
        for row in rows:
            key = (row["a"], row["b"], row["op"])
            if key in existing:
                continue
            fact_id = len(self.facts) + 1
            self.facts[fact_id] = Fact(id=fact_id, a=row["a"], b=row["b"], op=row["op"])
            existing.add(key)

    async def get_fact(self, fact_id: int) -> Optional[Fact]:
        return self.facts.get(fact_id)

    async def list_facts(self, take: Optional[int] = None) -> list[Fact]:
        ordered = sorted(self.facts.values(), key=lambda f: (f.a, f.b))
        return ordered if take is None else ordered[:take]

    async def upsert_user(self, user_id: str) -> None:
        self.users.add(user_id)

    async def find_mastery_records(
        self,
        user_id: str,
        due_before: Optional[datetime] = None,
        due_after: Optional[datetime] = None,
    ) -> list[MasteryRecord]:
        found = [
            replace(r)
            for r in self.records.values()
            if r.user_id == user_id
            and (due_before is None or r.due_at <= due_before)
            and (due_after is None or r.due_at > due_after)
        ]
        return sorted(found, key=lambda r: r.fact_id)

    async def insert_mastery_records_if_absent(self, records: list[MasteryRecord]) -> None:
        for record in records:
            key = (record.user_id, record.fact_id)
            if key in self.records:
                continue
            self.records[key] = replace(record, id=self._next_record_id)
            self._next_record_id += 1

    async def get_mastery_record(self, user_id: str, fact_id: int) -> Optional[MasteryRecord]:
        record = self.records.get((user_id, fact_id))
        return replace(record) if record else None

    async def update_mastery_record(
        self, record_id: int, fields: dict[str, Any]
    ) -> Optional[MasteryRecord]:
        for key, record in self.records.items():
            if record.id == record_id:
                self.records[key] = replace(record, **fields)
                return replace(self.records[key])
        return None

    async def create_session(self, user_id: str, mode: SessionMode) -> PracticeSession:
        session_id = len(self.sessions) + 1
        session = PracticeSession(
            id=session_id,
            user_id=user_id,
            mode=mode.value,
            started_at=datetime.now(timezone.utc),
            ended_at=None,
        )
        self.sessions[session_id] = session
        return session

    async def get_session(self, session_id: int) -> Optional[PracticeSession]:
        return self.sessions.get(session_id)

    async def end_session(self, session_id: int, ended_at: datetime) -> None:
        session = self.sessions.get(session_id)
        if session is not None and session.ended_at is None:
            session.ended_at = ended_at

    async def create_attempt(
        self,
        session_id: int,
        fact_id: int,
        correct: bool,
        latency_ms: int,
        hint_used: bool,
    ) -> PracticeAttempt:
        attempt = PracticeAttempt(
            id=len(self.attempts) + 1,
            session_id=session_id,
            fact_id=fact_id,
            correct=correct,
            latency_ms=latency_ms,
            hint_used=hint_used,
            attempted_at=datetime.now(timezone.utc),
        )
        self.attempts.append(attempt)
        return attempt

    async def list_attempts(self, session_id: int) -> list[PracticeAttempt]:
        return [a for a in self.attempts if a.session_id == session_id]


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the documented practice defaults."""
    return Settings(
        PRACTICE_DEFAULT_USER_ID="demo-student",
        PRACTICE_BATCH_SIZE=10,
        PRACTICE_MAX_BATCH_SIZE=50,
        PRACTICE_CHALLENGE_MIN_BATCH=5,
        PRACTICE_CHALLENGE_MAX_BATCH=20,
        PRACTICE_STAGGER_WINDOW_MINUTES=360,
        PRACTICE_SESSION_SCORE_BASE=100,
    )


@pytest.fixture
def fake_store() -> FakePracticeStore:
    """Empty in-memory store."""
    return FakePracticeStore()


@pytest.fixture
def practice_service(fake_store, test_settings) -> PracticeService:
    """PracticeService over the in-memory store."""
    return PracticeService(fake_store, test_settings)


@pytest.fixture
def fixed_now() -> datetime:
    """Reference instant used by time-dependent tests."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
