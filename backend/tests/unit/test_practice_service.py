"""
Unit tests for PracticeService.

Runs the orchestration against the in-memory FakePracticeStore from
conftest.py, with AsyncMock patches for the failure paths.

Test Organization:
    - TestEnsureSteps: catalog, user and mastery record seeding
    - TestNextBatch: batch selection, backlog fill and catalog fallback
    - TestRecordAttempt: grading, rewards, sessions and latency handling
    - TestSessions: start/end/summary lifecycle
    - TestContent: hints, word problems, challenge rounds, rewards, self-test
"""

import asyncio
import math
import random
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from tables_app.enums.practice import RewardKind, SessionMode
from tables_app.middleware.error_handling import DataIntegrityError, NotFoundError
from tables_app.services.practice.hints import hint
from tables_app.services.practice.practice_service import PracticeService, coerce_latency
from tables_app.services.practice.scheduler import RETRY_INTERVAL_DAYS

USER = "student-1"


def fact_id_for(store, a: int, b: int) -> int:
    return next(f.id for f in store.facts.values() if f.a == a and f.b == b)


# =============================================================================
# Ensure Steps
# =============================================================================


class TestEnsureSteps:
    """Seeding of catalog, users and mastery records."""

    @pytest.mark.asyncio
    async def test_first_batch_seeds_everything(self, practice_service, fake_store, fixed_now):
        await practice_service.get_next_batch(USER, 10, now=fixed_now)

        assert len(fake_store.facts) == 144
        assert USER in fake_store.users
        assert len([r for r in fake_store.records.values() if r.user_id == USER]) == 144

    @pytest.mark.asyncio
    async def test_ensure_steps_are_idempotent(self, practice_service, fake_store, fixed_now):
        await practice_service.get_next_batch(USER, 10, now=fixed_now)
        await practice_service.get_next_batch(USER, 10, now=fixed_now)
        await practice_service.ensure_catalog()

        assert len(fake_store.facts) == 144
        assert len(fake_store.records) == 144

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_do_not_duplicate(
        self, practice_service, fake_store, fixed_now
    ):
        await asyncio.gather(
            practice_service.get_next_batch(USER, 10, now=fixed_now),
            practice_service.get_next_batch(USER, 10, now=fixed_now),
        )

        assert len(fake_store.records) == 144

    @pytest.mark.asyncio
    async def test_catalog_refilled_when_incomplete(self, practice_service, fake_store):
        await fake_store.insert_facts([{"a": 1, "b": 1, "op": "*"}])

        await practice_service.ensure_catalog()

        assert len(fake_store.facts) == 144

    @pytest.mark.asyncio
    async def test_seeded_records_are_staggered(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()
        await practice_service.ensure_user_facts(USER, now=fixed_now)

        due_dates = {r.due_at for r in fake_store.records.values()}
        assert len(due_dates) > 1
        assert all(fixed_now - timedelta(minutes=360) < d <= fixed_now for d in due_dates)
        assert all(r.mastery_level == 0 and r.easiness == 2.5 for r in fake_store.records.values())

    @pytest.mark.asyncio
    async def test_catalog_not_reseeded_when_full(self, practice_service, fake_store):
        await practice_service.ensure_catalog()
        fake_store.insert_facts = AsyncMock()

        await practice_service.ensure_catalog()

        fake_store.insert_facts.assert_not_called()


# =============================================================================
# Next Batch
# =============================================================================


class TestNextBatch:
    """Batch selection through the service."""

    @pytest.mark.asyncio
    async def test_fresh_user_gets_default_batch(self, practice_service, fixed_now):
        batch = await practice_service.get_next_batch(USER, now=fixed_now)

        assert len(batch) == 10
        assert all(t.mastery_level == 0 for t in batch)
        assert all(t.a * t.b >= 1 for t in batch)
        assert len({t.fact_id for t in batch}) == 10

    @pytest.mark.asyncio
    async def test_most_overdue_first(self, practice_service, fake_store, fixed_now):
        batch = await practice_service.get_next_batch(USER, 144, now=fixed_now)

        due_dates = [t.due_at for t in batch]
        assert due_dates == sorted(due_dates)
        assert due_dates[0] == min(r.due_at for r in fake_store.records.values())

    @pytest.mark.asyncio
    async def test_batch_is_deterministic(self, practice_service, fixed_now):
        first = await practice_service.get_next_batch(USER, 10, now=fixed_now)
        second = await practice_service.get_next_batch(USER, 10, now=fixed_now)

        assert [t.fact_id for t in first] == [t.fact_id for t in second]

    @pytest.mark.asyncio
    async def test_backlog_fills_shortfall(self, fake_store, test_settings, fixed_now):
        settings = test_settings.model_copy(update={"PRACTICE_MAX_BATCH_SIZE": 144})
        service = PracticeService(fake_store, settings)
        await service.ensure_catalog()
        target = fact_id_for(fake_store, 3, 4)
        await service.record_attempt(USER, target, 12, now=fixed_now)

        batch = await service.get_next_batch(USER, 144, now=fixed_now)

        assert len(batch) == 144
        # The only record not yet due comes last
        assert batch[-1].fact_id == target
        assert batch[-1].mastery_level == 1

    @pytest.mark.asyncio
    async def test_batch_size_is_capped(self, practice_service, fixed_now):
        batch = await practice_service.get_next_batch(USER, 500, now=fixed_now)

        assert len(batch) == 50

    @pytest.mark.asyncio
    async def test_zero_batch_size_gives_empty_batch(self, practice_service, fake_store, fixed_now):
        batch = await practice_service.get_next_batch(USER, 0, now=fixed_now)

        assert batch == []
        # Ensure steps still ran
        assert len(fake_store.records) == 144

    @pytest.mark.asyncio
    async def test_default_user_when_missing(self, practice_service, fake_store, fixed_now):
        await practice_service.get_next_batch(None, 5, now=fixed_now)

        assert "demo-student" in fake_store.users

    @pytest.mark.asyncio
    async def test_falls_back_to_catalog_order(self, practice_service, fake_store, fixed_now):
        fake_store.find_mastery_records = AsyncMock(return_value=[])

        batch = await practice_service.get_next_batch(USER, 3, now=fixed_now)

        assert [(t.a, t.b) for t in batch] == [(1, 1), (1, 2), (1, 3)]
        assert all(t.mastery_level == 0 for t in batch)
        assert all(t.due_at == fixed_now for t in batch)

    @pytest.mark.asyncio
    async def test_fallback_uses_existing_mastery(
        self, practice_service, fake_store, fixed_now, monkeypatch
    ):
        monkeypatch.setattr(
            "tables_app.services.practice.practice_service.select_next_batch",
            lambda due, backlog, k: [],
        )

        batch = await practice_service.get_next_batch(USER, 2, now=fixed_now)

        assert [(t.a, t.b) for t in batch] == [(1, 1), (1, 2)]
        first = fake_store.records[(USER, batch[0].fact_id)]
        assert batch[0].due_at == first.due_at


# =============================================================================
# Record Attempt
# =============================================================================


class TestRecordAttempt:
    """Grading, rewards and attempt logging."""

    @pytest.mark.asyncio
    async def test_first_correct_answer(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()
        fact_id = fact_id_for(fake_store, 7, 8)

        result = await practice_service.record_attempt(
            USER, fact_id, 56, latency_ms=1234.4, now=fixed_now
        )

        assert result.correct is True
        assert result.expected == 56
        assert result.reward == RewardKind.FIRST_MASTERY
        assert result.awarded == 200
        assert result.mastery_level == 1
        assert result.streak == 1
        assert result.due_at == fixed_now + timedelta(days=2.6)

        record = fake_store.records[(USER, fact_id)]
        assert record.mastery_level == 1
        assert record.last_latency_ms == 1234
        assert record.last_accuracy == 1.0

    @pytest.mark.asyncio
    async def test_second_correct_answer_is_review(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()
        fact_id = fact_id_for(fake_store, 6, 7)

        await practice_service.record_attempt(USER, fact_id, 42, now=fixed_now)
        result = await practice_service.record_attempt(USER, fact_id, 42, now=fixed_now)

        assert result.reward == RewardKind.REVIEW_CORRECT
        assert result.awarded == 10
        assert result.mastery_level == 2
        assert result.streak == 2

    @pytest.mark.asyncio
    async def test_wrong_answer(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()
        fact_id = fact_id_for(fake_store, 9, 6)

        result = await practice_service.record_attempt(USER, fact_id, 56, now=fixed_now)

        assert result.correct is False
        assert result.expected == 54
        assert result.awarded == 0
        assert result.reward == RewardKind.NO_REWARD
        assert result.due_at == fixed_now + timedelta(days=RETRY_INTERVAL_DAYS)
        assert fake_store.records[(USER, fact_id)].last_accuracy == 0.0

    @pytest.mark.asyncio
    async def test_relevel_from_zero_awards_first_mastery_again(
        self, practice_service, fake_store, fixed_now
    ):
        await practice_service.ensure_catalog()
        fact_id = fact_id_for(fake_store, 4, 4)

        await practice_service.record_attempt(USER, fact_id, 16, now=fixed_now)
        await practice_service.record_attempt(USER, fact_id, 0, now=fixed_now)
        result = await practice_service.record_attempt(USER, fact_id, 16, now=fixed_now)

        assert result.awarded == 200

    @pytest.mark.asyncio
    async def test_attempt_is_logged(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()
        fact_id = fact_id_for(fake_store, 2, 3)

        result = await practice_service.record_attempt(
            USER, fact_id, 6, latency_ms=800, hint_used=True, now=fixed_now
        )

        assert len(fake_store.attempts) == 1
        attempt = fake_store.attempts[0]
        assert attempt.session_id == result.session_id
        assert attempt.fact_id == fact_id
        assert attempt.correct is True
        assert attempt.latency_ms == 800
        assert attempt.hint_used is True

    @pytest.mark.asyncio
    async def test_missing_session_opens_practice_session(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()

        result = await practice_service.record_attempt(USER, 1, 1, now=fixed_now)

        session = fake_store.sessions[result.session_id]
        assert session.mode == SessionMode.PRACTICE.value
        assert session.user_id == USER

    @pytest.mark.asyncio
    async def test_unknown_session_opens_new_session(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()

        result = await practice_service.record_attempt(USER, 1, 1, session_id=999, now=fixed_now)

        assert result.session_id != 999
        assert result.session_id in fake_store.sessions

    @pytest.mark.asyncio
    async def test_existing_session_is_reused(self, practice_service, fake_store, fixed_now):
        session_id = await practice_service.start_session(USER, SessionMode.BOSS)
        await practice_service.ensure_catalog()

        result = await practice_service.record_attempt(
            USER, 1, 1, session_id=session_id, now=fixed_now
        )

        assert result.session_id == session_id
        assert len(fake_store.sessions) == 1

    @pytest.mark.asyncio
    async def test_unknown_fact_raises_not_found(self, practice_service, fixed_now):
        with pytest.raises(NotFoundError) as exc_info:
            await practice_service.record_attempt(USER, 4242, 7, now=fixed_now)

        assert exc_info.value.status_code == 404
        assert exc_info.value.details == {"fact_id": 4242}

    @pytest.mark.asyncio
    async def test_missing_mastery_record_raises_integrity_error(
        self, practice_service, fake_store, fixed_now
    ):
        await practice_service.ensure_catalog()
        fake_store.get_mastery_record = AsyncMock(return_value=None)

        with pytest.raises(DataIntegrityError) as exc_info:
            await practice_service.record_attempt(USER, 1, 1, now=fixed_now)

        assert exc_info.value.error_code == "data_integrity_fault"

    @pytest.mark.asyncio
    async def test_record_lost_during_update_raises_integrity_error(
        self, practice_service, fake_store, fixed_now
    ):
        fake_store.update_mastery_record = AsyncMock(return_value=None)

        with pytest.raises(DataIntegrityError):
            await practice_service.record_attempt(USER, 1, 1, now=fixed_now)

    @pytest.mark.asyncio
    async def test_result_reflects_stored_record(self, practice_service, fake_store, fixed_now):
        await practice_service.ensure_catalog()
        target = fact_id_for(fake_store, 6, 7)

        result = await practice_service.record_attempt(USER, target, 42, now=fixed_now)

        stored = fake_store.records[(USER, target)]
        assert result.mastery_level == stored.mastery_level == 1
        assert result.streak == stored.streak
        assert result.due_at == stored.due_at

    @pytest.mark.asyncio
    async def test_unknown_fact_does_not_log_attempt(self, practice_service, fake_store, fixed_now):
        with pytest.raises(NotFoundError):
            await practice_service.record_attempt(USER, 4242, 7, now=fixed_now)

        assert fake_store.attempts == []


class TestCoerceLatency:
    """Latency coercion."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, 0),
            (-5, 0),
            (12.4, 12),
            (12.5, 13),
            (math.nan, 0),
            (math.inf, 0),
            ("fast", 0),
            (900, 900),
        ],
    )
    def test_coerce_latency(self, raw, expected):
        assert coerce_latency(raw) == expected


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:
    """Session lifecycle and summaries."""

    @pytest.mark.asyncio
    async def test_start_session(self, practice_service, fake_store):
        session_id = await practice_service.start_session(USER, SessionMode.CHALLENGE)

        session = fake_store.sessions[session_id]
        assert session.mode == "CHALLENGE"
        assert session.ended_at is None
        assert USER in fake_store.users

    @pytest.mark.asyncio
    async def test_end_session_is_idempotent(self, practice_service, fake_store, fixed_now):
        session_id = await practice_service.start_session(USER)

        await practice_service.end_session(session_id, now=fixed_now)
        await practice_service.end_session(session_id, now=fixed_now + timedelta(hours=1))

        assert fake_store.sessions[session_id].ended_at == fixed_now

    @pytest.mark.asyncio
    async def test_end_unknown_session_raises(self, practice_service):
        with pytest.raises(NotFoundError):
            await practice_service.end_session(404)

    @pytest.mark.asyncio
    async def test_create_session_with_targets(self, practice_service, fake_store, fixed_now):
        response = await practice_service.create_session_with_targets(
            USER, SessionMode.BOSS, batch_size=4
        )

        assert response.user_id == USER
        assert response.mode == SessionMode.BOSS
        assert len(response.targets) == 4
        assert fake_store.sessions[response.session_id].mode == "BOSS"

    @pytest.mark.asyncio
    async def test_summarize_session(self, practice_service, fake_store, fixed_now):
        session_id = await practice_service.start_session(USER)
        await practice_service.ensure_catalog()
        f1 = fact_id_for(fake_store, 2, 2)
        f2 = fact_id_for(fake_store, 3, 3)

        await practice_service.record_attempt(USER, f1, 4, session_id=session_id, now=fixed_now)
        await practice_service.record_attempt(USER, f2, 9, session_id=session_id, now=fixed_now)
        await practice_service.record_attempt(USER, f2, 8, session_id=session_id, now=fixed_now)
        await practice_service.end_session(session_id, now=fixed_now)

        summary = await practice_service.summarize_session(session_id)

        assert summary.ended is True
        assert summary.mode == SessionMode.PRACTICE
        assert summary.attempts == 3
        assert summary.correct_count == 2
        assert summary.accuracy == pytest.approx(2 / 3)
        assert summary.facts_mastered == 2
        # round(100 * (2/3)^2 * sqrt(2)) = round(62.85)
        assert summary.score == 63

    @pytest.mark.asyncio
    async def test_summarize_empty_session(self, practice_service):
        session_id = await practice_service.start_session(USER)

        summary = await practice_service.summarize_session(session_id)

        assert summary.ended is False
        assert summary.attempts == 0
        assert summary.accuracy == 0.0
        assert summary.score == 0

    @pytest.mark.asyncio
    async def test_summarize_unknown_session_raises(self, practice_service):
        with pytest.raises(NotFoundError):
            await practice_service.summarize_session(77)


# =============================================================================
# Content
# =============================================================================


class TestContent:
    """Hints, word problems, challenge rounds, rewards and self-test."""

    def test_hint_sanitizes_operands(self, practice_service):
        assert practice_service.get_hint(7.9, 8.2) == hint(7, 8)
        assert practice_service.get_hint(float("nan"), 5) == hint(0, 5)
        assert practice_service.get_hint(-4, 99) == hint(0, 12)

    def test_word_problem_sanitizes_operands(self, practice_service):
        result = practice_service.get_word_problem(3.7, 40, "animals")

        assert result.operands == (3, 12)
        assert result.theme == "animals"

    @pytest.mark.asyncio
    async def test_challenge_questions(self, fake_store, test_settings):
        service = PracticeService(fake_store, test_settings, rng=random.Random(3))

        response = await service.challenge_questions(USER, 6)

        assert len(response.questions) == 6
        assert fake_store.sessions[response.session_id].mode == "CHALLENGE"
        for q in response.questions:
            assert q.prompt == f"What is {q.a} × {q.b}?"
            assert q.answer == q.a * q.b

    @pytest.mark.asyncio
    async def test_challenge_questions_cover_the_batch(self, practice_service):
        batch = await practice_service.get_next_batch(USER, 8)

        response = await practice_service.challenge_questions(USER, 8)

        assert {q.fact_id for q in response.questions} == {t.fact_id for t in batch}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "requested,expected",
        [(None, 10), (2, 5), (100, 20), (7.6, 8), (float("nan"), 10)],
    )
    async def test_challenge_batch_size_normalized(self, practice_service, requested, expected):
        response = await practice_service.challenge_questions(USER, requested)

        assert len(response.questions) == expected

    def test_claim_reward(self, practice_service):
        assert practice_service.claim_reward("FIRST_MASTERY").coins == 200
        assert practice_service.claim_reward("REVIEW_CORRECT").coins == 10
        unknown = practice_service.claim_reward("JACKPOT")
        assert unknown.kind == RewardKind.NO_REWARD
        assert unknown.coins == 0

    def test_self_test_passes(self, practice_service):
        report = practice_service.self_test()

        assert report.ok is True
        assert [r.name for r in report.results] == [
            "scheduler_correct",
            "scheduler_wrong",
            "hint_7x8",
            "word_problem",
        ]
        assert all(r.ok for r in report.results)

    def test_self_test_reports_failures(self, practice_service, monkeypatch):
        monkeypatch.setattr(
            "tables_app.services.practice.practice_service.hint",
            lambda a, b: "no rhyme here",
        )

        report = practice_service.self_test()

        assert report.ok is False
        failed = [r.name for r in report.results if not r.ok]
        assert failed == ["hint_7x8"]
