"""Unit tests for TutorOrchestrator with a fake LLM client."""

from dataclasses import replace
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from src.el_common.errors import (
    ConfigurationError,
    InsufficientCreditsError,
    StorageUnavailableError,
    UpstreamUnavailableError,
)
from src.el_course.domain.models import ChapterContext
from src.el_ledger.application.metering import UsageMeter
from src.el_ledger.domain.models import NOTES_MAX_LENGTH, CreditBalance
from src.el_llm.client import Completion, TokenUsage
from src.el_tutor.application.orchestrator import FALLBACK_ANSWER, TutorOrchestrator
from src.el_tutor.domain.models import Message


def _chapter() -> ChapterContext:
    return ChapterContext(
        chapter_id="ch-1",
        chapter_title="Derivatives",
        content="content",
        course_id="c-1",
        course_title="Calculus I",
        course_description=None,
        course_published=True,
    )


def _make_meter(balance: str = "5") -> AsyncMock:
    meter = AsyncMock()
    if Decimal(balance) > 0:
        meter.require_funds.return_value = Decimal(balance)
    else:
        meter.require_funds.side_effect = InsufficientCreditsError("acc-1", Decimal(balance))
    return meter


def _make_repos():
    course_repo = AsyncMock()
    course_repo.get_chapter_context.return_value = _chapter()
    conversation_repo = AsyncMock()
    conversation_repo.list_history.return_value = []
    conversation_repo.insert_message.side_effect = (
        lambda db, conversation_id, sender, content, model=None: Message(
            id="m-1", conversation_id=conversation_id, sender=sender, content=content, model=model
        )
    )
    return course_repo, conversation_repo


def _make_llm(content: str = "The derivative is 2x.") -> AsyncMock:
    llm = AsyncMock()
    llm.complete.return_value = Completion(
        content=content, usage=TokenUsage(prompt_tokens=1000, completion_tokens=500)
    )
    return llm


def _make_db() -> MagicMock:
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


async def _answer(orchestrator: TutorOrchestrator, db: MagicMock) -> Message:
    return await orchestrator.answer_question(
        db, "acc-1", "ch-1", "conv-1", "What is d/dx x^2?", "gpt_4o_mini"
    )


class TestAnswerQuestion:
    async def test_happy_path(self) -> None:
        course_repo, conversation_repo = _make_repos()
        meter, llm, db = _make_meter(), _make_llm(), _make_db()
        orchestrator = TutorOrchestrator(llm, meter, conversation_repo, course_repo)

        message = await _answer(orchestrator, db)

        assert message.sender == "AI"
        assert message.content == "The derivative is 2x."
        assert message.model == "gpt_4o_mini"
        kwargs = llm.complete.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 500
        assert kwargs["temperature"] == 0.7
        db.commit.assert_awaited_once()
        meter.meter_usage.assert_awaited_once()
        m_args = meter.meter_usage.call_args
        assert m_args.args[1:5] == ("acc-1", "gpt_4o_mini", 1000, 500)
        assert m_args.kwargs["notes"] == 'Question in Chapter "Derivatives" of Calculus I'

    async def test_zero_balance_no_persistence_no_metering(self) -> None:
        course_repo, conversation_repo = _make_repos()
        meter, llm, db = _make_meter("0"), _make_llm(), _make_db()
        orchestrator = TutorOrchestrator(llm, meter, conversation_repo, course_repo)

        with pytest.raises(InsufficientCreditsError):
            await _answer(orchestrator, db)

        llm.complete.assert_not_awaited()
        conversation_repo.insert_message.assert_not_awaited()
        meter.meter_usage.assert_not_awaited()
        db.commit.assert_not_awaited()

    async def test_upstream_failure_writes_nothing(self) -> None:
        course_repo, conversation_repo = _make_repos()
        meter, llm, db = _make_meter(), _make_llm(), _make_db()
        llm.complete.side_effect = UpstreamUnavailableError("timeout")
        orchestrator = TutorOrchestrator(llm, meter, conversation_repo, course_repo)

        with pytest.raises(UpstreamUnavailableError):
            await _answer(orchestrator, db)

        conversation_repo.insert_message.assert_not_awaited()
        meter.meter_usage.assert_not_awaited()

    @pytest.mark.parametrize("content", ["", "   "])
    async def test_empty_content_uses_fallback(self, content: str) -> None:
        course_repo, conversation_repo = _make_repos()
        meter, db = _make_meter(), _make_db()
        orchestrator = TutorOrchestrator(_make_llm(content), meter, conversation_repo, course_repo)

        message = await _answer(orchestrator, db)

        assert message.content == FALLBACK_ANSWER
        meter.meter_usage.assert_awaited_once()

    async def test_message_store_failure_is_not_billed(self) -> None:
        course_repo, conversation_repo = _make_repos()
        conversation_repo.insert_message.side_effect = OperationalError("INSERT", {}, Exception("x"))
        meter, db = _make_meter(), _make_db()
        orchestrator = TutorOrchestrator(_make_llm(), meter, conversation_repo, course_repo)

        with pytest.raises(StorageUnavailableError):
            await _answer(orchestrator, db)

        db.rollback.assert_awaited_once()
        meter.meter_usage.assert_not_awaited()

    async def test_metering_failure_keeps_answer(self) -> None:
        course_repo, conversation_repo = _make_repos()
        meter, db = _make_meter(), _make_db()
        meter.meter_usage.side_effect = StorageUnavailableError()
        orchestrator = TutorOrchestrator(_make_llm(), meter, conversation_repo, course_repo)

        with pytest.raises(StorageUnavailableError):
            await _answer(orchestrator, db)

        # the answer was already committed
        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    async def test_unknown_model_fails_before_llm_call(self) -> None:
        course_repo, conversation_repo = _make_repos()
        llm = _make_llm()
        orchestrator = TutorOrchestrator(llm, _make_meter(), conversation_repo, course_repo)

        with pytest.raises(ConfigurationError):
            await orchestrator.answer_question(
                _make_db(), "acc-1", "ch-1", "conv-1", "q", "no_such_model"
            )
        llm.complete.assert_not_awaited()

    async def test_max_length_titles_still_billed(self) -> None:
        course_repo, conversation_repo = _make_repos()
        course_repo.get_chapter_context.return_value = replace(
            _chapter(), chapter_title="c" * 255, course_title="k" * 255
        )
        ledger_repo = AsyncMock()
        ledger_repo.get_balance.return_value = CreditBalance(
            id=1, account_id="acc-1", balance=Decimal("5"), version=1
        )
        ledger_repo.apply_delta.return_value = CreditBalance(
            id=1, account_id="acc-1", balance=Decimal("4.99955"), version=2
        )
        ledger_repo.append_transaction.side_effect = lambda db, entry: entry
        db = _make_db()
        orchestrator = TutorOrchestrator(
            _make_llm(), UsageMeter(ledger_repo), conversation_repo, course_repo
        )

        await _answer(orchestrator, db)

        entry = ledger_repo.append_transaction.call_args.args[1]
        assert len(entry.notes) <= NOTES_MAX_LENGTH
        assert entry.amount == Decimal("-0.00045")
        assert db.commit.await_count == 2
