"""Unit tests for TestApplicationService (create / submit / read)."""

import random
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.el_common.errors import (
    CourseNotFoundError,
    NotEnoughQuestionsError,
    NotEnrolledError,
    TestAlreadySubmittedError,
    TestNotFoundError,
    TestOwnershipError,
)
from src.el_course.domain.models import Course
from src.el_grading.application.schemas import AnswerInput
from src.el_grading.application.service import TestApplicationService
from src.el_common.pagination import cursor_encode, keyset_decode, keyset_encode
from src.el_grading.domain.models import (
    GradingOutcome,
    LeaderboardEntry,
    QuestionResult,
    Test,
    TestQuestion,
    TestSummary,
)


def _test(submitted: bool = False, student_id: str = "acc-1") -> Test:
    return Test(
        id="t-1",
        student_id=student_id,
        course_id="c-1",
        ai_score=80 if submitted else None,
        submitted_at=datetime.now(UTC) if submitted else None,
    )


def _questions(n: int = 2) -> list[TestQuestion]:
    return [
        TestQuestion(
            test_id="t-1",
            question_id=f"q-{i}",
            position=i,
            question=f"Question {i}?",
            answer=f"Answer {i}",
            ai_score=7 if i == 0 else None,
            ai_feedback="fb" if i == 0 else None,
        )
        for i in range(n)
    ]


def _make_service(course: Course | None = None, enrolled: bool = True, bank_size: int = 12):
    repo = AsyncMock()
    repo.get_active_test.return_value = None
    repo.create_test.return_value = _test()
    repo.list_test_questions.return_value = _questions()
    course_repo = AsyncMock()
    course_repo.get_course.return_value = course
    course_repo.is_enrolled.return_value = enrolled
    course_repo.list_question_ids.return_value = [f"q-{i}" for i in range(bank_size)]
    svc = TestApplicationService(repo, course_repo, AsyncMock(), rng=random.Random(7))
    return svc, repo, course_repo


def _course(published: bool = True) -> Course:
    return Course(id="c-1", title="Calculus I", description=None, is_published=published)


def _make_db() -> MagicMock:
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


class TestCreateTest:
    async def test_samples_ten_distinct_questions(self) -> None:
        svc, repo, _ = _make_service(_course())
        db = _make_db()

        detail = await svc.create_test(db, "acc-1", "c-1")

        chosen = repo.insert_test_questions.call_args.args[2]
        assert len(chosen) == 10
        assert len(set(chosen)) == 10
        assert set(chosen) <= {f"q-{i}" for i in range(12)}
        db.commit.assert_awaited_once()
        assert detail.id == "t-1"

    async def test_returns_existing_active_test(self) -> None:
        svc, repo, _ = _make_service(_course())
        repo.get_active_test.return_value = _test()

        await svc.create_test(_make_db(), "acc-1", "c-1")

        repo.create_test.assert_not_awaited()

    async def test_race_loser_reads_winner(self) -> None:
        svc, repo, _ = _make_service(_course())
        winner = _test()
        repo.get_active_test.side_effect = [None, winner]
        repo.create_test.return_value = None
        db = _make_db()

        detail = await svc.create_test(db, "acc-1", "c-1")

        assert detail.id == winner.id
        repo.insert_test_questions.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_not_enough_questions(self) -> None:
        svc, *_ = _make_service(_course(), bank_size=9)
        with pytest.raises(NotEnoughQuestionsError):
            await svc.create_test(_make_db(), "acc-1", "c-1")

    async def test_unpublished_course(self) -> None:
        svc, *_ = _make_service(_course(published=False))
        with pytest.raises(CourseNotFoundError):
            await svc.create_test(_make_db(), "acc-1", "c-1")

    async def test_not_enrolled(self) -> None:
        svc, *_ = _make_service(_course(), enrolled=False)
        with pytest.raises(NotEnrolledError):
            await svc.create_test(_make_db(), "acc-1", "c-1")


class TestSubmitTest:
    async def test_check_order_not_found(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = None
        with pytest.raises(TestNotFoundError):
            await svc.submit_test(_make_db(), AsyncMock(), "acc-1", "t-1", [], "gpt_4o")

    async def test_check_order_forbidden_before_submitted(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = _test(submitted=True, student_id="someone-else")
        with pytest.raises(TestOwnershipError):
            await svc.submit_test(_make_db(), AsyncMock(), "acc-1", "t-1", [], "gpt_4o")

    async def test_second_submit_already_submitted(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = _test(submitted=True)
        llm = AsyncMock()
        with pytest.raises(TestAlreadySubmittedError):
            await svc.submit_test(_make_db(), llm, "acc-1", "t-1", [], "gpt_4o")
        llm.complete.assert_not_awaited()
        repo.record_submission.assert_not_awaited()

    async def test_answers_matched_by_question_id_in_test_order(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = _test()
        outcome = GradingOutcome(total_score=35, question_results=[QuestionResult("q-0", 7, "ok")])

        with patch(
            "src.el_grading.application.service.GradingOrchestrator.grade_test",
            new=AsyncMock(return_value=outcome),
        ) as grade_test:
            result = await svc.submit_test(
                _make_db(),
                AsyncMock(),
                "acc-1",
                "t-1",
                [
                    AnswerInput(question_id="q-1", student_answer="second"),
                    AnswerInput(question_id="stray", student_answer="ignored"),
                ],
                "gpt_4o",
            )

        answers = grade_test.call_args.args[3]
        assert [a.question_id for a in answers] == ["q-0", "q-1"]
        assert [a.student_answer for a in answers] == [None, "second"]
        assert result.total_score == 35
        assert result.max_score == 100


class TestGetTest:
    async def test_hides_answers_before_submission(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = _test()
        detail = await svc.get_test(_make_db(), "acc-1", "t-1")
        assert all(q.correct_answer is None and q.ai_score is None for q in detail.questions)

    async def test_reveals_after_submission(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = _test(submitted=True)
        detail = await svc.get_test(_make_db(), "acc-1", "t-1")
        assert detail.ai_score == 80
        assert detail.questions[0].correct_answer == "Answer 0"
        assert detail.questions[0].ai_score == 7

    async def test_other_students_test_forbidden(self) -> None:
        svc, repo, _ = _make_service()
        repo.get_test.return_value = _test(student_id="someone-else")
        with pytest.raises(TestOwnershipError):
            await svc.get_test(_make_db(), "acc-1", "t-1")


def _summaries(n: int) -> list[TestSummary]:
    return [
        TestSummary(
            id=f"{100 - i:020d}",
            course_id="c-1",
            course_title="Calculus I",
            question_count=10,
            ai_score=70 if i % 2 == 0 else None,
        )
        for i in range(n)
    ]


def _entries(scores: list[int]) -> list[LeaderboardEntry]:
    return [
        LeaderboardEntry(
            test_id=f"t-{i}", student_id=f"s-{i}", student_name=f"Student {i}", score=score
        )
        for i, score in enumerate(scores)
    ]


class TestListMyTests:
    async def test_first_page_newest_first_with_cursor(self) -> None:
        svc, repo, _ = _make_service()
        repo.list_student_tests.return_value = _summaries(3)

        result = await svc.list_my_tests(_make_db(), "acc-1", None, 2)

        repo.list_student_tests.assert_awaited_once()
        assert repo.list_student_tests.call_args.args[1:] == ("acc-1", None, 3)
        assert [item.id for item in result.items] == [f"{100:020d}", f"{99:020d}"]
        assert result.items[0].question_count == 10
        assert result.items[0].course_title == "Calculus I"
        assert result.has_more is True
        assert result.next_cursor == cursor_encode(f"{99:020d}")

    async def test_cursor_passed_through_and_last_page(self) -> None:
        svc, repo, _ = _make_service()
        repo.list_student_tests.return_value = _summaries(1)

        cursor = cursor_encode("00000000000000000099")
        result = await svc.list_my_tests(_make_db(), "acc-1", cursor, 5)

        assert repo.list_student_tests.call_args.args[2] == "00000000000000000099"
        assert result.has_more is False
        assert result.next_cursor is None

    async def test_empty_history(self) -> None:
        svc, repo, _ = _make_service()
        repo.list_student_tests.return_value = []
        result = await svc.list_my_tests(_make_db(), "acc-1", None, 20)
        assert result.items == []
        assert result.next_cursor is None


class TestLeaderboard:
    async def test_ranks_from_one(self) -> None:
        svc, repo, _ = _make_service(_course())
        repo.list_leaderboard.return_value = _entries([95, 80, 80])

        result = await svc.get_leaderboard(_make_db(), "c-1", None, 10)

        assert repo.list_leaderboard.call_args.args[1:] == ("c-1", None, 11)
        assert [(i.rank, i.score) for i in result.items] == [(1, 95), (2, 80), (3, 80)]
        assert result.items[0].student.name == "Student 0"
        assert result.has_more is False
        assert result.next_cursor is None

    async def test_next_page_continues_rank(self) -> None:
        svc, repo, _ = _make_service(_course())
        repo.list_leaderboard.return_value = _entries([95, 80, 70])

        first = await svc.get_leaderboard(_make_db(), "c-1", None, 2)

        assert first.has_more is True
        assert keyset_decode(first.next_cursor, rank=int, score=int, id=str) == {
            "rank": 2,
            "score": 80,
            "id": "t-1",
        }

        repo.list_leaderboard.return_value = _entries([70])
        second = await svc.get_leaderboard(_make_db(), "c-1", first.next_cursor, 2)

        assert repo.list_leaderboard.call_args.args[2] == (80, "t-1")
        assert [i.rank for i in second.items] == [3]

    async def test_malformed_cursor_starts_over(self) -> None:
        svc, repo, _ = _make_service(_course())
        repo.list_leaderboard.return_value = []
        bad = keyset_encode(rank="x", score=1, id="t-1")

        await svc.get_leaderboard(_make_db(), "c-1", bad, 10)

        assert repo.list_leaderboard.call_args.args[2] is None

    @pytest.mark.parametrize("course", [None, _course(published=False)])
    async def test_unknown_or_unpublished_course(self, course) -> None:
        svc, repo, _ = _make_service(course)
        with pytest.raises(CourseNotFoundError):
            await svc.get_leaderboard(_make_db(), "c-1", None, 10)
        repo.list_leaderboard.assert_not_awaited()
