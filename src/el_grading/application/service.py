"""TestApplicationService: create, submit and read tests.

Transaction ownership: this service commits test creation; grading commits
inside GradingOrchestrator.
"""

import logging
import random

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.el_common.errors import (
    CourseNotFoundError,
    InternalError,
    NotEnoughQuestionsError,
    NotEnrolledError,
    StorageUnavailableError,
    TestAlreadySubmittedError,
    TestNotFoundError,
    TestOwnershipError,
)
from src.el_common.id_generator import generate_id
from src.el_common.pagination import cursor_decode, cursor_encode, keyset_decode, keyset_encode
from src.el_course.domain.repository import CourseRepositoryProtocol
from src.el_course.infrastructure.persistence import CourseRepository
from src.el_grading.application.orchestrator import GradingOrchestrator
from src.el_grading.application.schemas import (
    AnswerInput,
    LeaderboardItem,
    LeaderboardResponse,
    SubmitTestResponse,
    TestDetailResponse,
    TestHistoryResponse,
    TestSummaryItem,
)
from src.el_grading.domain.models import GradingAnswer, Test
from src.el_grading.domain.repository import TestRepositoryProtocol
from src.el_grading.infrastructure.persistence import TestRepository
from src.el_ledger.application.metering import UsageMeter
from src.el_llm.client import LanguageModelClient

logger = logging.getLogger(__name__)


class TestApplicationService:
    __test__ = False

    def __init__(
        self,
        repo: TestRepositoryProtocol | None = None,
        course_repo: CourseRepositoryProtocol | None = None,
        meter: UsageMeter | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._repo: TestRepositoryProtocol = repo or TestRepository()
        self._courses: CourseRepositoryProtocol = course_repo or CourseRepository()
        self._meter = meter or UsageMeter()
        self._rng = rng or random.SystemRandom()

    async def _detail(self, db: AsyncSession, test: Test) -> TestDetailResponse:
        questions = await self._repo.list_test_questions(db, test.id)
        return TestDetailResponse.from_domain(test, questions)

    async def create_test(
        self, db: AsyncSession, student_id: str, course_id: str
    ) -> TestDetailResponse:
        """Return the student's active test for the course, creating one if needed."""
        course = await self._courses.get_course(db, course_id)
        if course is None or not course.is_published:
            raise CourseNotFoundError(course_id)
        if not await self._courses.is_enrolled(db, student_id, course_id):
            raise NotEnrolledError(course_id)

        active = await self._repo.get_active_test(db, student_id, course_id)
        if active is not None:
            return await self._detail(db, active)

        required = settings.TEST_QUESTIONS_COUNT
        question_ids = await self._courses.list_question_ids(db, course_id)
        if len(question_ids) < required:
            raise NotEnoughQuestionsError(required, len(question_ids))
        chosen = self._rng.sample(question_ids, required)

        try:
            test = await self._repo.create_test(db, generate_id(), student_id, course_id)
            if test is None:
                # Lost the race to a concurrent create; use the winner's test.
                await db.rollback()
                winner = await self._repo.get_active_test(db, student_id, course_id)
                if winner is None:
                    raise InternalError("Active test vanished after create conflict")
                return await self._detail(db, winner)
            await self._repo.insert_test_questions(db, test.id, chosen)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageUnavailableError("Could not create the test") from exc

        logger.info("Created test=%s for student=%s course=%s", test.id, student_id, course_id)
        return await self._detail(db, test)

    async def _owned_test(self, db: AsyncSession, student_id: str, test_id: str) -> Test:
        test = await self._repo.get_test(db, test_id)
        if test is None:
            raise TestNotFoundError(test_id)
        if test.student_id != student_id:
            raise TestOwnershipError(test_id)
        return test

    async def submit_test(
        self,
        db: AsyncSession,
        llm: LanguageModelClient,
        student_id: str,
        test_id: str,
        answers: list[AnswerInput],
        model: str,
    ) -> SubmitTestResponse:
        test = await self._owned_test(db, student_id, test_id)
        if test.is_submitted:
            raise TestAlreadySubmittedError(test_id)

        submitted = {a.question_id: a.student_answer for a in answers}
        questions = await self._repo.list_test_questions(db, test_id)
        grading_answers = [
            GradingAnswer(
                question_id=q.question_id,
                question=q.question,
                correct_answer=q.answer,
                explanation=q.explanation,
                student_answer=submitted.get(q.question_id),
            )
            for q in questions
        ]

        orchestrator = GradingOrchestrator(llm, meter=self._meter, repo=self._repo)
        outcome = await orchestrator.grade_test(
            db, student_id, test_id, grading_answers, model
        )
        return SubmitTestResponse.from_outcome(test_id, outcome)

    async def get_test(
        self, db: AsyncSession, student_id: str, test_id: str
    ) -> TestDetailResponse:
        test = await self._owned_test(db, student_id, test_id)
        return await self._detail(db, test)

    async def list_my_tests(
        self, db: AsyncSession, student_id: str, cursor: str | None, limit: int
    ) -> TestHistoryResponse:
        last_id = cursor_decode(cursor)
        cursor_id = last_id if isinstance(last_id, str) else None
        tests = await self._repo.list_student_tests(db, student_id, cursor_id, limit + 1)
        has_more = len(tests) > limit
        page = tests[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TestHistoryResponse(
            items=[TestSummaryItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def get_leaderboard(
        self, db: AsyncSession, course_id: str, cursor: str | None, limit: int
    ) -> LeaderboardResponse:
        """Submitted tests of a published course ranked by score.

        Ranks are 1-based positions in the ordering (score desc, then earliest
        test first); the cursor carries the last rank so later pages continue it.
        """
        course = await self._courses.get_course(db, course_id)
        if course is None or not course.is_published:
            raise CourseNotFoundError(course_id)

        position = keyset_decode(cursor, rank=int, score=int, id=str)
        after = (position["score"], position["id"]) if position else None
        last_rank = position["rank"] if position else 0

        entries = await self._repo.list_leaderboard(db, course_id, after, limit + 1)
        has_more = len(entries) > limit
        page = entries[:limit]
        items = [
            LeaderboardItem.from_domain(last_rank + i, e) for i, e in enumerate(page, start=1)
        ]
        next_cursor = (
            keyset_encode(rank=items[-1].rank, score=page[-1].score, id=page[-1].test_id)
            if has_more and page
            else None
        )
        return LeaderboardResponse(
            course_id=course_id, items=items, next_cursor=next_cursor, has_more=has_more
        )
