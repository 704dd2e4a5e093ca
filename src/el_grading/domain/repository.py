from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_grading.domain.models import LeaderboardEntry, Test, TestQuestion, TestSummary


class TestRepositoryProtocol(Protocol):
    async def get_test(self, db: AsyncSession, test_id: str) -> Test | None: ...

    async def get_active_test(
        self, db: AsyncSession, student_id: str, course_id: str
    ) -> Test | None: ...

    async def create_test(
        self, db: AsyncSession, test_id: str, student_id: str, course_id: str
    ) -> Test | None:
        """None when an active test already exists for (student, course)."""
        ...

    async def insert_test_questions(
        self, db: AsyncSession, test_id: str, question_ids: list[str]
    ) -> None: ...

    async def list_test_questions(self, db: AsyncSession, test_id: str) -> list[TestQuestion]: ...

    async def record_submission(
        self,
        db: AsyncSession,
        test_id: str,
        ai_score: int,
        question_updates: list[dict],
    ) -> Test | None:
        """None when the test was already submitted."""
        ...

    async def list_student_tests(
        self, db: AsyncSession, student_id: str, cursor_id: str | None, limit: int
    ) -> list[TestSummary]:
        """Newest first; ``cursor_id`` excludes it and everything newer."""
        ...

    async def list_leaderboard(
        self,
        db: AsyncSession,
        course_id: str,
        after: tuple[int, str] | None,
        limit: int,
    ) -> list[LeaderboardEntry]:
        """Submitted tests by score desc, then id asc; ``after`` is the last (score, id) seen."""
        ...
