from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_course.domain.models import ChapterContext, Course


class CourseRepositoryProtocol(Protocol):
    async def get_course(self, db: AsyncSession, course_id: str) -> Course | None: ...

    async def get_chapter_context(
        self, db: AsyncSession, chapter_id: str
    ) -> ChapterContext | None: ...

    async def is_enrolled(self, db: AsyncSession, student_id: str, course_id: str) -> bool: ...

    async def list_question_ids(self, db: AsyncSession, course_id: str) -> list[str]: ...
