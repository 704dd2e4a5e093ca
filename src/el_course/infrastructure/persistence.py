"""CourseRepository: read-only access to courses, chapters, question ids
and enrollments."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_course.domain.models import ChapterContext, Course

_GET_COURSE_SQL = text("""
    SELECT id, title, description, is_published
    FROM courses
    WHERE id = :course_id
""")

_GET_CHAPTER_CONTEXT_SQL = text("""
    SELECT ch.id AS chapter_id, ch.title AS chapter_title, ch.content,
           c.id AS course_id, c.title AS course_title,
           c.description AS course_description, c.is_published AS course_published
    FROM chapters ch
    JOIN courses c ON c.id = ch.course_id
    WHERE ch.id = :chapter_id
""")

_IS_ENROLLED_SQL = text("""
    SELECT 1 FROM course_enrollments
    WHERE student_id = :student_id AND course_id = :course_id
""")

_LIST_QUESTION_IDS_SQL = text("""
    SELECT id FROM questions
    WHERE course_id = :course_id
    ORDER BY id
""")


def _row_to_course(row: object) -> Course:
    return Course(
        id=str(row.id),  # type: ignore[attr-defined]
        title=row.title,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        is_published=row.is_published,  # type: ignore[attr-defined]
    )


def _row_to_chapter_context(row: object) -> ChapterContext:
    return ChapterContext(
        chapter_id=str(row.chapter_id),  # type: ignore[attr-defined]
        chapter_title=row.chapter_title,  # type: ignore[attr-defined]
        content=row.content or "",  # type: ignore[attr-defined]
        course_id=str(row.course_id),  # type: ignore[attr-defined]
        course_title=row.course_title,  # type: ignore[attr-defined]
        course_description=row.course_description,  # type: ignore[attr-defined]
        course_published=row.course_published,  # type: ignore[attr-defined]
    )



class CourseRepository:
    async def get_course(self, db: AsyncSession, course_id: str) -> Course | None:
        result = await db.execute(_GET_COURSE_SQL, {"course_id": course_id})
        row = result.fetchone()
        return _row_to_course(row) if row else None

    async def get_chapter_context(
        self, db: AsyncSession, chapter_id: str
    ) -> ChapterContext | None:
        result = await db.execute(_GET_CHAPTER_CONTEXT_SQL, {"chapter_id": chapter_id})
        row = result.fetchone()
        return _row_to_chapter_context(row) if row else None

    async def is_enrolled(self, db: AsyncSession, student_id: str, course_id: str) -> bool:
        result = await db.execute(
            _IS_ENROLLED_SQL, {"student_id": student_id, "course_id": course_id}
        )
        return result.fetchone() is not None

    async def list_question_ids(self, db: AsyncSession, course_id: str) -> list[str]:
        result = await db.execute(_LIST_QUESTION_IDS_SQL, {"course_id": course_id})
        return [str(row.id) for row in result.fetchall()]
