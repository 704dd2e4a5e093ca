"""Course content read models. Content is authored elsewhere; this service only reads it."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Course:
    id: str
    title: str
    description: str | None
    is_published: bool


@dataclass(frozen=True)
class ChapterContext:
    """A chapter joined with the course it belongs to."""

    chapter_id: str
    chapter_title: str
    content: str
    course_id: str
    course_title: str
    course_description: str | None
    course_published: bool
