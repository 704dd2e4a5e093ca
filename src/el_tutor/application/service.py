"""TutorApplicationService: validates an ask request, stores the student's
question, then hands the turn to TutorOrchestrator.

Order of checks: chapter visible -> enrolled -> funds. All three run before
the first write.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.enums import MessageSender
from src.el_common.errors import ChapterNotFoundError, NotEnrolledError, StorageUnavailableError
from src.el_common.pagination import cursor_decode, cursor_encode
from src.el_course.domain.models import ChapterContext
from src.el_course.domain.repository import CourseRepositoryProtocol
from src.el_course.infrastructure.persistence import CourseRepository
from src.el_ledger.application.metering import UsageMeter
from src.el_llm.client import LanguageModelClient
from src.el_tutor.application.orchestrator import TutorOrchestrator
from src.el_tutor.application.schemas import (
    AskQuestionResponse,
    MessageItem,
    MessageListResponse,
)
from src.el_tutor.domain.repository import ConversationRepositoryProtocol
from src.el_tutor.infrastructure.persistence import ConversationRepository


class TutorApplicationService:
    def __init__(
        self,
        course_repo: CourseRepositoryProtocol | None = None,
        conversation_repo: ConversationRepositoryProtocol | None = None,
        meter: UsageMeter | None = None,
    ) -> None:
        self._courses: CourseRepositoryProtocol = course_repo or CourseRepository()
        self._conversations: ConversationRepositoryProtocol = (
            conversation_repo or ConversationRepository()
        )
        self._meter = meter or UsageMeter()

    async def _visible_chapter(self, db: AsyncSession, chapter_id: str) -> ChapterContext:
        chapter = await self._courses.get_chapter_context(db, chapter_id)
        if chapter is None or not chapter.course_published:
            raise ChapterNotFoundError(chapter_id)
        return chapter

    async def ask_question(
        self,
        db: AsyncSession,
        llm: LanguageModelClient,
        account_id: str,
        chapter_id: str,
        question: str,
        model: str,
    ) -> AskQuestionResponse:
        chapter = await self._visible_chapter(db, chapter_id)
        if not await self._courses.is_enrolled(db, account_id, chapter.course_id):
            raise NotEnrolledError(chapter.course_id)
        await self._meter.require_funds(db, account_id)

        try:
            conversation = await self._conversations.get_or_create_conversation(
                db, account_id, chapter_id
            )
            student_message = await self._conversations.insert_message(
                db, conversation.id, MessageSender.STUDENT.value, question
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageUnavailableError("Could not store the question") from exc

        orchestrator = TutorOrchestrator(
            llm,
            meter=self._meter,
            conversation_repo=self._conversations,
            course_repo=self._courses,
        )
        answer = await orchestrator.answer_question(
            db, account_id, chapter_id, conversation.id, question, model
        )
        return AskQuestionResponse(
            question=MessageItem.from_domain(student_message),
            answer=MessageItem.from_domain(answer),
        )

    async def list_messages(
        self,
        db: AsyncSession,
        account_id: str,
        chapter_id: str,
        cursor: str | None,
        limit: int,
    ) -> MessageListResponse:
        await self._visible_chapter(db, chapter_id)
        conversation = await self._conversations.get_conversation(db, account_id, chapter_id)
        if conversation is None:
            return MessageListResponse(items=[], next_cursor=None, has_more=False)

        last_id = cursor_decode(cursor)
        cursor_id = last_id if isinstance(last_id, str) else None
        messages = await self._conversations.list_messages(
            db, conversation.id, cursor_id, limit + 1
        )
        has_more = len(messages) > limit
        page = messages[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return MessageListResponse(
            items=[MessageItem.from_domain(m) for m in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
