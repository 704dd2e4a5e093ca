"""TutorOrchestrator: one AI tutor turn: check funds, prompt, call, persist, meter.

Side effects happen strictly after the model call returns:
  - an upstream failure leaves no Message and no ledger entry
  - the AI Message is committed before metering, so a metering failure
    (StorageUnavailableError) leaves the answer in place, unbilled
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.el_common.enums import MessageSender
from src.el_common.errors import StorageUnavailableError
from src.el_course.domain.repository import CourseRepositoryProtocol
from src.el_ledger.application.metering import UsageMeter
from src.el_ledger.domain.pricing import get_pricing
from src.el_llm.client import LanguageModelClient
from src.el_prompt.assembler import assemble_tutor_prompt
from src.el_tutor.domain.models import Message
from src.el_tutor.domain.repository import ConversationRepositoryProtocol
from src.el_tutor.infrastructure.persistence import ConversationRepository

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "I couldn't generate a response."


class TutorOrchestrator:
    def __init__(
        self,
        llm: LanguageModelClient,
        meter: UsageMeter | None = None,
        conversation_repo: ConversationRepositoryProtocol | None = None,
        course_repo: CourseRepositoryProtocol | None = None,
    ) -> None:
        self._llm = llm
        self._meter = meter or UsageMeter()
        self._conversations: ConversationRepositoryProtocol = (
            conversation_repo or ConversationRepository()
        )
        self._course_repo = course_repo

    async def answer_question(
        self,
        db: AsyncSession,
        account_id: str,
        chapter_id: str,
        conversation_id: str,
        question_text: str,
        model: str,
    ) -> Message:
        await self._meter.require_funds(db, account_id)

        prompt = await assemble_tutor_prompt(
            db,
            chapter_id,
            conversation_id,
            question_text=question_text,
            course_repo=self._course_repo,
            conversation_repo=self._conversations,
        )
        pricing = get_pricing(model)

        completion = await self._llm.complete(
            prompt.messages,
            model=pricing.provider_model,
            max_tokens=settings.TUTOR_MAX_COMPLETION_TOKENS,
            temperature=settings.TUTOR_TEMPERATURE,
        )
        answer = completion.content if completion.content.strip() else FALLBACK_ANSWER

        try:
            message = await self._conversations.insert_message(
                db, conversation_id, MessageSender.AI.value, answer, model
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error(
                "Could not store tutor answer for conversation=%s: %s", conversation_id, exc
            )
            raise StorageUnavailableError("Could not store the tutor answer") from exc

        chapter = prompt.chapter
        await self._meter.meter_usage(
            db,
            account_id,
            model,
            completion.usage.prompt_tokens,
            completion.usage.completion_tokens,
            notes=f'Question in Chapter "{chapter.chapter_title}" of {chapter.course_title}',
            reference_id=chapter_id,
        )
        return message
