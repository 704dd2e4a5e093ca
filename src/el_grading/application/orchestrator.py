"""GradingOrchestrator: grade a whole test in one model call, then bill it.

Student answers, per-question scores and the test's ``submitted_at`` are
written in one DB transaction guarded by ``submitted_at IS NULL``. The loser
of a concurrent double submit gets TestAlreadySubmittedError and is not
billed. Metering runs after that transaction commits.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.el_common.errors import StorageUnavailableError, TestAlreadySubmittedError
from src.el_grading.domain.models import GradingAnswer, GradingOutcome
from src.el_grading.domain.repository import TestRepositoryProtocol
from src.el_grading.domain.scoring import compute_percentage, parse_grading_response
from src.el_grading.infrastructure.persistence import TestRepository
from src.el_ledger.application.metering import UsageMeter
from src.el_ledger.domain.pricing import get_pricing
from src.el_llm.client import ChatMessage, LanguageModelClient
from src.el_prompt.assembler import assemble_grading_prompt

logger = logging.getLogger(__name__)

_JSON_RESPONSE_FORMAT = {"type": "json_object"}


class GradingOrchestrator:
    def __init__(
        self,
        llm: LanguageModelClient,
        meter: UsageMeter | None = None,
        repo: TestRepositoryProtocol | None = None,
    ) -> None:
        self._llm = llm
        self._meter = meter or UsageMeter()
        self._repo: TestRepositoryProtocol = repo or TestRepository()

    async def grade_test(
        self,
        db: AsyncSession,
        account_id: str,
        test_id: str,
        answers: list[GradingAnswer],
        model: str,
    ) -> GradingOutcome:
        await self._meter.require_funds(db, account_id)

        system_prompt, user_prompt = assemble_grading_prompt(answers)
        pricing = get_pricing(model)

        completion = await self._llm.complete(
            [
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_prompt),
            ],
            model=pricing.provider_model,
            max_tokens=settings.GRADING_MAX_COMPLETION_TOKENS,
            temperature=settings.GRADING_TEMPERATURE,
            response_format=_JSON_RESPONSE_FORMAT,
        )
        results = parse_grading_response(
            completion.content, [a.question_id for a in answers]
        )
        percentage = compute_percentage(results, len(answers))

        by_question = {r.question_id: r for r in results}
        updates = []
        for a in answers:
            result = by_question.get(a.question_id)
            updates.append(
                {
                    "question_id": a.question_id,
                    "student_answer": a.student_answer,
                    "ai_score": result.score if result else None,
                    "ai_feedback": result.feedback if result else None,
                }
            )

        try:
            submitted = await self._repo.record_submission(db, test_id, percentage, updates)
            if submitted is None:
                await db.rollback()
                logger.warning(
                    "Test %s was submitted concurrently; grading discarded, not billed",
                    test_id,
                )
                raise TestAlreadySubmittedError(test_id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Could not store grading for test=%s: %s", test_id, exc)
            raise StorageUnavailableError("Could not store the grading result") from exc

        await self._meter.meter_usage(
            db,
            account_id,
            model,
            completion.usage.prompt_tokens,
            completion.usage.completion_tokens,
            notes=f"Test grading for test {test_id}",
            reference_id=test_id,
        )
        logger.info(
            "Graded test=%s for account=%s: %d%% (%d/%d questions scored)",
            test_id, account_id, percentage, len(results), len(answers),
        )
        return GradingOutcome(total_score=percentage, question_results=results)
