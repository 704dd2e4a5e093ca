"""Pure grading arithmetic: parse the model's verdict, compute the percentage.

The grader is asked for ``{"results": [...]}``; a bare JSON array is accepted
too. Anything else is an invalid upstream response and nothing is graded.

Per-result rules:
  - scores are clamped to 0..10 and rounded half-up to an int
  - results for question ids outside the test are ignored
  - a repeated question id keeps its first result
  - a question the model skipped stays ungraded and counts as 0
"""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from src.el_common.errors import UpstreamInvalidResponseError
from src.el_grading.domain.models import MAX_QUESTION_SCORE, MAX_TEST_SCORE, QuestionResult

logger = logging.getLogger(__name__)


def _extract_items(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("results"), list):
        return payload["results"]
    raise UpstreamInvalidResponseError("Grading response is not a list of results")


def _normalize_score(raw: Any) -> int:
    # bool is an int subclass; true/false is not a score.
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise UpstreamInvalidResponseError(f"Grading score is not a number: {raw!r}")
    score = Decimal(str(raw)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(min(max(score, Decimal(0)), Decimal(MAX_QUESTION_SCORE)))


def parse_grading_response(content: str, question_ids: list[str]) -> list[QuestionResult]:
    """Return one QuestionResult per graded question, in model output order."""
    try:
        payload = json.loads(content)
    except (TypeError, ValueError) as exc:
        raise UpstreamInvalidResponseError("Grading response is not valid JSON") from exc

    known = set(question_ids)
    results: dict[str, QuestionResult] = {}
    for item in _extract_items(payload):
        if not isinstance(item, dict):
            raise UpstreamInvalidResponseError("Grading result is not an object")
        question_id = item.get("questionId")
        if question_id is None:
            raise UpstreamInvalidResponseError("Grading result has no questionId")
        question_id = str(question_id)
        if question_id not in known:
            logger.warning("Grader returned unknown questionId=%s; ignored", question_id)
            continue
        if question_id in results:
            continue
        feedback = item.get("feedback")
        results[question_id] = QuestionResult(
            question_id=question_id,
            score=_normalize_score(item.get("score", 0)),
            feedback=feedback if isinstance(feedback, str) else "",
        )
    return list(results.values())


def compute_percentage(results: list[QuestionResult], answer_count: int) -> int:
    """round(sum(score) / (answer_count * 10) * 100), half-up."""
    if answer_count <= 0:
        return 0
    total = Decimal(sum(r.score for r in results))
    percentage = total * MAX_TEST_SCORE / (answer_count * MAX_QUESTION_SCORE)
    return int(percentage.quantize(Decimal(1), rounding=ROUND_HALF_UP))
