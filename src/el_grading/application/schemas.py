"""Pydantic schemas for el_grading API."""

from pydantic import BaseModel, Field

from src.el_common.datetime_utils import to_iso
from src.el_grading.domain.models import (
    GradingOutcome,
    LeaderboardEntry,
    QuestionResult,
    Test,
    TestQuestion,
    TestSummary,
)


class CreateTestRequest(BaseModel):
    course_id: str = Field(..., min_length=1, max_length=64)


class AnswerInput(BaseModel):
    question_id: str = Field(..., min_length=1, max_length=64)
    student_answer: str | None = Field(None, max_length=4000)


class SubmitTestRequest(BaseModel):
    answers: list[AnswerInput] = Field(default_factory=list, max_length=100)


class TestQuestionItem(BaseModel):
    question_id: str
    position: int
    question: str
    student_answer: str | None
    # Revealed only after submission
    correct_answer: str | None = None
    explanation: str | None = None
    ai_score: int | None = None
    ai_feedback: str | None = None

    @classmethod
    def from_domain(cls, q: TestQuestion, reveal: bool) -> "TestQuestionItem":
        item = cls(
            question_id=q.question_id,
            position=q.position,
            question=q.question,
            student_answer=q.student_answer,
        )
        if reveal:
            item.correct_answer = q.answer
            item.explanation = q.explanation
            item.ai_score = q.ai_score
            item.ai_feedback = q.ai_feedback
        return item


class TestDetailResponse(BaseModel):
    id: str
    course_id: str
    ai_score: int | None
    submitted_at: str | None
    created_at: str | None
    questions: list[TestQuestionItem]

    @classmethod
    def from_domain(cls, test: Test, questions: list[TestQuestion]) -> "TestDetailResponse":
        reveal = test.is_submitted
        return cls(
            id=test.id,
            course_id=test.course_id,
            ai_score=test.ai_score,
            submitted_at=to_iso(test.submitted_at),
            created_at=to_iso(test.created_at),
            questions=[TestQuestionItem.from_domain(q, reveal) for q in questions],
        )


class QuestionResultItem(BaseModel):
    question_id: str
    score: int
    feedback: str

    @classmethod
    def from_domain(cls, r: QuestionResult) -> "QuestionResultItem":
        return cls(question_id=r.question_id, score=r.score, feedback=r.feedback)


class SubmitTestResponse(BaseModel):
    test_id: str
    total_score: int
    max_score: int
    question_results: list[QuestionResultItem]

    @classmethod
    def from_outcome(cls, test_id: str, outcome: GradingOutcome) -> "SubmitTestResponse":
        return cls(
            test_id=test_id,
            total_score=outcome.total_score,
            max_score=outcome.max_score,
            question_results=[QuestionResultItem.from_domain(r) for r in outcome.question_results],
        )


class TestSummaryItem(BaseModel):
    id: str
    course_id: str
    course_title: str
    question_count: int
    ai_score: int | None
    submitted_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, s: TestSummary) -> "TestSummaryItem":
        return cls(
            id=s.id,
            course_id=s.course_id,
            course_title=s.course_title,
            question_count=s.question_count,
            ai_score=s.ai_score,
            submitted_at=to_iso(s.submitted_at),
            created_at=to_iso(s.created_at),
        )


class TestHistoryResponse(BaseModel):
    items: list[TestSummaryItem]
    next_cursor: str | None
    has_more: bool


class LeaderboardStudent(BaseModel):
    id: str
    name: str


class LeaderboardItem(BaseModel):
    rank: int
    test_id: str
    score: int
    submitted_at: str | None
    student: LeaderboardStudent

    @classmethod
    def from_domain(cls, rank: int, e: LeaderboardEntry) -> "LeaderboardItem":
        return cls(
            rank=rank,
            test_id=e.test_id,
            score=e.score,
            submitted_at=to_iso(e.submitted_at),
            student=LeaderboardStudent(id=e.student_id, name=e.student_name),
        )


class LeaderboardResponse(BaseModel):
    course_id: str
    items: list[LeaderboardItem]
    next_cursor: str | None
    has_more: bool
