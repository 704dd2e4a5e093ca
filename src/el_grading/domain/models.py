"""el_grading domain models."""

from dataclasses import dataclass, field
from datetime import datetime

MAX_QUESTION_SCORE = 10
MAX_TEST_SCORE = 100


@dataclass
class Test:
    """One per (student, course) while ``submitted_at`` is None; frozen after."""

    __test__ = False  # not a pytest class

    id: str
    student_id: str
    course_id: str
    ai_score: int | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None


@dataclass
class TestQuestion:
    """A bank question sampled into a test, joined with its bank content."""

    __test__ = False

    test_id: str
    question_id: str
    position: int
    question: str
    answer: str
    explanation: str | None = None
    student_answer: str | None = None
    ai_score: int | None = None
    ai_feedback: str | None = None


@dataclass(frozen=True)
class GradingAnswer:
    question_id: str
    question: str
    correct_answer: str
    explanation: str | None = None
    student_answer: str | None = None


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    score: int
    feedback: str


@dataclass
class GradingOutcome:
    total_score: int
    max_score: int = MAX_TEST_SCORE
    question_results: list[QuestionResult] = field(default_factory=list)


@dataclass
class TestSummary:
    """A row of the student's own test history."""

    __test__ = False

    id: str
    course_id: str
    course_title: str
    question_count: int
    ai_score: int | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class LeaderboardEntry:
    test_id: str
    student_id: str
    student_name: str
    score: int
    submitted_at: datetime | None = None
