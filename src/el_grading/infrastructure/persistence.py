"""TestRepository: tests and their sampled questions.

A test is frozen by ``submitted_at``. ``record_submission`` sets it with a
``WHERE submitted_at IS NULL`` guard, so of two concurrent submissions only
one updates a row; the other gets None. The caller commits.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_grading.domain.models import LeaderboardEntry, Test, TestQuestion, TestSummary

_TEST_COLUMNS = "id, student_id, course_id, ai_score, submitted_at, created_at"

_GET_TEST_SQL = text(f"""
    SELECT {_TEST_COLUMNS}
    FROM tests
    WHERE id = :test_id
""")

_GET_ACTIVE_TEST_SQL = text(f"""
    SELECT {_TEST_COLUMNS}
    FROM tests
    WHERE student_id = :student_id AND course_id = :course_id
      AND submitted_at IS NULL
""")

# Conflict target is the partial unique index uq_tests_active_per_course.
_CREATE_TEST_SQL = text(f"""
    INSERT INTO tests (id, student_id, course_id)
    VALUES (:id, :student_id, :course_id)
    ON CONFLICT (student_id, course_id) WHERE submitted_at IS NULL DO NOTHING
    RETURNING {_TEST_COLUMNS}
""")

_INSERT_TEST_QUESTION_SQL = text("""
    INSERT INTO test_questions (test_id, question_id, position)
    VALUES (:test_id, :question_id, :position)
""")

_LIST_TEST_QUESTIONS_SQL = text("""
    SELECT tq.test_id, tq.question_id, tq.position,
           q.question, q.answer, q.explanation,
           tq.student_answer, tq.ai_score, tq.ai_feedback
    FROM test_questions tq
    JOIN questions q ON q.id = tq.question_id
    WHERE tq.test_id = :test_id
    ORDER BY tq.position ASC
""")

_MARK_SUBMITTED_SQL = text(f"""
    UPDATE tests
    SET ai_score = :ai_score, submitted_at = NOW()
    WHERE id = :test_id AND submitted_at IS NULL
    RETURNING {_TEST_COLUMNS}
""")

_GRADE_QUESTION_SQL = text("""
    UPDATE test_questions
    SET student_answer = :student_answer,
        ai_score = :ai_score,
        ai_feedback = :ai_feedback
    WHERE test_id = :test_id AND question_id = :question_id
""")


# ---------------------------------------------------------------------------
# Read models: history and leaderboard
# ---------------------------------------------------------------------------

_LIST_STUDENT_TESTS_SQL = text("""
    SELECT t.id, t.course_id, c.title AS course_title,
           t.ai_score, t.submitted_at, t.created_at,
           (SELECT COUNT(*) FROM test_questions tq WHERE tq.test_id = t.id) AS question_count
    FROM tests t
    JOIN courses c ON c.id = t.course_id
    WHERE t.student_id = :student_id
      AND (CAST(:cursor_id AS TEXT) IS NULL OR t.id < CAST(:cursor_id AS TEXT))
    ORDER BY t.id DESC
    LIMIT :limit
""")

# Ties on score go to the earlier test (lower id).
_LIST_LEADERBOARD_SQL = text("""
    SELECT t.id, t.student_id, u.name AS student_name, t.ai_score, t.submitted_at
    FROM tests t
    JOIN users u ON u.id = t.student_id
    WHERE t.course_id = :course_id
      AND t.submitted_at IS NOT NULL
      AND t.ai_score IS NOT NULL
      AND (
          CAST(:after_score AS INTEGER) IS NULL
          OR t.ai_score < CAST(:after_score AS INTEGER)
          OR (t.ai_score = CAST(:after_score AS INTEGER) AND t.id > CAST(:after_id AS TEXT))
      )
    ORDER BY t.ai_score DESC, t.id ASC
    LIMIT :limit
""")


def _row_to_test(row: object) -> Test:
    return Test(
        id=row.id,  # type: ignore[attr-defined]
        student_id=str(row.student_id),  # type: ignore[attr-defined]
        course_id=str(row.course_id),  # type: ignore[attr-defined]
        ai_score=row.ai_score,  # type: ignore[attr-defined]
        submitted_at=row.submitted_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_test_question(row: object) -> TestQuestion:
    return TestQuestion(
        test_id=row.test_id,  # type: ignore[attr-defined]
        question_id=str(row.question_id),  # type: ignore[attr-defined]
        position=row.position,  # type: ignore[attr-defined]
        question=row.question,  # type: ignore[attr-defined]
        answer=row.answer,  # type: ignore[attr-defined]
        explanation=row.explanation,  # type: ignore[attr-defined]
        student_answer=row.student_answer,  # type: ignore[attr-defined]
        ai_score=row.ai_score,  # type: ignore[attr-defined]
        ai_feedback=row.ai_feedback,  # type: ignore[attr-defined]
    )


def _row_to_summary(row: object) -> TestSummary:
    return TestSummary(
        id=row.id,  # type: ignore[attr-defined]
        course_id=str(row.course_id),  # type: ignore[attr-defined]
        course_title=row.course_title,  # type: ignore[attr-defined]
        question_count=int(row.question_count),  # type: ignore[attr-defined]
        ai_score=row.ai_score,  # type: ignore[attr-defined]
        submitted_at=row.submitted_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_leaderboard_entry(row: object) -> LeaderboardEntry:
    return LeaderboardEntry(
        test_id=row.id,  # type: ignore[attr-defined]
        student_id=str(row.student_id),  # type: ignore[attr-defined]
        student_name=row.student_name,  # type: ignore[attr-defined]
        score=row.ai_score,  # type: ignore[attr-defined]
        submitted_at=row.submitted_at,  # type: ignore[attr-defined]
    )


class TestRepository:
    __test__ = False

    async def get_test(self, db: AsyncSession, test_id: str) -> Test | None:
        result = await db.execute(_GET_TEST_SQL, {"test_id": test_id})
        row = result.fetchone()
        return _row_to_test(row) if row else None

    async def get_active_test(
        self, db: AsyncSession, student_id: str, course_id: str
    ) -> Test | None:
        result = await db.execute(
            _GET_ACTIVE_TEST_SQL, {"student_id": student_id, "course_id": course_id}
        )
        row = result.fetchone()
        return _row_to_test(row) if row else None

    async def create_test(
        self, db: AsyncSession, test_id: str, student_id: str, course_id: str
    ) -> Test | None:
        result = await db.execute(
            _CREATE_TEST_SQL,
            {"id": test_id, "student_id": student_id, "course_id": course_id},
        )
        row = result.fetchone()
        return _row_to_test(row) if row else None

    async def insert_test_questions(
        self, db: AsyncSession, test_id: str, question_ids: list[str]
    ) -> None:
        await db.execute(
            _INSERT_TEST_QUESTION_SQL,
            [
                {"test_id": test_id, "question_id": qid, "position": i}
                for i, qid in enumerate(question_ids)
            ],
        )

    async def list_test_questions(self, db: AsyncSession, test_id: str) -> list[TestQuestion]:
        result = await db.execute(_LIST_TEST_QUESTIONS_SQL, {"test_id": test_id})
        return [_row_to_test_question(row) for row in result.fetchall()]

    async def record_submission(
        self,
        db: AsyncSession,
        test_id: str,
        ai_score: int,
        question_updates: list[dict],
    ) -> Test | None:
        result = await db.execute(
            _MARK_SUBMITTED_SQL, {"test_id": test_id, "ai_score": ai_score}
        )
        row = result.fetchone()
        if row is None:
            return None
        if question_updates:
            await db.execute(
                _GRADE_QUESTION_SQL,
                [{"test_id": test_id, **update} for update in question_updates],
            )
        return _row_to_test(row)

    async def list_student_tests(
        self, db: AsyncSession, student_id: str, cursor_id: str | None, limit: int
    ) -> list[TestSummary]:
        result = await db.execute(
            _LIST_STUDENT_TESTS_SQL,
            {"student_id": student_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_summary(row) for row in result.fetchall()]

    async def list_leaderboard(
        self,
        db: AsyncSession,
        course_id: str,
        after: tuple[int, str] | None,
        limit: int,
    ) -> list[LeaderboardEntry]:
        after_score, after_id = after if after is not None else (None, None)
        result = await db.execute(
            _LIST_LEADERBOARD_SQL,
            {
                "course_id": course_id,
                "after_score": after_score,
                "after_id": after_id,
                "limit": limit,
            },
        )
        return [_row_to_leaderboard_entry(row) for row in result.fetchall()]
