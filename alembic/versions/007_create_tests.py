"""007: create tests and test_questions tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE tests (
            id              VARCHAR(32)     PRIMARY KEY,
            student_id      UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            course_id       VARCHAR(64)     NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            ai_score        SMALLINT,
            submitted_at    TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_tests_score CHECK (ai_score IS NULL OR ai_score BETWEEN 0 AND 100)
        );
    """)
    # At most one unsubmitted test per (student, course).
    op.execute("""
        CREATE UNIQUE INDEX uq_tests_active_per_course
        ON tests (student_id, course_id)
        WHERE submitted_at IS NULL;
    """)
    op.execute("""
        CREATE TABLE test_questions (
            test_id         VARCHAR(32)     NOT NULL REFERENCES tests(id) ON DELETE CASCADE,
            question_id     VARCHAR(64)     NOT NULL REFERENCES questions(id),
            position        SMALLINT        NOT NULL,
            student_answer  TEXT,
            ai_score        SMALLINT,
            ai_feedback     TEXT,
            PRIMARY KEY (test_id, question_id),
            CONSTRAINT uq_test_questions_position UNIQUE (test_id, position),
            CONSTRAINT ck_test_questions_score CHECK (ai_score IS NULL OR ai_score BETWEEN 0 AND 10)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS test_questions CASCADE;")
    op.execute("DROP TABLE IF EXISTS tests CASCADE;")
