"""003: create course content tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE courses (
            id              VARCHAR(64)     PRIMARY KEY,
            title           VARCHAR(255)    NOT NULL,
            description     TEXT,
            is_published    BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TABLE chapters (
            id              VARCHAR(64)     PRIMARY KEY,
            course_id       VARCHAR(64)     NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            title           VARCHAR(255)    NOT NULL,
            content         TEXT            NOT NULL DEFAULT '',
            position        INT             NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_chapters_course ON chapters (course_id, position);")
    op.execute("""
        CREATE TABLE questions (
            id              VARCHAR(64)     PRIMARY KEY,
            course_id       VARCHAR(64)     NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            question        TEXT            NOT NULL,
            answer          TEXT            NOT NULL,
            explanation     TEXT,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_questions_course ON questions (course_id);")
    op.execute("""
        CREATE TABLE course_enrollments (
            student_id      UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            course_id       VARCHAR(64)     NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (student_id, course_id)
        );
    """)
    for table in ("courses", "chapters"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS course_enrollments CASCADE;")
    op.execute("DROP TABLE IF EXISTS questions CASCADE;")
    op.execute("DROP TABLE IF EXISTS chapters CASCADE;")
    op.execute("DROP TABLE IF EXISTS courses CASCADE;")
