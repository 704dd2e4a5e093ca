"""008: indexes for test history and course leaderboard

Revision ID: 008
Revises: 007
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE INDEX ix_tests_student_history
        ON tests (student_id, id DESC);
    """)
    op.execute("""
        CREATE INDEX ix_tests_course_leaderboard
        ON tests (course_id, ai_score DESC, id ASC)
        WHERE submitted_at IS NOT NULL AND ai_score IS NOT NULL;
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_tests_course_leaderboard;")
    op.execute("DROP INDEX IF EXISTS ix_tests_student_history;")
