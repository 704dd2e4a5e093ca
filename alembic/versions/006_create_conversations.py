"""006: create conversations and messages tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE conversations (
            id              VARCHAR(32)     PRIMARY KEY,
            student_id      UUID            NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            chapter_id      VARCHAR(64)     NOT NULL REFERENCES chapters(id) ON DELETE CASCADE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_conversations_student_chapter UNIQUE (student_id, chapter_id)
        );
    """)
    # Ordered ids: ORDER BY id is creation order.
    op.execute("""
        CREATE TABLE messages (
            id              VARCHAR(32)     PRIMARY KEY,
            conversation_id VARCHAR(32)     NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender          VARCHAR(10)     NOT NULL,
            content         TEXT            NOT NULL,
            model           VARCHAR(32),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_messages_sender CHECK (sender IN ('STUDENT', 'AI'))
        );
    """)
    op.execute("CREATE INDEX idx_messages_conversation ON messages (conversation_id, id);")
    op.execute("""
        CREATE TRIGGER trg_messages_immutable
            BEFORE UPDATE ON messages
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS messages CASCADE;")
    op.execute("DROP TABLE IF EXISTS conversations CASCADE;")
