"""ConversationRepository: conversations and their append-only messages.

Message ids come from the ordered id generator, so ``ORDER BY id`` is
creation order. The caller commits.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.errors import InternalError
from src.el_common.id_generator import generate_id
from src.el_tutor.domain.models import Conversation, Message

_GET_CONVERSATION_SQL = text("""
    SELECT id, student_id, chapter_id, created_at
    FROM conversations
    WHERE student_id = :student_id AND chapter_id = :chapter_id
""")

# No-op update on conflict so RETURNING yields the existing row as well.
_UPSERT_CONVERSATION_SQL = text("""
    INSERT INTO conversations (id, student_id, chapter_id)
    VALUES (:id, :student_id, :chapter_id)
    ON CONFLICT (student_id, chapter_id) DO UPDATE
        SET student_id = EXCLUDED.student_id
    RETURNING id, student_id, chapter_id, created_at
""")

_INSERT_MESSAGE_SQL = text("""
    INSERT INTO messages (id, conversation_id, sender, content, model)
    VALUES (:id, :conversation_id, :sender, :content, :model)
    RETURNING id, conversation_id, sender, content, model, created_at
""")

_LIST_HISTORY_SQL = text("""
    SELECT id, conversation_id, sender, content, model, created_at
    FROM messages
    WHERE conversation_id = :conversation_id
    ORDER BY id ASC
    LIMIT :limit
""")

_LIST_MESSAGES_SQL = text("""
    SELECT id, conversation_id, sender, content, model, created_at
    FROM messages
    WHERE conversation_id = :conversation_id
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id > CAST(:cursor_id AS TEXT))
    ORDER BY id ASC
    LIMIT :limit
""")


def _row_to_conversation(row: object) -> Conversation:
    return Conversation(
        id=row.id,  # type: ignore[attr-defined]
        student_id=str(row.student_id),  # type: ignore[attr-defined]
        chapter_id=row.chapter_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_message(row: object) -> Message:
    return Message(
        id=row.id,  # type: ignore[attr-defined]
        conversation_id=row.conversation_id,  # type: ignore[attr-defined]
        sender=row.sender,  # type: ignore[attr-defined]
        content=row.content,  # type: ignore[attr-defined]
        model=row.model,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class ConversationRepository:
    async def get_conversation(
        self, db: AsyncSession, student_id: str, chapter_id: str
    ) -> Conversation | None:
        result = await db.execute(
            _GET_CONVERSATION_SQL, {"student_id": student_id, "chapter_id": chapter_id}
        )
        row = result.fetchone()
        return _row_to_conversation(row) if row else None

    async def get_or_create_conversation(
        self, db: AsyncSession, student_id: str, chapter_id: str
    ) -> Conversation:
        result = await db.execute(
            _UPSERT_CONVERSATION_SQL,
            {"id": generate_id(), "student_id": student_id, "chapter_id": chapter_id},
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Conversation upsert returned no rows")
        return _row_to_conversation(row)

    async def insert_message(
        self,
        db: AsyncSession,
        conversation_id: str,
        sender: str,
        content: str,
        model: str | None = None,
    ) -> Message:
        result = await db.execute(
            _INSERT_MESSAGE_SQL,
            {
                "id": generate_id(),
                "conversation_id": conversation_id,
                "sender": sender,
                "content": content,
                "model": model,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Message insert returned no rows")
        return _row_to_message(row)

    async def list_history(
        self, db: AsyncSession, conversation_id: str, limit: int
    ) -> list[Message]:
        result = await db.execute(
            _LIST_HISTORY_SQL, {"conversation_id": conversation_id, "limit": limit}
        )
        return [_row_to_message(row) for row in result.fetchall()]

    async def list_messages(
        self,
        db: AsyncSession,
        conversation_id: str,
        cursor_id: str | None,
        limit: int,
    ) -> list[Message]:
        result = await db.execute(
            _LIST_MESSAGES_SQL,
            {"conversation_id": conversation_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_message(row) for row in result.fetchall()]
