from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_tutor.domain.models import Conversation, Message


class ConversationRepositoryProtocol(Protocol):
    async def get_conversation(
        self, db: AsyncSession, student_id: str, chapter_id: str
    ) -> Conversation | None: ...

    async def get_or_create_conversation(
        self, db: AsyncSession, student_id: str, chapter_id: str
    ) -> Conversation: ...

    async def insert_message(
        self,
        db: AsyncSession,
        conversation_id: str,
        sender: str,
        content: str,
        model: str | None = None,
    ) -> Message: ...

    async def list_history(
        self, db: AsyncSession, conversation_id: str, limit: int
    ) -> list[Message]: ...

    async def list_messages(
        self,
        db: AsyncSession,
        conversation_id: str,
        cursor_id: str | None,
        limit: int,
    ) -> list[Message]: ...
