"""Pydantic schemas for el_tutor API."""

from pydantic import BaseModel, Field

from src.el_common.datetime_utils import to_iso
from src.el_tutor.domain.models import Message


class AskQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)


class MessageItem(BaseModel):
    id: str
    conversation_id: str
    sender: str
    content: str
    model: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, m: Message) -> "MessageItem":
        return cls(
            id=m.id,
            conversation_id=m.conversation_id,
            sender=m.sender,
            content=m.content,
            model=m.model,
            created_at=to_iso(m.created_at),
        )


class AskQuestionResponse(BaseModel):
    question: MessageItem
    answer: MessageItem


class MessageListResponse(BaseModel):
    items: list[MessageItem]
    next_cursor: str | None
    has_more: bool
