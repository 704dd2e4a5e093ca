from dataclasses import dataclass
from datetime import datetime


@dataclass
class Conversation:
    id: str
    student_id: str
    chapter_id: str
    created_at: datetime | None = None


@dataclass
class Message:
    """Immutable once written. ``model`` is set on AI messages only."""

    id: str
    conversation_id: str
    sender: str  # MessageSender value
    content: str
    model: str | None = None
    created_at: datetime | None = None
