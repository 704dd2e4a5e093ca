"""Prompt assembly for the tutor and the grader.

Tutor prompt layout:
  1. system: fixed tutoring instructions
  2. system: course/chapter context (full chapter content)
  3. the earliest HISTORY_WINDOW messages of the conversation, oldest first,
     each clipped to HISTORY_MESSAGE_CHARS

Once a conversation outgrows the window the newest student question is no
longer part of it; pass ``question_text`` and it is appended as the final
user turn in that case.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.enums import MessageSender
from src.el_common.errors import ChapterNotFoundError
from src.el_course.domain.models import ChapterContext
from src.el_course.domain.repository import CourseRepositoryProtocol
from src.el_course.infrastructure.persistence import CourseRepository
from src.el_grading.domain.models import GradingAnswer
from src.el_llm.client import ChatMessage
from src.el_tutor.domain.repository import ConversationRepositoryProtocol
from src.el_tutor.infrastructure.persistence import ConversationRepository

HISTORY_WINDOW = 10
HISTORY_MESSAGE_CHARS = 500

TUTOR_SYSTEM_PROMPT = (
    "You are a helpful teacher. Answer the student's question clearly and concisely "
    "based on the chapter content provided. If the question is irrelevant to the "
    "chapter, politely let the student know and guide them back to the topic."
)

GRADING_SYSTEM_PROMPT = """You are an expert teacher grading a test. For each question, provide:
1. A score from 0-10 (10 being perfect)
2. Brief feedback explaining the score

Respond with a JSON object only, in this format:
{
  "results": [
    {
      "questionId": "string",
      "score": number (0-10),
      "feedback": "string"
    }
  ]
}
Use the exact questionId given for each question."""

NO_ANSWER = "No answer provided"


@dataclass(frozen=True)
class TutorPrompt:
    messages: list[ChatMessage]
    chapter: ChapterContext


def format_chapter_context(chapter: ChapterContext) -> str:
    return (
        f"Course: {chapter.course_title}\n"
        f"Description: {chapter.course_description or ''}\n\n"
        f"Chapter: {chapter.chapter_title}\n\n"
        f"Content:\n{chapter.content}"
    )


def _role_for(sender: str) -> str:
    return "assistant" if sender == MessageSender.AI.value else "user"


async def assemble_tutor_prompt(
    db: AsyncSession,
    chapter_id: str,
    conversation_id: str,
    question_text: str | None = None,
    course_repo: CourseRepositoryProtocol | None = None,
    conversation_repo: ConversationRepositoryProtocol | None = None,
) -> TutorPrompt:
    """Build the tutor message list. Raises ChapterNotFoundError."""
    course_repo = course_repo or CourseRepository()
    conversation_repo = conversation_repo or ConversationRepository()

    chapter = await course_repo.get_chapter_context(db, chapter_id)
    if chapter is None:
        raise ChapterNotFoundError(chapter_id)

    messages = [
        ChatMessage(role="system", content=TUTOR_SYSTEM_PROMPT),
        ChatMessage(role="system", content=format_chapter_context(chapter)),
    ]

    # One extra row tells us whether the window is full.
    history = await conversation_repo.list_history(db, conversation_id, HISTORY_WINDOW + 1)
    window = history[:HISTORY_WINDOW]
    messages.extend(
        ChatMessage(role=_role_for(m.sender), content=m.content[:HISTORY_MESSAGE_CHARS])
        for m in window
    )

    if question_text is not None:
        last = window[-1] if window else None
        question_in_window = (
            len(history) <= HISTORY_WINDOW
            and last is not None
            and last.sender == MessageSender.STUDENT.value
            and last.content == question_text
        )
        if not question_in_window:
            messages.append(
                ChatMessage(role="user", content=question_text[:HISTORY_MESSAGE_CHARS])
            )

    return TutorPrompt(messages=messages, chapter=chapter)


def format_grading_answers(answers: list[GradingAnswer]) -> str:
    blocks = []
    for i, a in enumerate(answers, start=1):
        explanation = f"Explanation: {a.explanation}\n" if a.explanation else ""
        blocks.append(
            f"Question {i} (questionId: {a.question_id}): {a.question}\n"
            f"Correct Answer: {a.correct_answer}\n"
            f"{explanation}"
            f"Student Answer: {a.student_answer or NO_ANSWER}\n"
        )
    return "\n---\n".join(blocks)


def assemble_grading_prompt(answers: list[GradingAnswer]) -> tuple[str, str]:
    """Return (system_prompt, user_prompt) for grading ``answers`` in order."""
    return GRADING_SYSTEM_PROMPT, format_grading_answers(answers)
