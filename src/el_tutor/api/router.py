"""el_tutor REST API: ask the AI tutor, read the conversation."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.database import get_db_session
from src.el_common.response import ApiResponse, success_response
from src.el_gateway.auth.dependencies import require_student
from src.el_gateway.middleware.request_log import get_request_id
from src.el_gateway.user.db_models import UserModel
from src.el_llm.client import LanguageModelClient, get_llm_client
from src.el_tutor.application.schemas import AskQuestionRequest
from src.el_tutor.application.service import TutorApplicationService

router = APIRouter(prefix="/chapters", tags=["tutor"])

_service = TutorApplicationService()


@router.post("/{chapter_id}/ask", status_code=201)
async def ask_question(
    chapter_id: str,
    body: AskQuestionRequest,
    current_user: Annotated[UserModel, Depends(require_student)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    llm: Annotated[LanguageModelClient, Depends(get_llm_client)],
    request: Request,
) -> ApiResponse:
    data = await _service.ask_question(
        db,
        llm,
        current_user.account_id,
        chapter_id,
        body.question,
        current_user.ai_model,
    )
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/{chapter_id}/messages")
async def list_messages(
    chapter_id: str,
    current_user: Annotated[UserModel, Depends(require_student)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(50, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_messages(
        db, current_user.account_id, chapter_id, cursor, limit
    )
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp
