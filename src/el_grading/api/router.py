"""el_grading REST API: tests: create, submit for AI grading, read, history, leaderboard."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.database import get_db_session
from src.el_common.response import ApiResponse, success_response
from src.el_gateway.auth.dependencies import get_current_user, require_student
from src.el_gateway.middleware.request_log import get_request_id
from src.el_gateway.user.db_models import UserModel
from src.el_grading.application.schemas import CreateTestRequest, SubmitTestRequest
from src.el_grading.application.service import TestApplicationService
from src.el_llm.client import LanguageModelClient, get_llm_client

router = APIRouter(prefix="/tests", tags=["tests"])

_service = TestApplicationService()


@router.post("", status_code=201)
async def create_test(
    body: CreateTestRequest,
    current_user: Annotated[UserModel, Depends(require_student)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_test(db, current_user.account_id, body.course_id)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


# Fixed paths are declared before "/{test_id}".
@router.get("/mine")
async def list_my_tests(
    current_user: Annotated[UserModel, Depends(require_student)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_my_tests(db, current_user.account_id, cursor, limit)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/leaderboard/{course_id}")
async def get_leaderboard(
    course_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.get_leaderboard(db, course_id, cursor, limit)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.post("/{test_id}/submit")
async def submit_test(
    test_id: str,
    body: SubmitTestRequest,
    current_user: Annotated[UserModel, Depends(require_student)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    llm: Annotated[LanguageModelClient, Depends(get_llm_client)],
    request: Request,
) -> ApiResponse:
    data = await _service.submit_test(
        db, llm, current_user.account_id, test_id, body.answers, current_user.ai_model
    )
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/{test_id}")
async def get_test(
    test_id: str,
    current_user: Annotated[UserModel, Depends(require_student)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_test(db, current_user.account_id, test_id)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp
