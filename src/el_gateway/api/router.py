"""el_gateway REST API: the caller's AI model preference."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.database import get_db_session
from src.el_common.errors import StorageUnavailableError, UnsupportedModelError
from src.el_common.response import ApiResponse, success_response
from src.el_gateway.auth.dependencies import get_current_user
from src.el_gateway.middleware.request_log import get_request_id
from src.el_gateway.user.db_models import UserModel
from src.el_ledger.domain.pricing import PRICING_TABLE, is_supported_model

router = APIRouter(prefix="/me", tags=["user"])


class AIModelUpdateRequest(BaseModel):
    model: str = Field(..., min_length=1, max_length=32)


class AIModelResponse(BaseModel):
    model: str
    available_models: list[str]


def _model_response(model: str) -> AIModelResponse:
    return AIModelResponse(model=model, available_models=sorted(PRICING_TABLE))


@router.get("/ai-model")
async def get_ai_model(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    request: Request,
) -> ApiResponse:
    resp = success_response(_model_response(current_user.ai_model).model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.put("/ai-model")
async def update_ai_model(
    body: AIModelUpdateRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    # Every stored preference must be billable.
    if not is_supported_model(body.model):
        raise UnsupportedModelError(body.model)

    current_user.ai_model = body.model
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StorageUnavailableError("Could not save AI model preference") from exc

    resp = success_response(_model_response(body.model).model_dump())
    resp.request_id = get_request_id(request)
    return resp
