"""el_ledger REST API: credit balance, transaction history, reconciliation."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.el_common.database import get_db_session
from src.el_common.enums import LedgerEntryType
from src.el_common.response import ApiResponse, success_response
from src.el_gateway.auth.dependencies import get_current_user, require_admin
from src.el_gateway.middleware.request_log import get_request_id
from src.el_gateway.user.db_models import UserModel
from src.el_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/credits", tags=["credits"])

_service = LedgerApplicationService()


@router.get("/balance")
async def get_credit_balance(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_credit_balance(db, current_user.account_id)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: LedgerEntryType | None = Query(None, description="Filter by entry type"),
) -> ApiResponse:
    data = await _service.list_transactions(
        db,
        current_user.account_id,
        cursor,
        limit,
        entry_type.value if entry_type else None,
    )
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp


@router.get("/reconciliation")
async def reconcile_ledger(
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    account_id: str | None = Query(None, description="Limit the audit to one account"),
) -> ApiResponse:
    data = await _service.reconcile(db, account_id)
    resp = success_response(data.model_dump())
    resp.request_id = get_request_id(request)
    return resp
