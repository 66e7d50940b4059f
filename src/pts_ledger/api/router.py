"""Admin ledger API: balances, manual adjustments, history, fee summary."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_common.database import get_db_session
from src.pts_common.response import ApiResponse, success_response
from src.pts_gateway.auth.dependencies import AdminPrincipal, require_admin
from src.pts_ledger.application.schemas import PointsAdjustmentRequest
from src.pts_ledger.application.service import LedgerService

router = APIRouter(prefix="/admin", tags=["ledger"])
_service = LedgerService()


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.get("/accounts/{account_id}/balance")
async def get_balance(
    account_id: int,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, account_id)
    return success_response(data.model_dump(), _request_id(request))


@router.post("/accounts/{account_id}/points/credit")
async def credit_points(
    account_id: int,
    body: PointsAdjustmentRequest,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.credit_points(
        db, account_id, body.amount, body.reason, admin.account_id
    )
    return success_response(data.model_dump(), _request_id(request))


@router.post("/accounts/{account_id}/points/debit")
async def debit_points(
    account_id: int,
    body: PointsAdjustmentRequest,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.debit_points(
        db, account_id, body.amount, body.reason, admin.account_id
    )
    return success_response(data.model_dump(), _request_id(request))


@router.get("/accounts/{account_id}/ledger")
async def list_ledger(
    account_id: int,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    action: str | None = Query(None, description="Filter by LedgerAction"),
) -> ApiResponse:
    data = await _service.list_ledger(db, account_id, cursor, limit, action)
    return success_response(data.model_dump(), _request_id(request))


@router.get("/fees/summary")
async def fee_summary(
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
) -> ApiResponse:
    data = await _service.fee_summary(db, since, until)
    return success_response(data.model_dump(mode="json"), _request_id(request))
