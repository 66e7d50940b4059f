"""Admin settlement API: request a resolution, inspect a job."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_common.database import get_db_session
from src.pts_common.response import ApiResponse, success_response
from src.pts_gateway.auth.dependencies import AdminPrincipal, require_admin
from src.pts_intake.dependencies import get_job_queue
from src.pts_intake.queue import JobQueue
from src.pts_settlement.application.schemas import CreateSettlementRequest
from src.pts_settlement.application.service import SettlementApplicationService

router = APIRouter(prefix="/admin/settlements", tags=["settlements"])
_service = SettlementApplicationService()


@router.post("")
async def request_settlement(
    body: CreateSettlementRequest,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    queue: Annotated[JobQueue, Depends(get_job_queue)],
    request: Request,
) -> ApiResponse:
    data = await _service.request_settlement(
        db, queue, body.market_id, body.result_option_id, admin.account_id
    )
    return success_response(
        data.model_dump(mode="json"), getattr(request.state, "request_id", None)
    )


@router.get("/{job_id}")
async def get_settlement_job(
    job_id: int,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_job(db, job_id)
    return success_response(
        data.model_dump(mode="json"), getattr(request.state, "request_id", None)
    )
