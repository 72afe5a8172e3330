"""Scheduled job endpoints.

- POST /cron/auto-approve-milestones - approve every milestone past its deadline

Called by an external scheduler with ``Authorization: Bearer <cron_secret>``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from sew4mi.api.middleware import verify_service_token
from sew4mi.api.schemas import AutoApprovalSweepResponse, ErrorResponse
from sew4mi.application.milestone_service import (
    MilestoneApprovalService,
    get_milestone_service,
)

router = APIRouter(prefix="/cron", tags=["Cron"])


def get_service(request: Request) -> MilestoneApprovalService:
    """Get milestone service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_milestone_service(request_id=request_id)


@router.post(
    "/auto-approve-milestones",
    response_model=AutoApprovalSweepResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Auto-approve overdue milestones",
    description="Approve every PENDING milestone whose review deadline has passed.",
    dependencies=[Depends(verify_service_token)],
)
async def auto_approve_milestones(
    service: Annotated[MilestoneApprovalService, Depends(get_service)],
    limit: int | None = Query(default=None, ge=1, le=1000, description="Max milestones"),
) -> AutoApprovalSweepResponse:
    result = await service.run_auto_approval_sweep(limit=limit)
    return AutoApprovalSweepResponse(
        success=result.success,
        processed=result.processed,
        auto_approved=result.auto_approved,
        failed=result.failed,
        approved_milestone_ids=result.approved_milestone_ids,
        errors=result.errors,
        execution_time_ms=result.execution_time_ms,
        message=result.message,
    )
