"""Milestone API endpoints.

Provides endpoints for the customer review of tailor milestones:
- POST /milestones - submit a milestone for review
- GET /milestones/{id}/approval - current review state
- POST /milestones/{id}/approve - customer approves or rejects
- GET /milestones/{id}/approvals - audit trail of the review

The reviewing customer is identified by the ``X-Customer-ID`` header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from sew4mi.api.errors import to_http_exception
from sew4mi.api.schemas import (
    ApprovalHistoryResponse,
    ApprovalRecordSchema,
    ErrorResponse,
    MilestoneCreateRequest,
    MilestoneDecisionRequest,
    MilestoneDecisionResponse,
    MilestoneResponse,
)
from sew4mi.application.milestone_service import (
    MilestoneApprovalService,
    MilestoneDecisionResult,
    get_milestone_service,
)
from sew4mi.domain.entities import Milestone, MilestoneApprovalRecord
from sew4mi.domain.exceptions import DomainError
from sew4mi.domain.state_machines import MilestoneApprovalStatus

router = APIRouter(prefix="/milestones", tags=["Milestones"])

# Width of the approval actor_id column
MAX_CUSTOMER_ID_LENGTH = 100


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> MilestoneApprovalService:
    """Get milestone service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_milestone_service(request_id=request_id)


def get_customer_id(
    x_customer_id: Annotated[str | None, Header()] = None,
) -> str:
    """Reviewing customer from the ``X-Customer-ID`` header."""
    if not x_customer_id or not x_customer_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "MISSING_CUSTOMER_ID",
                "message": "X-Customer-ID header is required",
            },
        )
    customer_id = x_customer_id.strip()
    if len(customer_id) > MAX_CUSTOMER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "INVALID_CUSTOMER_ID",
                "message": f"X-Customer-ID must be at most {MAX_CUSTOMER_ID_LENGTH} characters",
            },
        )
    return customer_id


# ============================================================================
# Converters
# ============================================================================


def milestone_to_response(milestone: Milestone) -> MilestoneResponse:
    """Convert Milestone to MilestoneResponse."""
    return MilestoneResponse(
        id=str(milestone.id),
        order_id=str(milestone.order_id),
        milestone=milestone.milestone,
        escrow_stage=milestone.escrow_stage,
        order_amount=milestone.order_amount,
        release_amount=milestone.release_amount,
        approval_status=milestone.approval_status,
        auto_approval_deadline=milestone.auto_approval_deadline,
        customer_reviewed_at=milestone.customer_reviewed_at,
        rejection_reason=milestone.rejection_reason,
        notes=milestone.notes,
        verified_by=milestone.verified_by,
        created_at=milestone.created_at,
        updated_at=milestone.updated_at,
    )


def record_to_schema(record: MilestoneApprovalRecord) -> ApprovalRecordSchema:
    return ApprovalRecordSchema(
        id=str(record.id),
        milestone_id=str(record.milestone_id),
        order_id=str(record.order_id),
        actor_id=record.actor_id,
        action=record.action,
        comment=record.comment,
        reviewed_at=record.reviewed_at,
    )


def decision_to_response(result: MilestoneDecisionResult) -> MilestoneDecisionResponse:
    """Convert a committed review into the API response."""
    if result.approval_status == MilestoneApprovalStatus.REJECTED:
        message = "Milestone rejected"
    elif result.payment_triggered:
        message = "Milestone approved and payment released"
    else:
        message = "Milestone approved; payment release pending"

    return MilestoneDecisionResponse(
        milestone_id=str(result.milestone.id),
        approval_status=result.approval_status,
        reviewed_at=result.reviewed_at,
        payment_triggered=result.payment_triggered,
        amount_released=result.amount_released,
        message=message,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=MilestoneResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Submit milestone",
    description="Submit a tailoring milestone for customer review.",
)
async def create_milestone(
    body: MilestoneCreateRequest,
    service: Annotated[MilestoneApprovalService, Depends(get_service)],
) -> MilestoneResponse:
    try:
        milestone = await service.create_milestone(
            order_id=body.order_id,
            milestone=body.milestone,
            order_amount=body.order_amount,
            escrow_stage=body.escrow_stage,
            notes=body.notes,
            verified_by=body.verified_by,
            auto_approval_deadline=body.auto_approval_deadline,
        )
    except DomainError as e:
        raise to_http_exception(e) from e
    return milestone_to_response(milestone)


@router.get(
    "/{milestone_id}/approval",
    response_model=MilestoneResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get approval status",
    description="Get the current review state of a milestone.",
)
async def get_approval_status(
    milestone_id: str,
    service: Annotated[MilestoneApprovalService, Depends(get_service)],
) -> MilestoneResponse:
    try:
        milestone = await service.get_milestone(milestone_id)
    except DomainError as e:
        raise to_http_exception(e) from e
    return milestone_to_response(milestone)


@router.post(
    "/{milestone_id}/approve",
    response_model=MilestoneDecisionResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
    summary="Review milestone",
    description=(
        "Approve or reject a milestone before its auto-approval deadline. "
        "Approval releases the milestone's escrow tranche on a best-effort basis."
    ),
)
async def review_milestone(
    milestone_id: str,
    body: MilestoneDecisionRequest,
    customer_id: Annotated[str, Depends(get_customer_id)],
    service: Annotated[MilestoneApprovalService, Depends(get_service)],
) -> MilestoneDecisionResponse:
    try:
        result = await service.submit_decision(
            milestone_id=milestone_id,
            actor_id=customer_id,
            action=body.action,
            comment=body.comment,
        )
    except DomainError as e:
        raise to_http_exception(e) from e
    return decision_to_response(result)


@router.get(
    "/{milestone_id}/approvals",
    response_model=ApprovalHistoryResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get approval history",
    description="Get the audit trail of a milestone's review.",
)
async def get_approval_history(
    milestone_id: str,
    service: Annotated[MilestoneApprovalService, Depends(get_service)],
) -> ApprovalHistoryResponse:
    try:
        records = await service.get_approval_history(milestone_id)
    except DomainError as e:
        raise to_http_exception(e) from e
    return ApprovalHistoryResponse(
        milestone_id=milestone_id,
        items=[record_to_schema(r) for r in records],
    )
