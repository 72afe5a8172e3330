"""Escrow API endpoints.

Provides endpoints for the escrow calculator and ledger:
- POST /escrow/breakdown - split an order total into tranches
- GET /escrow/stage-amount - tranche owed at one stage
- POST /escrow/orders - open escrow for an order
- GET /escrow/orders/{order_id} - ledger status and consistency
- POST /escrow/orders/{order_id}/deposit - record the customer's deposit
- POST /escrow/release-milestone-payment - release a tranche (service token)
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from sew4mi.api.errors import to_http_exception
from sew4mi.api.middleware import verify_service_token
from sew4mi.api.schemas import (
    ErrorResponse,
    EscrowAccountResponse,
    EscrowBreakdownRequest,
    EscrowBreakdownResponse,
    EscrowDepositRequest,
    EscrowOpenRequest,
    PaymentReleaseRequest,
    PaymentReleaseResponse,
    StageAmountResponse,
)
from sew4mi.application.escrow_service import EscrowService, get_escrow_service
from sew4mi.domain.entities import EscrowAccount
from sew4mi.domain.escrow import EscrowBreakdown
from sew4mi.domain.exceptions import DomainError
from sew4mi.domain.state_machines import EscrowStage

router = APIRouter(prefix="/escrow", tags=["Escrow"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> EscrowService:
    """Get escrow service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_escrow_service(request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def breakdown_to_response(breakdown: EscrowBreakdown) -> EscrowBreakdownResponse:
    return EscrowBreakdownResponse(
        total_amount=breakdown.total_amount,
        deposit_amount=breakdown.deposit_amount,
        fitting_amount=breakdown.fitting_amount,
        final_amount=breakdown.final_amount,
        deposit_percentage=breakdown.deposit_percentage,
        fitting_percentage=breakdown.fitting_percentage,
        final_percentage=breakdown.final_percentage,
        currency=breakdown.currency,
    )


def account_to_response(account: EscrowAccount) -> EscrowAccountResponse:
    """Convert EscrowAccount to EscrowAccountResponse."""
    errors = account.validate_state()
    return EscrowAccountResponse(
        order_id=str(account.id),
        total_amount=account.total_amount,
        current_stage=account.current_stage,
        deposit_paid=account.deposit_paid,
        fitting_paid=account.fitting_paid,
        final_paid=account.final_paid,
        escrow_balance=account.escrow_balance,
        breakdown=breakdown_to_response(account.breakdown),
        is_valid=not errors,
        errors=errors,
        updated_at=account.updated_at,
    )


# ============================================================================
# Calculator Endpoints
# ============================================================================


@router.post(
    "/breakdown",
    response_model=EscrowBreakdownResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Calculate escrow breakdown",
    description="Split an order total into deposit (25%), fitting (50%) and final tranches.",
)
async def calculate_breakdown(
    body: EscrowBreakdownRequest,
    service: Annotated[EscrowService, Depends(get_service)],
) -> EscrowBreakdownResponse:
    try:
        breakdown = service.calculate_breakdown(body.total_amount)
    except DomainError as e:
        raise to_http_exception(e) from e
    return breakdown_to_response(breakdown)


@router.get(
    "/stage-amount",
    response_model=StageAmountResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Get stage amount",
    description="Get the tranche owed at an escrow stage. RELEASED owes nothing.",
)
async def get_stage_amount(
    service: Annotated[EscrowService, Depends(get_service)],
    total_amount: Decimal = Query(..., description="Order total"),
    stage: str = Query(..., description="DEPOSIT, FITTING, FINAL or RELEASED"),
) -> StageAmountResponse:
    try:
        amount = service.get_stage_amount(total_amount, stage)
        total = service.calculate_breakdown(total_amount).total_amount
    except DomainError as e:
        raise to_http_exception(e) from e
    return StageAmountResponse(
        total_amount=total,
        stage=EscrowStage(stage),
        amount=amount,
    )


# ============================================================================
# Ledger Endpoints
# ============================================================================


@router.post(
    "/orders",
    response_model=EscrowAccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Open escrow",
    description=(
        "Open an escrow ledger for an order total. "
        "Repeating the call with the same total returns the existing ledger."
    ),
)
async def open_escrow(
    body: EscrowOpenRequest,
    service: Annotated[EscrowService, Depends(get_service)],
) -> EscrowAccountResponse:
    try:
        account = await service.open_escrow(body.order_id, body.total_amount)
    except DomainError as e:
        raise to_http_exception(e) from e
    return account_to_response(account)


@router.get(
    "/orders/{order_id}",
    response_model=EscrowAccountResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get escrow status",
    description="Get the escrow ledger of an order with a consistency check.",
)
async def get_escrow_status(
    order_id: str,
    service: Annotated[EscrowService, Depends(get_service)],
) -> EscrowAccountResponse:
    try:
        account = await service.get_escrow_status(order_id)
    except DomainError as e:
        raise to_http_exception(e) from e
    return account_to_response(account)


@router.post(
    "/orders/{order_id}/deposit",
    response_model=EscrowAccountResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Record deposit",
    description="Record the customer's deposit and move the escrow to FITTING.",
)
async def record_deposit(
    order_id: str,
    body: EscrowDepositRequest,
    service: Annotated[EscrowService, Depends(get_service)],
) -> EscrowAccountResponse:
    try:
        account = await service.record_deposit(order_id, body.amount)
    except DomainError as e:
        raise to_http_exception(e) from e
    return account_to_response(account)


@router.post(
    "/release-milestone-payment",
    response_model=PaymentReleaseResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Release milestone payment",
    description=(
        "Release the escrow tranche for an approved milestone. "
        "Authenticated with the service token instead of the API key."
    ),
    dependencies=[Depends(verify_service_token)],
)
async def release_milestone_payment(
    body: PaymentReleaseRequest,
    service: Annotated[EscrowService, Depends(get_service)],
) -> PaymentReleaseResponse:
    try:
        released = await service.release_stage_payment(
            body.order_id, body.milestone_id, body.amount
        )
    except DomainError as e:
        raise to_http_exception(e) from e

    if not released:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error_code": "PAYMENT_NOT_RELEASED",
                "message": "Escrow tranche could not be released",
                "details": {
                    "order_id": body.order_id,
                    "milestone_id": body.milestone_id,
                },
            },
        )

    return PaymentReleaseResponse(
        released=True,
        order_id=body.order_id,
        milestone_id=body.milestone_id,
    )
