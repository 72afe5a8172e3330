"""API schemas for the Sew4Mi escrow API.

Pydantic models for request/response validation and serialization.
Money amounts are ``Decimal`` and serialize as strings with two places.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AwareDatetime, BaseModel, Field

from sew4mi.domain.state_machines import (
    EscrowStage,
    MilestoneApprovalAction,
    MilestoneApprovalStatus,
    MilestoneStage,
)
from sew4mi.domain.value_objects import CURRENCY


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# ============================================================================
# Escrow Calculator Schemas
# ============================================================================


class EscrowBreakdownRequest(BaseModel):
    """Request to split an order total into escrow tranches."""

    total_amount: Decimal = Field(..., description="Order total in GHS")


class EscrowBreakdownResponse(BaseModel):
    """Deposit / fitting / final split of an order total."""

    total_amount: Decimal = Field(..., description="Total rounded to 2 places")
    deposit_amount: Decimal = Field(..., description="Deposit tranche (25%)")
    fitting_amount: Decimal = Field(..., description="Fitting tranche (50%)")
    final_amount: Decimal = Field(..., description="Final tranche (remainder)")
    deposit_percentage: Decimal = Field(..., description="Deposit share")
    fitting_percentage: Decimal = Field(..., description="Fitting share")
    final_percentage: Decimal = Field(..., description="Final share")
    currency: str = Field(default=CURRENCY, description="Currency code")


class StageAmountResponse(BaseModel):
    """Tranche owed at one escrow stage."""

    total_amount: Decimal = Field(..., description="Order total")
    stage: EscrowStage = Field(..., description="Escrow stage")
    amount: Decimal = Field(..., description="Tranche amount (0.00 for RELEASED)")
    currency: str = Field(default=CURRENCY, description="Currency code")


# ============================================================================
# Escrow Ledger Schemas
# ============================================================================


class EscrowOpenRequest(BaseModel):
    """Request to open escrow for an order."""

    order_id: str = Field(..., description="Order identifier (UUID)")
    total_amount: Decimal = Field(..., description="Order total in GHS")


class EscrowDepositRequest(BaseModel):
    """Customer deposit paid into escrow."""

    amount: Decimal = Field(..., description="Deposit amount; must equal the deposit tranche")


class EscrowAccountResponse(BaseModel):
    """Escrow ledger for an order."""

    order_id: str = Field(..., description="Order identifier")
    total_amount: Decimal = Field(..., description="Order total")
    current_stage: EscrowStage = Field(..., description="Stage the escrow is waiting on")
    deposit_paid: Decimal = Field(..., description="Deposit received")
    fitting_paid: Decimal = Field(..., description="Fitting tranche released")
    final_paid: Decimal = Field(..., description="Final tranche released")
    escrow_balance: Decimal = Field(..., description="Amount not yet settled")
    breakdown: EscrowBreakdownResponse = Field(..., description="Tranche schedule")
    is_valid: bool = Field(..., description="Whether the ledger is consistent")
    errors: list[str] = Field(default_factory=list, description="Consistency problems")
    currency: str = Field(default=CURRENCY, description="Currency code")
    updated_at: datetime = Field(..., description="When the ledger last changed")


class PaymentReleaseRequest(BaseModel):
    """Service request to release an escrow tranche for a milestone."""

    order_id: str = Field(..., description="Order identifier")
    milestone_id: str = Field(..., description="Approved milestone")
    amount: Decimal = Field(..., description="Tranche amount to release")


class PaymentReleaseResponse(BaseModel):
    """Outcome of a payment release request."""

    released: bool = Field(..., description="Whether the tranche was released")
    order_id: str = Field(..., description="Order identifier")
    milestone_id: str = Field(..., description="Milestone identifier")


# ============================================================================
# Milestone Schemas
# ============================================================================


class MilestoneCreateRequest(BaseModel):
    """Tailor submission of a milestone for customer review."""

    order_id: str = Field(..., description="Order identifier (UUID)")
    milestone: MilestoneStage = Field(..., description="Tailoring checkpoint")
    order_amount: Decimal = Field(..., description="Order total in GHS")
    escrow_stage: EscrowStage | None = Field(
        default=None,
        description="Tranche released on approval; derived from the milestone when omitted",
    )
    notes: str | None = Field(default=None, max_length=2000, description="Notes for the customer")
    verified_by: str | None = Field(
        default=None, max_length=36, description="Submitting tailor"
    )
    auto_approval_deadline: AwareDatetime | None = Field(
        default=None,
        description="Explicit review deadline with UTC offset (defaults to 48 hours)",
    )


class MilestoneResponse(BaseModel):
    """Milestone and its current review state."""

    id: str = Field(..., description="Milestone identifier")
    order_id: str = Field(..., description="Order identifier")
    milestone: MilestoneStage = Field(..., description="Tailoring checkpoint")
    escrow_stage: EscrowStage = Field(..., description="Tranche released on approval")
    order_amount: Decimal = Field(..., description="Order total")
    release_amount: Decimal = Field(..., description="Tranche released on approval")
    approval_status: MilestoneApprovalStatus = Field(..., description="Review status")
    auto_approval_deadline: datetime = Field(..., description="Auto-approval deadline")
    customer_reviewed_at: datetime | None = Field(
        default=None, description="When the review was resolved"
    )
    rejection_reason: str | None = Field(
        default=None, description="Customer's reason, set only when rejected"
    )
    notes: str | None = Field(default=None, description="Tailor notes")
    verified_by: str | None = Field(default=None, description="Submitting tailor")
    created_at: datetime = Field(..., description="When the milestone was submitted")
    updated_at: datetime = Field(..., description="When the milestone last changed")


class MilestoneDecisionRequest(BaseModel):
    """Customer decision on a milestone."""

    action: str = Field(..., description="APPROVED or REJECTED")
    comment: str | None = Field(
        default=None, description="Optional comment (max 500 characters)"
    )


class MilestoneDecisionResponse(BaseModel):
    """Result of a committed milestone review."""

    success: bool = Field(default=True, description="Review was recorded")
    milestone_id: str = Field(..., description="Milestone identifier")
    approval_status: MilestoneApprovalStatus = Field(..., description="New review status")
    reviewed_at: datetime = Field(..., description="When the review was recorded")
    payment_triggered: bool = Field(
        ..., description="Whether the escrow tranche was released"
    )
    amount_released: Decimal = Field(..., description="Released amount (0.00 if none)")
    message: str = Field(..., description="Human-readable outcome")


class ApprovalRecordSchema(BaseModel):
    """Audit record of one milestone review."""

    id: str = Field(..., description="Record identifier")
    milestone_id: str = Field(..., description="Milestone identifier")
    order_id: str = Field(..., description="Order identifier")
    actor_id: str = Field(..., description="Customer id or 'system'")
    action: MilestoneApprovalAction = Field(..., description="Recorded action")
    comment: str | None = Field(default=None, description="Reviewer comment")
    reviewed_at: datetime = Field(..., description="When the review happened")


class ApprovalHistoryResponse(BaseModel):
    """Audit trail of a milestone."""

    milestone_id: str = Field(..., description="Milestone identifier")
    items: list[ApprovalRecordSchema] = Field(..., description="Records, oldest first")


# ============================================================================
# Cron Schemas
# ============================================================================


class AutoApprovalSweepResponse(BaseModel):
    """Summary of an auto-approval sweep."""

    success: bool = Field(..., description="True when no milestone failed")
    processed: int = Field(..., description="Overdue milestones examined")
    auto_approved: int = Field(..., description="Milestones auto-approved")
    failed: int = Field(..., description="Milestones that could not be approved")
    approved_milestone_ids: list[str] = Field(
        default_factory=list, description="IDs of auto-approved milestones"
    )
    errors: list[str] = Field(default_factory=list, description="Per-milestone errors")
    execution_time_ms: float = Field(..., description="Sweep duration")
    message: str = Field(..., description="Human-readable summary")
