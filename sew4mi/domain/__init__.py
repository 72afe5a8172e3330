"""Domain layer - Entities, value objects, state machines, domain events.

This module exports the core escrow and milestone building blocks:

- **Escrow calculator**: deposit/fitting/final split with exact-sum rounding
- **Entities**: Milestone, MilestoneApprovalRecord, EscrowAccount
- **State Machines**: EscrowStage, MilestoneApprovalStatus
- **Domain Events**: milestone reviews and escrow releases
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from sew4mi.domain import calculate_breakdown, get_stage_amount, EscrowStage

    breakdown = calculate_breakdown(123.45)
    print(breakdown.deposit_amount)  # 30.86
    print(get_stage_amount(1000, EscrowStage.FITTING))  # 500.00
"""

# Base classes
from sew4mi.domain.base import AggregateRoot, DomainEvent, Entity, ValueObject

# Entities
from sew4mi.domain.entities import (
    SYSTEM_ACTOR,
    EscrowAccount,
    Milestone,
    MilestoneApprovalRecord,
)

# Escrow calculator
from sew4mi.domain.escrow import (
    ESCROW_PERCENTAGES,
    EscrowBreakdown,
    calculate_breakdown,
    calculate_deposit_amount,
    calculate_final_amount,
    calculate_fitting_amount,
    get_stage_amount,
    validate_breakdown,
)

# Domain Events
from sew4mi.domain.events import (
    EVENT_REGISTRY,
    EscrowDepositReceived,
    EscrowOpened,
    EscrowStageReleased,
    MilestoneApproved,
    MilestoneAutoApproved,
    MilestoneRejected,
    MilestoneSubmitted,
)

# Exceptions
from sew4mi.domain.exceptions import (
    ApprovalDeadlinePassedError,
    AutoApprovalNotDueError,
    ConflictError,
    DomainError,
    EscrowAccountNotFoundError,
    EscrowCalculationError,
    InvalidAmountError,
    InvalidStateTransitionError,
    MilestoneAlreadyReviewedError,
    MilestoneNotFoundError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)

# State Machines
from sew4mi.domain.state_machines import (
    EscrowStage,
    MilestoneApprovalAction,
    MilestoneApprovalStatus,
    MilestoneStage,
    validate_escrow_stage_transition,
    validate_milestone_transition,
)

# Value Objects
from sew4mi.domain.value_objects import (
    CURRENCY,
    ApprovalRecordId,
    MilestoneId,
    OrderId,
    format_money,
    parse_amount,
    round_money,
)

__all__ = [
    # Base
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "ValueObject",
    # Entities
    "SYSTEM_ACTOR",
    "EscrowAccount",
    "Milestone",
    "MilestoneApprovalRecord",
    # Escrow calculator
    "ESCROW_PERCENTAGES",
    "EscrowBreakdown",
    "calculate_breakdown",
    "calculate_deposit_amount",
    "calculate_final_amount",
    "calculate_fitting_amount",
    "get_stage_amount",
    "validate_breakdown",
    # Events
    "EVENT_REGISTRY",
    "EscrowDepositReceived",
    "EscrowOpened",
    "EscrowStageReleased",
    "MilestoneApproved",
    "MilestoneAutoApproved",
    "MilestoneRejected",
    "MilestoneSubmitted",
    # Exceptions
    "ApprovalDeadlinePassedError",
    "AutoApprovalNotDueError",
    "ConflictError",
    "DomainError",
    "EscrowAccountNotFoundError",
    "EscrowCalculationError",
    "InvalidAmountError",
    "InvalidStateTransitionError",
    "MilestoneAlreadyReviewedError",
    "MilestoneNotFoundError",
    "NotFoundError",
    "RateLimitedError",
    "ValidationError",
    # State Machines
    "EscrowStage",
    "MilestoneApprovalAction",
    "MilestoneApprovalStatus",
    "MilestoneStage",
    "validate_escrow_stage_transition",
    "validate_milestone_transition",
    # Value Objects
    "CURRENCY",
    "ApprovalRecordId",
    "MilestoneId",
    "OrderId",
    "format_money",
    "parse_amount",
    "round_money",
]
