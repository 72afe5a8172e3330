"""Domain exceptions.

All domain-level errors that represent business rule violations.
These exceptions are raised by the escrow calculator, entities and
application services when invariants are violated or invalid
operations are attempted. Each error carries a stable ``error_code``
that the API layer exposes to clients.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DomainError):
    """Raised when operation input fails validation."""

    error_code = "VALIDATION_ERROR"


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Milestone", "EscrowAccount").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Escrow Errors
# ============================================================================


class EscrowError(DomainError):
    """Base class for escrow-related errors."""

    pass


class InvalidAmountError(EscrowError):
    """Raised when a monetary input is not a positive finite number."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str) -> None:
        """Initialize invalid amount error.

        Args:
            amount: The rejected value.
            reason: Explanation of why the amount is invalid.
        """
        super().__init__(
            f"Invalid amount {amount!r}: {reason}",
            details={"amount": str(amount), "reason": reason},
        )


class EscrowCalculationError(EscrowError):
    """Raised when a computed breakdown does not add up to its total.

    The breakdown algorithm makes this unreachable; it guards against
    future changes to the split.
    """

    error_code = "ESCROW_CALCULATION_ERROR"


# ============================================================================
# Not Found Errors
# ============================================================================


class NotFoundError(DomainError):
    """Base class for lookups of unknown entities."""

    error_code = "NOT_FOUND"


class MilestoneNotFoundError(NotFoundError):
    """Raised when a milestone does not exist."""

    error_code = "MILESTONE_NOT_FOUND"

    def __init__(self, milestone_id: str) -> None:
        """Initialize milestone not found error.

        Args:
            milestone_id: ID of the missing milestone.
        """
        super().__init__(
            f"Milestone not found: {milestone_id}",
            details={"milestone_id": milestone_id},
        )


class EscrowAccountNotFoundError(NotFoundError):
    """Raised when an order has no escrow account."""

    error_code = "ESCROW_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        """Initialize escrow account not found error.

        Args:
            order_id: ID of the order.
        """
        super().__init__(
            f"No escrow account for order {order_id}",
            details={"order_id": order_id},
        )


# ============================================================================
# Conflict Errors
# ============================================================================


class ConflictError(DomainError):
    """Base class for operations that conflict with current state."""

    error_code = "CONFLICT"


class MilestoneAlreadyReviewedError(ConflictError):
    """Raised when a milestone has already left the pending state."""

    error_code = "MILESTONE_ALREADY_REVIEWED"

    def __init__(self, milestone_id: str, current_status: str) -> None:
        """Initialize already reviewed error.

        Args:
            milestone_id: ID of the milestone.
            current_status: Current approval status.
        """
        super().__init__(
            f"Milestone {milestone_id} already reviewed with status '{current_status}'",
            details={"milestone_id": milestone_id, "current_status": current_status},
        )


class ApprovalDeadlinePassedError(ConflictError):
    """Raised when a customer decision arrives after the auto-approval deadline."""

    error_code = "APPROVAL_DEADLINE_PASSED"

    def __init__(self, milestone_id: str, deadline: str) -> None:
        """Initialize deadline passed error.

        Args:
            milestone_id: ID of the milestone.
            deadline: ISO timestamp of the auto-approval deadline.
        """
        super().__init__(
            f"Auto-approval deadline passed for milestone {milestone_id} at {deadline}",
            details={"milestone_id": milestone_id, "auto_approval_deadline": deadline},
        )


class AutoApprovalNotDueError(ConflictError):
    """Raised when auto-approval is attempted before the deadline."""

    error_code = "AUTO_APPROVAL_NOT_DUE"

    def __init__(self, milestone_id: str, deadline: str) -> None:
        """Initialize auto-approval not due error.

        Args:
            milestone_id: ID of the milestone.
            deadline: ISO timestamp of the auto-approval deadline.
        """
        super().__init__(
            f"Milestone {milestone_id} is not due for auto-approval until {deadline}",
            details={"milestone_id": milestone_id, "auto_approval_deadline": deadline},
        )


# ============================================================================
# Rate Limiting
# ============================================================================


class RateLimitedError(DomainError):
    """Raised when an actor exceeds the allowed number of attempts."""

    error_code = "RATE_LIMITED"

    def __init__(self, actor_id: str) -> None:
        """Initialize rate limited error.

        Args:
            actor_id: Actor that exceeded the limit.
        """
        super().__init__(
            "Too many requests",
            details={"actor_id": actor_id},
        )
