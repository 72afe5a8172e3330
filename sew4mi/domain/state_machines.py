"""State machines for domain entities.

Deterministic state machines for escrow stages and milestone
approvals. Each enum knows its own legal transitions; the
``validate_*`` helpers raise when a transition is not allowed.
"""

from enum import Enum

from sew4mi.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Escrow Stage Machine
# ============================================================================


class EscrowStage(str, Enum):
    """Escrow payment stages for an order.

    State diagram:
        DEPOSIT ──► FITTING ──► FINAL ──► RELEASED

    DEPOSIT waits for the customer's deposit; FITTING and FINAL hold
    their tranche until the matching milestone is approved. RELEASED
    is terminal: nothing further is owed.
    """

    DEPOSIT = "DEPOSIT"
    FITTING = "FITTING"
    FINAL = "FINAL"
    RELEASED = "RELEASED"

    def can_transition_to(self, target: "EscrowStage") -> bool:
        """Check if transition to target stage is valid."""
        return target in _ESCROW_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["EscrowStage"]:
        """Get list of valid target stages."""
        return list(_ESCROW_TRANSITIONS.get(self, set()))

    def next_stage(self) -> "EscrowStage | None":
        """Get the stage that follows this one.

        Returns:
            Next stage, or None for RELEASED.
        """
        allowed = self.allowed_transitions()
        return allowed[0] if allowed else None

    def is_terminal(self) -> bool:
        """Check if this is the terminal stage."""
        return len(_ESCROW_TRANSITIONS.get(self, set())) == 0

    def holds_tranche(self) -> bool:
        """Check if this stage corresponds to a payable tranche."""
        return self in {EscrowStage.DEPOSIT, EscrowStage.FITTING, EscrowStage.FINAL}


# Strictly linear: no stage is skipped or revisited
_ESCROW_TRANSITIONS: dict[EscrowStage, set[EscrowStage]] = {
    EscrowStage.DEPOSIT: {EscrowStage.FITTING},
    EscrowStage.FITTING: {EscrowStage.FINAL},
    EscrowStage.FINAL: {EscrowStage.RELEASED},
    EscrowStage.RELEASED: set(),  # Terminal state
}


# ============================================================================
# Milestone Approval State Machine
# ============================================================================


class MilestoneApprovalStatus(str, Enum):
    """Customer review status of an order milestone.

    State diagram:
        PENDING
          │           │
          │ approve / │ reject
          │ deadline  │
          ▼           ▼
        APPROVED    REJECTED
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    def can_transition_to(self, target: "MilestoneApprovalStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _MILESTONE_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["MilestoneApprovalStatus"]:
        """Get list of valid target states."""
        return list(_MILESTONE_TRANSITIONS.get(self, set()))

    def is_terminal(self) -> bool:
        """Check if the review has been resolved."""
        return self != MilestoneApprovalStatus.PENDING


_MILESTONE_TRANSITIONS: dict[MilestoneApprovalStatus, set[MilestoneApprovalStatus]] = {
    MilestoneApprovalStatus.PENDING: {
        MilestoneApprovalStatus.APPROVED,
        MilestoneApprovalStatus.REJECTED,
    },
    MilestoneApprovalStatus.APPROVED: set(),  # Terminal state
    MilestoneApprovalStatus.REJECTED: set(),  # Terminal state
}


class MilestoneApprovalAction(str, Enum):
    """Actions recorded in the milestone approval audit trail."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    AUTO_APPROVED = "AUTO_APPROVED"

    @property
    def resulting_status(self) -> MilestoneApprovalStatus:
        """Approval status this action moves a milestone to."""
        if self == MilestoneApprovalAction.REJECTED:
            return MilestoneApprovalStatus.REJECTED
        return MilestoneApprovalStatus.APPROVED

    def is_customer_action(self) -> bool:
        """Check if a customer may submit this action directly."""
        return self != MilestoneApprovalAction.AUTO_APPROVED


# ============================================================================
# Milestone Stages
# ============================================================================


class MilestoneStage(str, Enum):
    """Checkpoints in the tailoring process a tailor can submit for review."""

    FABRIC_SELECTED = "FABRIC_SELECTED"
    CUTTING_STARTED = "CUTTING_STARTED"
    INITIAL_ASSEMBLY = "INITIAL_ASSEMBLY"
    FITTING_READY = "FITTING_READY"
    ADJUSTMENTS_COMPLETE = "ADJUSTMENTS_COMPLETE"
    FINAL_PRESSING = "FINAL_PRESSING"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"

    def default_escrow_stage(self) -> EscrowStage:
        """Escrow tranche released when this milestone is approved.

        Milestones without a tranche map to RELEASED, which releases nothing.
        """
        return _ESCROW_STAGE_BY_MILESTONE.get(self, EscrowStage.RELEASED)


_ESCROW_STAGE_BY_MILESTONE: dict[MilestoneStage, EscrowStage] = {
    MilestoneStage.FITTING_READY: EscrowStage.FITTING,
    MilestoneStage.READY_FOR_DELIVERY: EscrowStage.FINAL,
}


# ============================================================================
# State Machine Helpers
# ============================================================================


def validate_escrow_stage_transition(
    order_id: str,
    current_stage: EscrowStage,
    target_stage: EscrowStage,
) -> None:
    """Validate and raise if an escrow stage transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_stage: Current escrow stage.
        target_stage: Target escrow stage.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_stage.can_transition_to(target_stage):
        raise InvalidStateTransitionError(
            entity_type="EscrowAccount",
            entity_id=order_id,
            current_state=current_stage.value,
            target_state=target_stage.value,
            allowed_transitions=[s.value for s in current_stage.allowed_transitions()],
        )


def validate_milestone_transition(
    milestone_id: str,
    current_status: MilestoneApprovalStatus,
    target_status: MilestoneApprovalStatus,
) -> None:
    """Validate and raise if a milestone approval transition is invalid.

    Args:
        milestone_id: Milestone identifier for error message.
        current_status: Current approval status.
        target_status: Target approval status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Milestone",
            entity_id=milestone_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
