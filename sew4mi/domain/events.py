"""Domain events for milestone reviews and escrow releases.

Events are recorded on aggregates and collected by the application
services after persistence. They feed the structured log and are the
hook for notifications to customers and tailors.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from sew4mi.domain.base import DomainEvent, utc_now


# ============================================================================
# Milestone Events
# ============================================================================


@dataclass(frozen=True)
class MilestoneSubmitted(DomainEvent):
    """Event raised when a tailor submits a milestone for review."""

    event_type: ClassVar[str] = "milestone.submitted"

    milestone_id: str = ""
    order_id: str = ""
    milestone: str = ""
    auto_approval_deadline: datetime = field(default_factory=utc_now)

    def _payload(self) -> dict[str, Any]:
        return {
            "milestone_id": self.milestone_id,
            "order_id": self.order_id,
            "milestone": self.milestone,
            "auto_approval_deadline": self.auto_approval_deadline.isoformat(),
        }


@dataclass(frozen=True)
class MilestoneApproved(DomainEvent):
    """Event raised when a customer approves a milestone."""

    event_type: ClassVar[str] = "milestone.approved"

    milestone_id: str = ""
    order_id: str = ""
    approved_by: str = ""
    reviewed_at: datetime = field(default_factory=utc_now)

    def _payload(self) -> dict[str, Any]:
        return {
            "milestone_id": self.milestone_id,
            "order_id": self.order_id,
            "approved_by": self.approved_by,
            "reviewed_at": self.reviewed_at.isoformat(),
        }


@dataclass(frozen=True)
class MilestoneRejected(DomainEvent):
    """Event raised when a customer rejects a milestone."""

    event_type: ClassVar[str] = "milestone.rejected"

    milestone_id: str = ""
    order_id: str = ""
    rejected_by: str = ""
    reason: str | None = None

    def _payload(self) -> dict[str, Any]:
        return {
            "milestone_id": self.milestone_id,
            "order_id": self.order_id,
            "rejected_by": self.rejected_by,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class MilestoneAutoApproved(DomainEvent):
    """Event raised when a milestone is approved by deadline expiry."""

    event_type: ClassVar[str] = "milestone.auto_approved"

    milestone_id: str = ""
    order_id: str = ""
    deadline: datetime = field(default_factory=utc_now)

    def _payload(self) -> dict[str, Any]:
        return {
            "milestone_id": self.milestone_id,
            "order_id": self.order_id,
            "deadline": self.deadline.isoformat(),
        }


# ============================================================================
# Escrow Events
# ============================================================================


@dataclass(frozen=True)
class EscrowOpened(DomainEvent):
    """Event raised when escrow is opened for an order."""

    event_type: ClassVar[str] = "escrow.opened"

    order_id: str = ""
    total_amount: str = ""

    def _payload(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "total_amount": self.total_amount}


@dataclass(frozen=True)
class EscrowDepositReceived(DomainEvent):
    """Event raised when the deposit tranche is paid into escrow."""

    event_type: ClassVar[str] = "escrow.deposit_received"

    order_id: str = ""
    amount: str = ""

    def _payload(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "amount": self.amount}


@dataclass(frozen=True)
class EscrowStageReleased(DomainEvent):
    """Event raised when a tranche is released to the tailor."""

    event_type: ClassVar[str] = "escrow.stage_released"

    order_id: str = ""
    milestone_id: str = ""
    stage: str = ""
    new_stage: str = ""
    amount: str = ""

    def _payload(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "milestone_id": self.milestone_id,
            "stage": self.stage,
            "new_stage": self.new_stage,
            "amount": self.amount,
        }


EVENT_REGISTRY: dict[str, type[DomainEvent]] = {
    event.event_type: event
    for event in (
        MilestoneSubmitted,
        MilestoneApproved,
        MilestoneRejected,
        MilestoneAutoApproved,
        EscrowOpened,
        EscrowDepositReceived,
        EscrowStageReleased,
    )
}
