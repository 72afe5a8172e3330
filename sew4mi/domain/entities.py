"""Domain entities and aggregates.

Milestone is the aggregate a customer reviews; every terminal review
produces one immutable MilestoneApprovalRecord for the audit trail.
EscrowAccount tracks which tranches of an order have been paid into
and released from escrow.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sew4mi.domain.base import AggregateRoot, utc_now
from sew4mi.domain.escrow import EscrowBreakdown, calculate_breakdown, get_stage_amount
from sew4mi.domain.events import (
    EscrowDepositReceived,
    EscrowOpened,
    EscrowStageReleased,
    MilestoneApproved,
    MilestoneAutoApproved,
    MilestoneRejected,
    MilestoneSubmitted,
)
from sew4mi.domain.exceptions import (
    ApprovalDeadlinePassedError,
    AutoApprovalNotDueError,
    InvalidStateTransitionError,
    MilestoneAlreadyReviewedError,
    ValidationError,
)
from sew4mi.domain.state_machines import (
    EscrowStage,
    MilestoneApprovalAction,
    MilestoneApprovalStatus,
    MilestoneStage,
    validate_escrow_stage_transition,
    validate_milestone_transition,
)
from sew4mi.domain.value_objects import (
    ZERO,
    ApprovalRecordId,
    MilestoneId,
    OrderId,
    parse_amount,
    round_money,
)

SYSTEM_ACTOR = "system"
DEFAULT_AUTO_APPROVAL_HOURS = 48
AUTO_APPROVAL_COMMENT = "Automatically approved after deadline"


# ============================================================================
# Milestone Approval Record
# ============================================================================


@dataclass(frozen=True)
class MilestoneApprovalRecord:
    """Immutable audit entry for one terminal milestone review.

    Attributes:
        id: Record identifier.
        milestone_id: Reviewed milestone.
        order_id: Order the milestone belongs to.
        actor_id: Customer id, or "system" for auto-approval.
        action: APPROVED, REJECTED or AUTO_APPROVED.
        comment: Optional reviewer comment.
        reviewed_at: When the decision was made.
    """

    milestone_id: MilestoneId
    order_id: OrderId
    actor_id: str
    action: MilestoneApprovalAction
    reviewed_at: datetime
    comment: str | None = None
    id: ApprovalRecordId = field(default_factory=ApprovalRecordId.generate)


# ============================================================================
# Milestone Aggregate
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Milestone(AggregateRoot[MilestoneId]):
    """Customer-reviewable checkpoint of a garment order.

    A milestone starts PENDING and is resolved exactly once, either by
    the customer before ``auto_approval_deadline`` or by the
    auto-approval sweep at or after it.

    Attributes:
        id: Milestone identifier.
        order_id: Owning order.
        milestone: Tailoring checkpoint this milestone represents.
        escrow_stage: Tranche released when the milestone is approved.
        order_amount: Order total the tranche is computed from.
        approval_status: Current review status.
        auto_approval_deadline: Deadline after which approval is implied.
        customer_reviewed_at: Set when the review is resolved.
        rejection_reason: Set only when rejected.
        notes: Tailor notes for the customer.
        verified_by: Tailor who submitted the milestone.
    """

    id: MilestoneId
    order_id: OrderId
    milestone: MilestoneStage
    escrow_stage: EscrowStage
    order_amount: Decimal
    auto_approval_deadline: datetime
    approval_status: MilestoneApprovalStatus = MilestoneApprovalStatus.PENDING
    customer_reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    notes: str | None = None
    verified_by: str | None = None

    @classmethod
    def create(
        cls,
        order_id: OrderId,
        milestone: MilestoneStage,
        order_amount: object,
        escrow_stage: EscrowStage | None = None,
        auto_approval_hours: int = DEFAULT_AUTO_APPROVAL_HOURS,
        auto_approval_deadline: datetime | None = None,
        notes: str | None = None,
        verified_by: str | None = None,
        now: datetime | None = None,
        milestone_id: MilestoneId | None = None,
    ) -> "Milestone":
        """Submit a new milestone for customer review.

        Args:
            order_id: Owning order.
            milestone: Tailoring checkpoint.
            order_amount: Order total.
            escrow_stage: Tranche to release; defaults from the milestone stage.
            auto_approval_hours: Review window used when no deadline is given.
            auto_approval_deadline: Explicit deadline.
            notes: Tailor notes.
            verified_by: Submitting tailor.
            now: Creation time.
            milestone_id: Optional pre-generated ID.

        Returns:
            New PENDING Milestone.
        """
        now = now or utc_now()
        deadline = auto_approval_deadline or now + timedelta(hours=auto_approval_hours)
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        if deadline <= now:
            raise ValidationError(
                "Auto-approval deadline must be in the future",
                details={"auto_approval_deadline": deadline.isoformat()},
            )

        instance = cls(
            id=milestone_id or MilestoneId.generate(),
            order_id=order_id,
            milestone=milestone,
            escrow_stage=escrow_stage or milestone.default_escrow_stage(),
            order_amount=parse_amount(order_amount),
            auto_approval_deadline=deadline,
            notes=notes,
            verified_by=verified_by,
            created_at=now,
            updated_at=now,
        )
        instance._record_event(
            MilestoneSubmitted(
                aggregate_id=str(instance.id),
                aggregate_type="Milestone",
                milestone_id=str(instance.id),
                order_id=str(order_id),
                milestone=milestone.value,
                auto_approval_deadline=deadline,
            )
        )
        return instance

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def is_pending(self) -> bool:
        return self.approval_status == MilestoneApprovalStatus.PENDING

    def is_past_deadline(self, now: datetime) -> bool:
        """Check whether the auto-approval deadline has been reached."""
        return now >= self.auto_approval_deadline

    @property
    def release_amount(self) -> Decimal:
        """Escrow tranche released when this milestone is approved."""
        return get_stage_amount(self.order_amount, self.escrow_stage)

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    def approve(
        self, actor_id: str, now: datetime, comment: str | None = None
    ) -> MilestoneApprovalRecord:
        """Record a customer approval.

        Raises:
            MilestoneAlreadyReviewedError: If no longer pending.
            ApprovalDeadlinePassedError: If the deadline has been reached.
        """
        self._check_customer_review(now)
        record = self._resolve(MilestoneApprovalAction.APPROVED, actor_id, now, comment)
        self._record_event(
            MilestoneApproved(
                aggregate_id=str(self.id),
                aggregate_type="Milestone",
                milestone_id=str(self.id),
                order_id=str(self.order_id),
                approved_by=actor_id,
                reviewed_at=now,
            )
        )
        return record

    def reject(
        self, actor_id: str, now: datetime, reason: str | None = None
    ) -> MilestoneApprovalRecord:
        """Record a customer rejection.

        Raises:
            MilestoneAlreadyReviewedError: If no longer pending.
            ApprovalDeadlinePassedError: If the deadline has been reached.
        """
        self._check_customer_review(now)
        record = self._resolve(MilestoneApprovalAction.REJECTED, actor_id, now, reason)
        self._record_event(
            MilestoneRejected(
                aggregate_id=str(self.id),
                aggregate_type="Milestone",
                milestone_id=str(self.id),
                order_id=str(self.order_id),
                rejected_by=actor_id,
                reason=reason,
            )
        )
        return record

    def auto_approve(self, now: datetime) -> MilestoneApprovalRecord:
        """Approve on behalf of the customer once the deadline has passed.

        Raises:
            MilestoneAlreadyReviewedError: If no longer pending.
            AutoApprovalNotDueError: If the deadline has not been reached.
        """
        self._check_pending()
        if not self.is_past_deadline(now):
            raise AutoApprovalNotDueError(
                str(self.id), self.auto_approval_deadline.isoformat()
            )
        record = self._resolve(
            MilestoneApprovalAction.AUTO_APPROVED, SYSTEM_ACTOR, now, AUTO_APPROVAL_COMMENT
        )
        self._record_event(
            MilestoneAutoApproved(
                aggregate_id=str(self.id),
                aggregate_type="Milestone",
                milestone_id=str(self.id),
                order_id=str(self.order_id),
                deadline=self.auto_approval_deadline,
            )
        )
        return record

    def _check_pending(self) -> None:
        if not self.is_pending:
            raise MilestoneAlreadyReviewedError(str(self.id), self.approval_status.value)

    def _check_customer_review(self, now: datetime) -> None:
        self._check_pending()
        if self.is_past_deadline(now):
            raise ApprovalDeadlinePassedError(
                str(self.id), self.auto_approval_deadline.isoformat()
            )

    def _resolve(
        self,
        action: MilestoneApprovalAction,
        actor_id: str,
        now: datetime,
        comment: str | None,
    ) -> MilestoneApprovalRecord:
        target = action.resulting_status
        validate_milestone_transition(str(self.id), self.approval_status, target)

        self.approval_status = target
        self.customer_reviewed_at = now
        # Invariant: rejection_reason is set iff REJECTED
        self.rejection_reason = (comment or "") if target == MilestoneApprovalStatus.REJECTED else None
        self._touch(now)

        return MilestoneApprovalRecord(
            milestone_id=self.id,
            order_id=self.order_id,
            actor_id=actor_id,
            action=action,
            comment=comment or None,
            reviewed_at=now,
        )


# ============================================================================
# Escrow Account Aggregate
# ============================================================================


@dataclass(kw_only=True, eq=False)
class EscrowAccount(AggregateRoot[OrderId]):
    """Escrow ledger for one order, keyed by the order id.

    Attributes:
        id: Order the escrow belongs to.
        total_amount: Rounded order total.
        current_stage: Stage the escrow is waiting on.
        deposit_paid: Deposit received into escrow.
        fitting_paid: Fitting tranche released to the tailor.
        final_paid: Final tranche released to the tailor.
        released_milestone_ids: Milestones whose tranche has been released.
    """

    id: OrderId
    total_amount: Decimal
    current_stage: EscrowStage = EscrowStage.DEPOSIT
    deposit_paid: Decimal = ZERO
    fitting_paid: Decimal = ZERO
    final_paid: Decimal = ZERO
    released_milestone_ids: set[str] = field(default_factory=set)

    @classmethod
    def open(cls, order_id: OrderId, total_amount: object) -> "EscrowAccount":
        """Open escrow for an order total."""
        account = cls(id=order_id, total_amount=calculate_breakdown(total_amount).total_amount)
        account._record_event(
            EscrowOpened(
                aggregate_id=str(order_id),
                aggregate_type="EscrowAccount",
                order_id=str(order_id),
                total_amount=str(account.total_amount),
            )
        )
        return account

    @property
    def breakdown(self) -> EscrowBreakdown:
        return calculate_breakdown(self.total_amount)

    @property
    def paid_total(self) -> Decimal:
        return self.deposit_paid + self.fitting_paid + self.final_paid

    @property
    def escrow_balance(self) -> Decimal:
        """Amount of the order total not yet settled."""
        return round_money(self.total_amount - self.paid_total)

    def has_released(self, milestone_id: str) -> bool:
        return milestone_id in self.released_milestone_ids

    def record_deposit(self, amount: object) -> None:
        """Record the customer's deposit and move on to FITTING.

        Raises:
            InvalidStateTransitionError: If the deposit was already recorded.
            ValidationError: If amount differs from the deposit tranche.
        """
        validate_escrow_stage_transition(str(self.id), self.current_stage, EscrowStage.FITTING)
        paid = parse_amount(amount)
        expected = self.breakdown.deposit_amount
        if paid != expected:
            raise ValidationError(
                f"Deposit must be {expected}, got {paid}",
                details={"expected": str(expected), "received": str(paid)},
            )

        self.deposit_paid = paid
        self.current_stage = EscrowStage.FITTING
        self._touch()
        self._record_event(
            EscrowDepositReceived(
                aggregate_id=str(self.id),
                aggregate_type="EscrowAccount",
                order_id=str(self.id),
                amount=str(paid),
            )
        )

    def release_stage(self, stage: EscrowStage, milestone_id: str) -> Decimal:
        """Release the tranche held at ``stage`` and advance the escrow.

        Args:
            stage: FITTING or FINAL; must be the current stage.
            milestone_id: Approved milestone triggering the release.

        Returns:
            Released amount.

        Raises:
            InvalidStateTransitionError: If stage is not the current payable stage.
        """
        if stage not in {EscrowStage.FITTING, EscrowStage.FINAL} or stage != self.current_stage:
            raise InvalidStateTransitionError(
                entity_type="EscrowAccount",
                entity_id=str(self.id),
                current_state=self.current_stage.value,
                target_state=stage.value,
                allowed_transitions=[s.value for s in self.current_stage.allowed_transitions()],
            )

        next_stage = stage.next_stage()
        validate_escrow_stage_transition(str(self.id), self.current_stage, next_stage)

        amount = self.breakdown.amount_for(stage)
        if stage == EscrowStage.FITTING:
            self.fitting_paid = amount
        else:
            self.final_paid = amount

        self.current_stage = next_stage
        self.released_milestone_ids.add(milestone_id)
        self._touch()
        self._record_event(
            EscrowStageReleased(
                aggregate_id=str(self.id),
                aggregate_type="EscrowAccount",
                order_id=str(self.id),
                milestone_id=milestone_id,
                stage=stage.value,
                new_stage=next_stage.value,
                amount=str(amount),
            )
        )
        return amount

    def validate_state(self) -> list[str]:
        """Check ledger consistency.

        Returns:
            Human-readable problems; empty when consistent.
        """
        errors: list[str] = []
        breakdown = self.breakdown
        calculated = breakdown.deposit_amount + breakdown.fitting_amount + breakdown.final_amount
        if abs(calculated - self.total_amount) > Decimal("0.01"):
            errors.append(f"Total amount mismatch: {calculated} vs {self.total_amount}")

        expected_paid = {
            EscrowStage.DEPOSIT: ZERO,
            EscrowStage.FITTING: breakdown.deposit_amount,
            EscrowStage.FINAL: breakdown.deposit_amount + breakdown.fitting_amount,
            EscrowStage.RELEASED: breakdown.total_amount,
        }[self.current_stage]
        if self.paid_total != expected_paid:
            errors.append(
                f"Escrow balance mismatch at {self.current_stage.value}: "
                f"paid {self.paid_total}, expected {expected_paid}"
            )

        if self.paid_total > self.total_amount:
            errors.append(f"Paid {self.paid_total} exceeds total {self.total_amount}")

        return errors
