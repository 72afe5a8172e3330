"""Milestone approval application service.

Orchestrates the customer review of tailor milestones:
- Submitting milestones for review
- Customer approve / reject decisions (rate limited per customer)
- Auto-approval once the review deadline has passed
- Best-effort release of the escrow tranche after approval

A review is committed before any payment is attempted and is never
rolled back because the release failed; ``payment_triggered`` tells
the caller whether the tranche actually moved.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

import structlog

from sew4mi.application.escrow_service import get_escrow_service
from sew4mi.application.ports import (
    Clock,
    MilestoneRepository,
    PaymentReleaseGateway,
    RateLimiter,
)
from sew4mi.domain.entities import (
    DEFAULT_AUTO_APPROVAL_HOURS,
    Milestone,
    MilestoneApprovalRecord,
)
from sew4mi.domain.exceptions import (
    DomainError,
    MilestoneAlreadyReviewedError,
    MilestoneNotFoundError,
    RateLimitedError,
    ValidationError,
)
from sew4mi.domain.state_machines import (
    EscrowStage,
    MilestoneApprovalAction,
    MilestoneApprovalStatus,
    MilestoneStage,
)
from sew4mi.domain.value_objects import ZERO, OrderId
from sew4mi.infrastructure.clock import SystemClock
from sew4mi.infrastructure.config import settings
from sew4mi.infrastructure.payment_gateway import HttpPaymentReleaseGateway
from sew4mi.infrastructure.rate_limiter import get_rate_limiter
from sew4mi.infrastructure.repositories import get_milestone_repository

logger = structlog.get_logger()

MAX_COMMENT_LENGTH = 500


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class MilestoneDecisionResult:
    """Outcome of a committed milestone review."""

    milestone: Milestone
    record: MilestoneApprovalRecord
    payment_triggered: bool = False
    amount_released: Decimal = ZERO

    @property
    def approval_status(self) -> MilestoneApprovalStatus:
        return self.milestone.approval_status

    @property
    def reviewed_at(self) -> datetime:
        return self.record.reviewed_at


@dataclass
class AutoApprovalSweepResult:
    """Summary of one auto-approval sweep."""

    processed: int = 0
    auto_approved: int = 0
    failed: int = 0
    approved_milestone_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def message(self) -> str:
        if self.processed == 0:
            return "No milestones due for auto-approval"
        return (
            f"Auto-approved {self.auto_approved} of {self.processed} milestones"
            f" ({self.failed} failed)"
        )


# ============================================================================
# Milestone Approval Service
# ============================================================================


class MilestoneApprovalService:
    """Application service for milestone reviews.

    All collaborators are injected so the workflow can run against
    in-memory fakes or the database, Redis and a remote escrow service.
    """

    def __init__(
        self,
        repository: MilestoneRepository,
        payment_gateway: PaymentReleaseGateway,
        rate_limiter: RateLimiter,
        clock: Clock | None = None,
        release_timeout_seconds: float = 5.0,
        auto_approval_hours: int = DEFAULT_AUTO_APPROVAL_HOURS,
        sweep_batch_size: int = 100,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            repository: Milestone persistence.
            payment_gateway: Escrow tranche release.
            rate_limiter: Per-customer decision limiter.
            clock: Time source.
            release_timeout_seconds: Upper bound on one payment release.
            auto_approval_hours: Review window for new milestones.
            sweep_batch_size: Max milestones handled per sweep.
            request_id: Request ID for correlation.
        """
        self.repository = repository
        self.payment_gateway = payment_gateway
        self.rate_limiter = rate_limiter
        self.clock = clock or SystemClock()
        self.release_timeout_seconds = release_timeout_seconds
        self.auto_approval_hours = auto_approval_hours
        self.sweep_batch_size = sweep_batch_size
        self.request_id = request_id

    # -------------------------------------------------------------------------
    # Submission & Queries
    # -------------------------------------------------------------------------

    async def create_milestone(
        self,
        order_id: str,
        milestone: MilestoneStage | str,
        order_amount: object,
        escrow_stage: EscrowStage | str | None = None,
        notes: str | None = None,
        verified_by: str | None = None,
        auto_approval_deadline: datetime | None = None,
    ) -> Milestone:
        """Submit a milestone for customer review.

        Raises:
            ValidationError: On an invalid order id, stage or deadline.
            InvalidAmountError: If the order amount is not positive.
        """
        try:
            oid = OrderId.from_string(order_id)
            stage = MilestoneStage(milestone)
            tranche = EscrowStage(escrow_stage) if escrow_stage is not None else None
        except ValueError as e:
            raise ValidationError(str(e), details={"order_id": order_id}) from None

        entity = Milestone.create(
            order_id=oid,
            milestone=stage,
            order_amount=order_amount,
            escrow_stage=tranche,
            auto_approval_hours=self.auto_approval_hours,
            auto_approval_deadline=auto_approval_deadline,
            notes=notes,
            verified_by=verified_by,
            now=self.clock.now(),
        )
        events = entity.collect_events()
        await self.repository.add(entity)

        logger.info(
            "Milestone submitted for review",
            milestone_id=str(entity.id),
            order_id=order_id,
            milestone=stage.value,
            escrow_stage=entity.escrow_stage.value,
            auto_approval_deadline=entity.auto_approval_deadline.isoformat(),
            events=[e.to_dict() for e in events],
            request_id=self.request_id,
        )
        return entity

    async def get_milestone(self, milestone_id: str) -> Milestone:
        """Load a milestone.

        Raises:
            MilestoneNotFoundError: If the milestone does not exist.
        """
        milestone = await self.repository.get(milestone_id)
        if milestone is None:
            raise MilestoneNotFoundError(milestone_id)
        return milestone

    async def get_approval_history(self, milestone_id: str) -> list[MilestoneApprovalRecord]:
        """Audit records of a milestone, oldest first."""
        await self.get_milestone(milestone_id)
        return await self.repository.list_approval_records(milestone_id)

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    async def submit_decision(
        self,
        milestone_id: str,
        actor_id: str,
        action: MilestoneApprovalAction | str,
        comment: str | None = None,
    ) -> MilestoneDecisionResult:
        """Apply a customer's approve or reject decision.

        Args:
            milestone_id: Milestone under review.
            actor_id: Reviewing customer.
            action: APPROVED or REJECTED.
            comment: Optional comment, stored as the rejection reason on reject.

        Returns:
            MilestoneDecisionResult; ``payment_triggered`` is False when
            the tranche could not be released.

        Raises:
            RateLimitedError: If the customer exceeded the decision limit.
            ValidationError: On an unknown action or an oversized comment.
            MilestoneNotFoundError: If the milestone does not exist.
            MilestoneAlreadyReviewedError: If already approved or rejected.
            ApprovalDeadlinePassedError: If the review deadline was reached.
        """
        if not await self.rate_limiter.check_and_increment(actor_id):
            raise RateLimitedError(actor_id)

        try:
            decision = MilestoneApprovalAction(action)
        except ValueError:
            decision = None
        if decision is None or not decision.is_customer_action():
            raise ValidationError(
                f"Invalid action: {action}",
                details={"allowed": ["APPROVED", "REJECTED"]},
            )
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment exceeds {MAX_COMMENT_LENGTH} characters",
                details={"max_length": MAX_COMMENT_LENGTH},
            )

        milestone = await self.get_milestone(milestone_id)
        now = self.clock.now()
        if decision == MilestoneApprovalAction.APPROVED:
            record = milestone.approve(actor_id, now, comment)
        else:
            record = milestone.reject(actor_id, now, comment)

        await self._commit_review(milestone, record)

        result = MilestoneDecisionResult(milestone=milestone, record=record)
        if decision == MilestoneApprovalAction.APPROVED:
            result.payment_triggered, result.amount_released = await self._release_payment(
                milestone
            )
        return result

    async def auto_approve(self, milestone_id: str) -> MilestoneDecisionResult:
        """Approve a milestone whose review deadline has passed.

        Raises:
            MilestoneNotFoundError: If the milestone does not exist.
            MilestoneAlreadyReviewedError: If already resolved.
            AutoApprovalNotDueError: If the deadline has not been reached.
        """
        milestone = await self.get_milestone(milestone_id)
        record = milestone.auto_approve(self.clock.now())
        await self._commit_review(milestone, record)

        result = MilestoneDecisionResult(milestone=milestone, record=record)
        result.payment_triggered, result.amount_released = await self._release_payment(
            milestone
        )
        return result

    async def run_auto_approval_sweep(self, limit: int | None = None) -> AutoApprovalSweepResult:
        """Auto-approve every overdue PENDING milestone.

        Individual failures are counted and reported; they never stop
        the sweep.

        Args:
            limit: Max milestones to handle; defaults to the batch size.

        Returns:
            AutoApprovalSweepResult summary.
        """
        start_time = time.perf_counter()
        result = AutoApprovalSweepResult()

        overdue = await self.repository.list_overdue(
            self.clock.now(), limit or self.sweep_batch_size
        )
        logger.info(
            "Auto-approval sweep started",
            due_count=len(overdue),
            request_id=self.request_id,
        )

        for milestone in overdue:
            milestone_id = str(milestone.id)
            result.processed += 1
            try:
                await self.auto_approve(milestone_id)
            except DomainError as e:
                result.failed += 1
                result.errors.append(f"Milestone {milestone_id}: {e.message}")
                logger.warning(
                    "Auto-approval skipped",
                    milestone_id=milestone_id,
                    error_code=e.error_code,
                    error=e.message,
                    request_id=self.request_id,
                )
                continue
            except Exception as e:
                result.failed += 1
                result.errors.append(f"Milestone {milestone_id}: {e}")
                logger.exception(
                    "Auto-approval failed",
                    milestone_id=milestone_id,
                    request_id=self.request_id,
                )
                continue

            result.auto_approved += 1
            result.approved_milestone_ids.append(milestone_id)

        result.execution_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
        logger.info(
            "Auto-approval sweep completed",
            processed=result.processed,
            auto_approved=result.auto_approved,
            failed=result.failed,
            execution_time_ms=result.execution_time_ms,
            request_id=self.request_id,
        )
        return result

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _commit_review(
        self, milestone: Milestone, record: MilestoneApprovalRecord
    ) -> None:
        events = milestone.collect_events()
        if not await self.repository.save_review(milestone, record):
            current = await self.repository.get(str(milestone.id))
            status = current.approval_status.value if current else "UNKNOWN"
            raise MilestoneAlreadyReviewedError(str(milestone.id), status)

        logger.info(
            "Milestone reviewed",
            milestone_id=str(milestone.id),
            order_id=str(milestone.order_id),
            action=record.action.value,
            actor_id=record.actor_id,
            approval_status=milestone.approval_status.value,
            events=[e.to_dict() for e in events],
            request_id=self.request_id,
        )

    async def _release_payment(self, milestone: Milestone) -> tuple[bool, Decimal]:
        """Release the milestone's tranche; never raises."""
        amount = milestone.release_amount
        milestone_id = str(milestone.id)
        order_id = str(milestone.order_id)

        if amount <= 0:
            logger.info(
                "No escrow tranche held for milestone",
                milestone_id=milestone_id,
                escrow_stage=milestone.escrow_stage.value,
                request_id=self.request_id,
            )
            return False, ZERO

        try:
            released = await asyncio.wait_for(
                self.payment_gateway.release_stage_payment(order_id, milestone_id, amount),
                timeout=self.release_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Payment release timed out",
                milestone_id=milestone_id,
                order_id=order_id,
                timeout_seconds=self.release_timeout_seconds,
                request_id=self.request_id,
            )
            return False, ZERO
        except Exception:
            logger.exception(
                "Payment release raised",
                milestone_id=milestone_id,
                order_id=order_id,
                request_id=self.request_id,
            )
            return False, ZERO

        if not released:
            logger.warning(
                "Payment release not confirmed",
                milestone_id=milestone_id,
                order_id=order_id,
                amount=str(amount),
                request_id=self.request_id,
            )
            return False, ZERO

        return True, amount


# ============================================================================
# Service Factory
# ============================================================================


def get_payment_gateway(request_id: str | None = None) -> PaymentReleaseGateway:
    """Remote escrow service when ``payment_release_url`` is set, else the local ledger."""
    if settings.payment_release_url:
        return HttpPaymentReleaseGateway(
            base_url=settings.payment_release_url,
            service_token=settings.cron_secret,
            timeout=settings.payment_release_timeout_seconds,
            request_id=request_id,
        )
    return get_escrow_service(request_id=request_id)


def get_milestone_service(request_id: str | None = None) -> MilestoneApprovalService:
    """Get milestone approval service instance.

    Args:
        request_id: Request ID for correlation.

    Returns:
        MilestoneApprovalService wired from settings.
    """
    return MilestoneApprovalService(
        repository=get_milestone_repository(),
        payment_gateway=get_payment_gateway(request_id),
        rate_limiter=get_rate_limiter(),
        release_timeout_seconds=settings.payment_release_timeout_seconds,
        auto_approval_hours=settings.auto_approval_hours,
        sweep_batch_size=settings.auto_approval_batch_size,
        request_id=request_id,
    )
