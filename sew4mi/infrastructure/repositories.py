"""Milestone repositories.

Provides:
- InMemoryMilestoneRepository: process-local storage (default, tests)
- SqlAlchemyMilestoneRepository: order_milestones / milestone_approvals tables

Both implement the conditional "resolve only if still PENDING" write
the approval workflow relies on to keep concurrent reviews from both
succeeding.
"""

import copy
from datetime import datetime, timezone
from decimal import Decimal
from threading import Lock

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sew4mi.domain.entities import Milestone, MilestoneApprovalRecord
from sew4mi.domain.state_machines import (
    EscrowStage,
    MilestoneApprovalAction,
    MilestoneApprovalStatus,
    MilestoneStage,
)
from sew4mi.domain.value_objects import (
    ApprovalRecordId,
    MilestoneId,
    OrderId,
    round_money,
)
from sew4mi.infrastructure.config import settings
from sew4mi.infrastructure.models import MilestoneApprovalModel, OrderMilestoneModel

logger = structlog.get_logger()


# ============================================================================
# In-Memory Repository
# ============================================================================


class InMemoryMilestoneRepository:
    """In-memory milestone storage.

    Stored milestones are copies, so callers mutating an entity they
    loaded never change what another caller sees until it is saved.
    """

    def __init__(self) -> None:
        self._milestones: dict[str, Milestone] = {}
        self._records: dict[str, list[MilestoneApprovalRecord]] = {}
        self._lock = Lock()

    async def get(self, milestone_id: str) -> Milestone | None:
        with self._lock:
            stored = self._milestones.get(milestone_id)
            return copy.deepcopy(stored) if stored else None

    async def add(self, milestone: Milestone) -> None:
        with self._lock:
            self._milestones[str(milestone.id)] = copy.deepcopy(milestone)
            self._records.setdefault(str(milestone.id), [])

    async def save_review(
        self, milestone: Milestone, record: MilestoneApprovalRecord
    ) -> bool:
        key = str(milestone.id)
        with self._lock:
            stored = self._milestones.get(key)
            if stored is None or stored.approval_status != MilestoneApprovalStatus.PENDING:
                return False
            self._milestones[key] = copy.deepcopy(milestone)
            self._records.setdefault(key, []).append(record)
            return True

    async def list_approval_records(
        self, milestone_id: str
    ) -> list[MilestoneApprovalRecord]:
        with self._lock:
            return sorted(self._records.get(milestone_id, []), key=lambda r: r.reviewed_at)

    async def list_overdue(self, now: datetime, limit: int) -> list[Milestone]:
        with self._lock:
            overdue = [
                m
                for m in self._milestones.values()
                if m.approval_status == MilestoneApprovalStatus.PENDING
                and m.auto_approval_deadline <= now
            ]
            overdue.sort(key=lambda m: m.auto_approval_deadline)
            return [copy.deepcopy(m) for m in overdue[:limit]]


# ============================================================================
# SQLAlchemy Repository
# ============================================================================


def _aware(value: datetime | None) -> datetime | None:
    """Attach UTC to datetimes read back from backends that drop tzinfo."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_entity(row: OrderMilestoneModel) -> Milestone:
    return Milestone(
        id=MilestoneId.from_string(row.id),
        order_id=OrderId.from_string(row.order_id),
        milestone=MilestoneStage(row.milestone),
        escrow_stage=EscrowStage(row.escrow_stage),
        order_amount=round_money(Decimal(str(row.order_amount))),
        auto_approval_deadline=_aware(row.auto_approval_deadline),
        approval_status=MilestoneApprovalStatus(row.approval_status),
        customer_reviewed_at=_aware(row.customer_reviewed_at),
        rejection_reason=row.rejection_reason,
        notes=row.notes,
        verified_by=row.verified_by,
        version=row.version,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _to_record(row: MilestoneApprovalModel) -> MilestoneApprovalRecord:
    return MilestoneApprovalRecord(
        id=ApprovalRecordId.from_string(row.id),
        milestone_id=MilestoneId.from_string(row.milestone_id),
        order_id=OrderId.from_string(row.order_id),
        actor_id=row.actor_id,
        action=MilestoneApprovalAction(row.action),
        comment=row.comment,
        reviewed_at=_aware(row.reviewed_at),
    )


class SqlAlchemyMilestoneRepository:
    """Milestone storage on the async SQLAlchemy engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, milestone_id: str) -> Milestone | None:
        async with self._session_factory() as session:
            row = await session.get(OrderMilestoneModel, milestone_id)
            return _to_entity(row) if row else None

    async def add(self, milestone: Milestone) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(
                OrderMilestoneModel(
                    id=str(milestone.id),
                    order_id=str(milestone.order_id),
                    milestone=milestone.milestone.value,
                    escrow_stage=milestone.escrow_stage.value,
                    order_amount=milestone.order_amount,
                    approval_status=milestone.approval_status.value,
                    auto_approval_deadline=milestone.auto_approval_deadline,
                    customer_reviewed_at=milestone.customer_reviewed_at,
                    rejection_reason=milestone.rejection_reason,
                    notes=milestone.notes,
                    verified_by=milestone.verified_by,
                    version=milestone.version,
                    created_at=milestone.created_at,
                    updated_at=milestone.updated_at,
                )
            )

    async def save_review(
        self, milestone: Milestone, record: MilestoneApprovalRecord
    ) -> bool:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(OrderMilestoneModel)
                .where(
                    OrderMilestoneModel.id == str(milestone.id),
                    OrderMilestoneModel.approval_status
                    == MilestoneApprovalStatus.PENDING.value,
                )
                .values(
                    approval_status=milestone.approval_status.value,
                    customer_reviewed_at=milestone.customer_reviewed_at,
                    rejection_reason=milestone.rejection_reason,
                    version=milestone.version,
                    updated_at=milestone.updated_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.info(
                    "Milestone review lost race",
                    milestone_id=str(milestone.id),
                )
                return False

            session.add(
                MilestoneApprovalModel(
                    id=str(record.id),
                    milestone_id=str(record.milestone_id),
                    order_id=str(record.order_id),
                    actor_id=record.actor_id,
                    action=record.action.value,
                    comment=record.comment,
                    reviewed_at=record.reviewed_at,
                )
            )
        return True

    async def list_approval_records(
        self, milestone_id: str
    ) -> list[MilestoneApprovalRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MilestoneApprovalModel)
                .where(MilestoneApprovalModel.milestone_id == milestone_id)
                .order_by(MilestoneApprovalModel.reviewed_at)
            )
            return [_to_record(row) for row in result.scalars().all()]

    async def list_overdue(self, now: datetime, limit: int) -> list[Milestone]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderMilestoneModel)
                .where(
                    OrderMilestoneModel.approval_status
                    == MilestoneApprovalStatus.PENDING.value,
                    OrderMilestoneModel.auto_approval_deadline <= now,
                )
                .order_by(OrderMilestoneModel.auto_approval_deadline)
                .limit(limit)
            )
            return [_to_entity(row) for row in result.scalars().all()]


# ============================================================================
# Repository Factory
# ============================================================================


_milestone_repo: InMemoryMilestoneRepository | SqlAlchemyMilestoneRepository | None = None


def get_milestone_repository() -> InMemoryMilestoneRepository | SqlAlchemyMilestoneRepository:
    """Get milestone repository singleton for the configured backend."""
    global _milestone_repo
    if _milestone_repo is None:
        if settings.persistence_backend == "database":
            from sew4mi.infrastructure.database import async_session_factory

            _milestone_repo = SqlAlchemyMilestoneRepository(async_session_factory)
        else:
            _milestone_repo = InMemoryMilestoneRepository()
    return _milestone_repo


def reset_milestone_repository() -> None:
    """Reset milestone repository (for testing)."""
    global _milestone_repo
    _milestone_repo = InMemoryMilestoneRepository()
