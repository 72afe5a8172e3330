"""SQLAlchemy models for database tables.

Provides ORM models for order_milestones and the append-only
milestone_approvals audit table.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from sew4mi.infrastructure.database import Base


class OrderMilestoneModel(Base):
    """Milestone submitted by a tailor for customer review."""

    __tablename__ = "order_milestones"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), nullable=False, index=True)
    milestone = Column(String(40), nullable=False)
    escrow_stage = Column(String(20), nullable=False)
    order_amount = Column(Numeric(12, 2), nullable=False)
    approval_status = Column(String(20), nullable=False, default="PENDING")
    auto_approval_deadline = Column(DateTime(timezone=True), nullable=False)
    customer_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    verified_by = Column(String(36), nullable=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    approvals = relationship(
        "MilestoneApprovalModel",
        back_populates="milestone",
        order_by="MilestoneApprovalModel.reviewed_at",
    )

    # Sweep lookup: pending milestones ordered by deadline
    __table_args__ = (
        Index(
            "ix_order_milestones_status_deadline",
            "approval_status",
            "auto_approval_deadline",
        ),
    )


class MilestoneApprovalModel(Base):
    """Audit record of a terminal milestone review. Rows are never updated."""

    __tablename__ = "milestone_approvals"

    id = Column(String(36), primary_key=True)
    milestone_id = Column(
        String(36),
        ForeignKey("order_milestones.id"),
        nullable=False,
        index=True,
    )
    order_id = Column(String(36), nullable=False, index=True)
    actor_id = Column(String(100), nullable=False)
    action = Column(String(20), nullable=False)
    comment = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=False)

    milestone = relationship("OrderMilestoneModel", back_populates="approvals")
