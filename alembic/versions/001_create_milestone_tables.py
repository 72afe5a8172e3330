"""Create order_milestones and milestone_approvals tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create order_milestones and milestone_approvals tables."""
    op.create_table(
        "order_milestones",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), nullable=False, index=True),
        sa.Column("milestone", sa.String(40), nullable=False),
        sa.Column("escrow_stage", sa.String(20), nullable=False),
        sa.Column("order_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "approval_status",
            sa.String(20),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("auto_approval_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("verified_by", sa.String(36), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "approval_status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_order_milestones_approval_status",
        ),
        sa.CheckConstraint("order_amount > 0", name="ck_order_milestones_amount_positive"),
    )

    # Auto-approval sweep scans pending milestones by deadline
    op.create_index(
        "ix_order_milestones_status_deadline",
        "order_milestones",
        ["approval_status", "auto_approval_deadline"],
    )

    # Append-only audit trail of reviews
    op.create_table(
        "milestone_approvals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "milestone_id",
            sa.String(36),
            sa.ForeignKey("order_milestones.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("order_id", sa.String(36), nullable=False, index=True),
        sa.Column("actor_id", sa.String(100), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "action IN ('APPROVED', 'REJECTED', 'AUTO_APPROVED')",
            name="ck_milestone_approvals_action",
        ),
    )


def downgrade() -> None:
    """Drop milestone_approvals and order_milestones tables."""
    op.drop_table("milestone_approvals")
    op.drop_index("ix_order_milestones_status_deadline", table_name="order_milestones")
    op.drop_table("order_milestones")
