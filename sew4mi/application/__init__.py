"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from sew4mi.application.escrow_service import (
    EscrowService,
    get_escrow_service,
)
from sew4mi.application.milestone_service import (
    AutoApprovalSweepResult,
    MilestoneApprovalService,
    MilestoneDecisionResult,
    get_milestone_service,
)

__all__ = [
    "AutoApprovalSweepResult",
    "EscrowService",
    "get_escrow_service",
    "MilestoneApprovalService",
    "MilestoneDecisionResult",
    "get_milestone_service",
]
