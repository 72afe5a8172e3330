"""Ports used by the application services.

The milestone workflow talks to persistence, payment release, rate
limiting and time only through these protocols, so tests can swap in
fakes and deployments can pick in-memory or database backends.
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sew4mi.domain.entities import Milestone, MilestoneApprovalRecord


class Clock(Protocol):
    """Source of the current UTC time."""

    def now(self) -> datetime: ...


class MilestoneRepository(Protocol):
    """Persistence for milestones and their approval audit trail."""

    async def get(self, milestone_id: str) -> Milestone | None: ...

    async def add(self, milestone: Milestone) -> None: ...

    async def save_review(
        self, milestone: Milestone, record: MilestoneApprovalRecord
    ) -> bool:
        """Persist a resolved review if the stored milestone is still PENDING.

        The status update and the audit record are written together.

        Returns:
            False when another reviewer resolved the milestone first.
        """
        ...

    async def list_approval_records(
        self, milestone_id: str
    ) -> list[MilestoneApprovalRecord]: ...

    async def list_overdue(self, now: datetime, limit: int) -> list[Milestone]:
        """PENDING milestones whose deadline is at or before ``now``, oldest first."""
        ...


class PaymentReleaseGateway(Protocol):
    """Releases an escrow tranche to the tailor."""

    async def release_stage_payment(
        self, order_id: str, milestone_id: str, amount: Decimal
    ) -> bool: ...


class RateLimiter(Protocol):
    """Fixed-window request limiter."""

    async def check_and_increment(self, key: str) -> bool:
        """Count a request for ``key``.

        Returns:
            True if the request is within the limit.
        """
        ...
