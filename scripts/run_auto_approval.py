#!/usr/bin/env python3
"""Run the milestone auto-approval sweep once.

Approves every PENDING milestone whose review deadline has passed and
releases its escrow tranche. Intended for a scheduler such as cron
when the HTTP endpoint is not used.

Usage:
    python scripts/run_auto_approval.py
    python scripts/run_auto_approval.py --limit 50
    python scripts/run_auto_approval.py --dry-run
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from sew4mi.application.milestone_service import get_milestone_service
from sew4mi.infrastructure.config import settings
from sew4mi.infrastructure.logging_config import configure_logging
from sew4mi.infrastructure.repositories import get_milestone_repository

logger = structlog.get_logger()


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    from sew4mi.infrastructure.database import Base, engine
    from sew4mi.infrastructure import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def list_due(limit: int) -> None:
    """Print overdue milestones without approving them."""
    service = get_milestone_service()
    overdue = await get_milestone_repository().list_overdue(service.clock.now(), limit)
    print(f"{len(overdue)} milestone(s) due for auto-approval")
    for milestone in overdue:
        print(
            f"  {milestone.id}  order={milestone.order_id}  "
            f"{milestone.milestone.value}  deadline={milestone.auto_approval_deadline.isoformat()}"
        )


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Auto-approve milestones past their review deadline",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.auto_approval_batch_size,
        help=f"Max milestones to process (default: {settings.auto_approval_batch_size})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List due milestones without approving them",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create database tables before running",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL",
    )

    args = parser.parse_args()
    configure_logging(args.log_level)

    if settings.persistence_backend != "database":
        logger.warning(
            "Running with in-memory persistence; nothing is shared with the API process",
        )
    elif args.create_tables:
        await create_tables()

    if args.dry_run:
        await list_due(args.limit)
        return 0

    service = get_milestone_service()
    result = await service.run_auto_approval_sweep(limit=args.limit)

    print(result.message)
    print(f"  processed:     {result.processed}")
    print(f"  auto-approved: {result.auto_approved}")
    print(f"  failed:        {result.failed}")
    print(f"  took:          {result.execution_time_ms} ms")
    for error in result.errors:
        print(f"  error: {error}")

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
