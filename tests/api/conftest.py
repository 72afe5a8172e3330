"""Shared fixtures for API tests."""

import asyncio
from collections.abc import Callable, Iterator
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from sew4mi.application.escrow_service import reset_escrow_repository
from sew4mi.domain import Milestone, MilestoneStage, OrderId
from sew4mi.domain.base import utc_now
from sew4mi.infrastructure.config import settings
from sew4mi.infrastructure.rate_limiter import reset_rate_limiter
from sew4mi.infrastructure.repositories import (
    get_milestone_repository,
    reset_milestone_repository,
)
from sew4mi.main import app


@pytest.fixture(autouse=True)
def _reset_state() -> Iterator[None]:
    """Give every test empty stores and fresh rate limit counters."""
    reset_milestone_repository()
    reset_escrow_repository()
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def client() -> TestClient:
    """Create test client without authentication."""
    return TestClient(app)


@pytest.fixture
def auth_client() -> TestClient:
    """Create test client with valid API key authentication."""
    return TestClient(
        app,
        headers={"Authorization": f"Bearer {settings.api_key}"},
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {settings.api_key}"}


@pytest.fixture
def service_headers() -> dict[str, str]:
    """Headers for the cron and payment-release endpoints."""
    return {"Authorization": f"Bearer {settings.cron_secret}"}


@pytest.fixture
def add_overdue_milestone() -> Callable[..., Milestone]:
    """Store a PENDING milestone whose review deadline has already passed."""

    def _add(
        order_id: OrderId | None = None,
        milestone: MilestoneStage = MilestoneStage.FITTING_READY,
        order_amount: object = 1000,
        hours_overdue: int = 1,
    ) -> Milestone:
        entity = Milestone.create(
            order_id=order_id or OrderId.generate(),
            milestone=milestone,
            order_amount=order_amount,
            now=utc_now() - timedelta(hours=48 + hours_overdue),
        )
        asyncio.run(get_milestone_repository().add(entity))
        return entity

    return _add
