"""Tests for the HTTP payment release gateway."""

import json
from decimal import Decimal

import httpx

from sew4mi.infrastructure.payment_gateway import RELEASE_PATH, HttpPaymentReleaseGateway


def make_gateway(handler, request_id: str | None = None) -> HttpPaymentReleaseGateway:
    return HttpPaymentReleaseGateway(
        base_url="http://escrow.test/",
        service_token="service-token",
        request_id=request_id,
        transport=httpx.MockTransport(handler),
    )


class TestHttpPaymentReleaseGateway:
    """Tests for release calls to a remote escrow service."""

    async def test_success(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"released": True})

        gateway = make_gateway(handler, request_id="req-1")

        released = await gateway.release_stage_payment("order-1", "ms-1", Decimal("500.00"))

        assert released is True
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == RELEASE_PATH
        assert request.headers["Authorization"] == "Bearer service-token"
        assert request.headers["X-Request-ID"] == "req-1"
        assert json.loads(request.content) == {
            "order_id": "order-1",
            "milestone_id": "ms-1",
            "amount": "500.00",
        }

    async def test_non_2xx_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"error_code": "PAYMENT_NOT_RELEASED"})

        gateway = make_gateway(handler)

        assert await gateway.release_stage_payment("order-1", "ms-1", Decimal("1.00")) is False

    async def test_server_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        gateway = make_gateway(handler)

        assert await gateway.release_stage_payment("order-1", "ms-1", Decimal("1.00")) is False

    async def test_transport_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(handler)

        assert await gateway.release_stage_payment("order-1", "ms-1", Decimal("1.00")) is False

    async def test_no_request_id_header_by_default(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        await make_gateway(handler).release_stage_payment("order-1", "ms-1", Decimal("1.00"))

        assert "X-Request-ID" not in seen[0].headers
