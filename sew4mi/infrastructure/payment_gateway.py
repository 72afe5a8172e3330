"""HTTP client for the escrow payment-release endpoint.

Used when payment release runs in a separate service. The remote
endpoint is called with the cron/service bearer token and must answer
2xx for the release to count.
"""

from decimal import Decimal

import httpx
import structlog

logger = structlog.get_logger()

RELEASE_PATH = "/escrow/release-milestone-payment"


class HttpPaymentReleaseGateway:
    """Releases escrow tranches by calling a remote escrow service.

    Failures never raise: a transport error or non-2xx status is logged
    and reported as ``False``.
    """

    def __init__(
        self,
        base_url: str,
        service_token: str,
        timeout: float = 5.0,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize gateway.

        Args:
            base_url: Escrow service base URL.
            service_token: Bearer token accepted by the escrow service.
            timeout: Request timeout in seconds.
            request_id: Optional request ID for correlation.
            transport: Optional httpx transport (tests).
        """
        self.base_url = base_url.rstrip("/")
        self.service_token = service_token
        self.timeout = timeout
        self.request_id = request_id
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.service_token}"}
        if self.request_id:
            headers["X-Request-ID"] = self.request_id
        return headers

    async def release_stage_payment(
        self, order_id: str, milestone_id: str, amount: Decimal
    ) -> bool:
        payload = {
            "order_id": order_id,
            "milestone_id": milestone_id,
            "amount": str(amount),
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = await client.post(RELEASE_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "Payment release request failed",
                order_id=order_id,
                milestone_id=milestone_id,
                error=str(e),
                request_id=self.request_id,
            )
            return False

        if not response.is_success:
            logger.error(
                "Payment release rejected",
                order_id=order_id,
                milestone_id=milestone_id,
                status_code=response.status_code,
                body=response.text[:200],
                request_id=self.request_id,
            )
            return False

        logger.info(
            "Payment release accepted",
            order_id=order_id,
            milestone_id=milestone_id,
            amount=str(amount),
            request_id=self.request_id,
        )
        return True
