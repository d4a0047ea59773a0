"""Single webhook delivery attempt"""

import asyncio
import logging
import time
from typing import Callable, Dict
import httpx

from akinai_gateway.config import DEFAULT_USER_AGENT
from akinai_gateway.errors import DeliveryError
from akinai_gateway.models.webhook import DeliveryOutcome
from akinai_gateway.webhooks.signing import SIGNATURE_HEADER, sign_payload

logger = logging.getLogger(__name__)

RESPONSE_EXCERPT_LIMIT = 1000


def create_http_client() -> httpx.AsyncClient:
    """Shared client for outbound deliveries; per-request timeouts override the default"""
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0,
        ),
        timeout=httpx.Timeout(30.0, connect=10.0),
        follow_redirects=False,
    )


class DeliveryWorker:
    """Signs an envelope and POSTs it with a hard deadline"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str = DEFAULT_USER_AGENT,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client
        self.user_agent = user_agent
        self.clock = clock

    def build_headers(self, envelope_json: str, secret: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_payload(envelope_json, secret, int(self.clock())),
            "User-Agent": self.user_agent,
        }

    async def attempt(
        self,
        url: str,
        envelope_json: str,
        secret: str,
        timeout_ms: int,
    ) -> DeliveryOutcome:
        """
        Perform one delivery attempt

        Only a 2xx response counts as success. Cancellation is not caught:
        a cancelled attempt produces no outcome.
        """
        started = time.monotonic()

        try:
            response = await self._post(url, envelope_json, secret, timeout_ms)
        except DeliveryError as e:
            return DeliveryOutcome(
                success=False,
                error_message=e.message,
                duration_ms=self._elapsed_ms(started),
            )

        return DeliveryOutcome(
            success=response.is_success,
            http_status=response.status_code,
            response_excerpt=response.text[:RESPONSE_EXCERPT_LIMIT],
            duration_ms=self._elapsed_ms(started),
        )

    async def _post(self, url: str, envelope_json: str, secret: str, timeout_ms: int) -> httpx.Response:
        timeout = timeout_ms / 1000
        headers = self.build_headers(envelope_json, secret)

        try:
            async with asyncio.timeout(timeout):
                return await self.client.post(
                    url,
                    content=envelope_json.encode("utf-8"),
                    headers=headers,
                    timeout=timeout,
                )
        except (TimeoutError, httpx.TimeoutException):
            raise DeliveryError(f"Timeout after {timeout_ms}ms") from None
        except Exception as e:
            raise DeliveryError(str(e) or type(e).__name__) from e

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
