"""
Payment gateway REST client (Razorpay-compatible wire format).

Every call has a bounded timeout. A timeout, a connection failure or a 5xx/429
answer raises ``UpstreamGatewayError(retryable=True)``; any other non-2xx
raises it with ``retryable=False``. Nothing here ever reports success on
doubt.
"""
from typing import Optional

import httpx
import structlog

from shared.config import settings
from shared.errors import UpstreamGatewayError
from shared.observability import ecomm_gateway_failures_total

logger = structlog.get_logger(__name__)


class GatewayClient:

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict) -> dict:
        """Open one remote order; the returned dict carries the correlation ``id``."""
        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        order = await self._post("/orders", payload, operation="create_order")
        logger.info(
            "gateway_order_created",
            gateway_order_id=order.get("id"),
            amount_minor=amount_minor,
            currency=currency,
        )
        return order

    async def refund_payment(self, payment_id: str, amount_minor: int, notes: dict) -> dict:
        payload = {"amount": amount_minor, "notes": notes}
        refund = await self._post(f"/payments/{payment_id}/refund", payload, operation="refund_payment")
        logger.info(
            "gateway_refund_created",
            gateway_refund_id=refund.get("id"),
            gateway_payment_id=payment_id,
            amount_minor=amount_minor,
        )
        return refund

    async def _post(self, path: str, payload: dict, operation: str) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.key_id, self._key_secret),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                resp = await client.post(path, json=payload)
                resp.raise_for_status()
                return resp.json()
        except httpx.TimeoutException as exc:
            raise self._failure(operation, f"Gateway request timed out after {self.timeout}s", True) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            retryable = status >= 500 or status == 429
            raise self._failure(
                operation, f"Gateway answered {status}: {exc.response.text[:200]}", retryable
            ) from exc
        except httpx.RequestError as exc:
            raise self._failure(operation, f"Gateway unreachable: {exc.__class__.__name__}", True) from exc
        except ValueError as exc:
            raise self._failure(operation, "Gateway returned a non-JSON body", False) from exc

    @staticmethod
    def _failure(operation: str, message: str, retryable: bool) -> UpstreamGatewayError:
        ecomm_gateway_failures_total.labels(operation=operation, retryable=str(retryable).lower()).inc()
        logger.error("gateway_call_failed", operation=operation, detail=message, retryable=retryable)
        return UpstreamGatewayError(message, retryable=retryable, operation=operation)


_client: Optional[GatewayClient] = None


def get_gateway_client() -> GatewayClient:
    """FastAPI dependency returning the process-wide gateway client."""
    global _client
    if _client is None:
        _client = GatewayClient(
            key_id=settings.GATEWAY_KEY_ID,
            key_secret=settings.GATEWAY_KEY_SECRET,
            base_url=settings.GATEWAY_BASE_URL,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )
    return _client
