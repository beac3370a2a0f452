"""Razorpay payment gateway client."""

import asyncio
import logging
from typing import Any, Optional

import razorpay
from pydantic import BaseModel

from app.config import Settings, get_settings
from app.exceptions import UpstreamGatewayError

logger = logging.getLogger(__name__)


class GatewayOrder(BaseModel):
    """Remote payment order registered with the gateway."""

    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None


class PaymentGateway:
    """Async wrapper around the Razorpay SDK.

    Built once at startup and passed to the services that need it. The SDK is
    synchronous, so calls run in a worker thread.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Any] = None) -> None:
        """Initialize Razorpay client."""
        self.settings = settings or get_settings()
        if client is not None:
            self.client = client
        elif self.settings.razorpay_key_id and self.settings.razorpay_key_secret:
            self.client = razorpay.Client(
                auth=(self.settings.razorpay_key_id, self.settings.razorpay_key_secret)
            )
            logger.info("Razorpay gateway initialized")
        else:
            self.client = None
            logger.warning("Razorpay credentials not provided - online payments disabled")

    @property
    def key_id(self) -> str:
        """Public key the client needs to open the payment widget."""
        return self.settings.razorpay_key_id

    def is_available(self) -> bool:
        """Check if the gateway is configured."""
        return self.client is not None

    def _require_client(self) -> Any:
        if not self.client:
            raise UpstreamGatewayError("Payment gateway is not configured")
        return self.client

    async def _call(self, action: str, func, *args: Any, **kwargs: Any) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            logger.error("Razorpay %s failed: %s", action, e, extra={"gateway_action": action})
            raise UpstreamGatewayError(f"Error during payment gateway {action}", cause=str(e)) from e

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> GatewayOrder:
        """Register a payment order for ``amount`` minor units."""
        data = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,
            "notes": notes or {},
        }
        client = self._require_client()
        response = await self._call("order creation", client.order.create, data=data)
        logger.info("Created gateway order %s for receipt %s", response.get("id"), receipt)
        return GatewayOrder(**response)

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        """Fetch payment details."""
        client = self._require_client()
        return await self._call("payment fetch", client.payment.fetch, payment_id)

    async def capture_payment(self, payment_id: str, amount: int, currency: str) -> dict[str, Any]:
        """Capture an authorized payment of ``amount`` minor units."""
        client = self._require_client()
        return await self._call(
            "payment capture",
            client.payment.capture,
            payment_id,
            amount,
            {"currency": currency},
        )

    async def refund_payment(
        self,
        payment_id: str,
        amount: Optional[int] = None,
        notes: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """Refund a payment; a missing amount refunds it in full."""
        data: dict[str, Any] = {"notes": notes or {}}
        if amount is not None:
            data["amount"] = amount
        client = self._require_client()
        return await self._call("refund", client.payment.refund, payment_id, data)
