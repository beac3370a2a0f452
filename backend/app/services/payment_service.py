"""Payment service: signature verification and gateway payment operations."""

import logging
from datetime import UTC, datetime
from typing import Any, Optional

from app.config import Settings, get_settings
from app.database.mongodb import MongoDB
from app.exceptions import (
    IllegalTransition,
    InsufficientStock,
    InvalidInput,
    InvalidSignature,
    OrderNotFound,
    UpstreamGatewayError,
)
from app.models.order import OrderInDB, OrderStatus, PaymentStatus, StatusChange
from app.models.request import PaymentResponse, VerifyPaymentResponse
from app.models.state import Role, ensure_order_transition, ensure_payment_transition
from app.services.gateway import PaymentGateway
from app.utils.helpers import from_minor_units, to_minor_units, verify_payment_signature

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = ("created_at", "bank", "wallet", "vpa")


def summarize_payment(payment: dict[str, Any], detailed: bool = False) -> dict[str, Any]:
    """Reduce a gateway payment or refund entity to the fields clients see.

    Amounts are converted back to major units.
    """
    summary = {
        "id": payment.get("id"),
        "status": payment.get("status"),
        "method": payment.get("method"),
        "amount": from_minor_units(payment.get("amount") or 0),
        "currency": payment.get("currency"),
    }
    if detailed:
        summary.update({field: payment.get(field) for field in _DETAIL_FIELDS})
    return summary


class PaymentService:
    """Confirms gateway payments against pending orders."""

    def __init__(
        self,
        store: MongoDB,
        gateway: PaymentGateway,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.settings = settings or get_settings()

    async def _locate_order(self, gateway_order_id: str, order_id: Optional[str]) -> OrderInDB:
        if order_id:
            order = await self.store.get_order(order_id)
            # The signature only vouches for the order registered with this gateway order
            if order and order.paymentInfo.gatewayOrderId != gateway_order_id:
                logger.warning(
                    "Order %s is bound to gateway order %s, not %s",
                    order_id,
                    order.paymentInfo.gatewayOrderId,
                    gateway_order_id,
                )
                order = None
        else:
            order = await self.store.find_order_by_gateway_order_id(gateway_order_id)

        if not order:
            raise OrderNotFound("Order not found")
        return order

    @staticmethod
    def _already_verified(order: OrderInDB, gateway_payment_id: str) -> bool:
        return (
            order.paymentInfo.status == PaymentStatus.COMPLETED
            and order.paymentInfo.gatewayPaymentId == gateway_payment_id
        )

    async def verify_payment(
        self,
        gateway_order_id: Optional[str],
        gateway_payment_id: Optional[str],
        gateway_signature: Optional[str],
        order_id: Optional[str] = None,
    ) -> VerifyPaymentResponse:
        """Verify a gateway payment and confirm its order.

        Replaying a verified payment returns success without touching stock
        again.

        Raises:
            InvalidInput: a verification field is missing.
            InvalidSignature: the signature does not match.
            OrderNotFound: no order matches the gateway order or hint.
            UpstreamGatewayError: no gateway secret is configured.
            IllegalTransition: the order can no longer be confirmed.
        """
        if not gateway_order_id or not gateway_payment_id or not gateway_signature:
            raise InvalidInput("Missing payment verification data")

        if not self.settings.razorpay_key_secret:
            raise UpstreamGatewayError("Payment gateway is not configured")

        if not verify_payment_signature(
            self.settings.razorpay_key_secret, gateway_order_id, gateway_payment_id, gateway_signature
        ):
            logger.warning(
                "Invalid payment signature for gateway order %s",
                gateway_order_id,
                extra={"gatewayOrderId": gateway_order_id},
            )
            raise InvalidSignature("Invalid payment signature")

        order = await self._locate_order(gateway_order_id, order_id)

        if self._already_verified(order, gateway_payment_id):
            logger.info("Payment %s already verified for order %s", gateway_payment_id, order.orderNumber)
            return self._verified_response(order, "Payment already verified")

        ensure_payment_transition(order.paymentInfo.status, PaymentStatus.COMPLETED, Role.SYSTEM)
        ensure_order_transition(order.orderStatus, OrderStatus.CONFIRMED, Role.SYSTEM)

        confirmed = await self.store.transition_order(
            order.orderId,
            OrderStatus.PENDING,
            {
                "orderStatus": OrderStatus.CONFIRMED,
                "paymentInfo.status": PaymentStatus.COMPLETED,
                "paymentInfo.gatewayPaymentId": gateway_payment_id,
                "paymentInfo.gatewaySignature": gateway_signature,
                "paymentInfo.failureReason": None,
            },
            history=StatusChange(
                status=OrderStatus.CONFIRMED, role=Role.SYSTEM.value, trigger="payment_verified"
            ),
        )

        if confirmed is None:
            # Another request changed the order between the read and the update
            current = await self.store.get_order(order.orderId)
            if current and self._already_verified(current, gateway_payment_id):
                return self._verified_response(current, "Payment already verified")
            raise IllegalTransition("Order is no longer awaiting payment")

        logger.info(
            "Payment %s verified for order %s",
            gateway_payment_id,
            confirmed.orderNumber,
            extra={"orderId": confirmed.orderId, "orderNumber": confirmed.orderNumber},
        )

        try:
            await self.store.commit_order_stock(confirmed)
        except InsufficientStock as e:
            # Paid already, so the order stays confirmed for an operator to resolve
            logger.error(
                "Paid order %s could not commit stock: %s",
                confirmed.orderNumber,
                e.message,
                extra={"orderId": confirmed.orderId, "productId": e.product_id},
            )
            flagged = await self.store.update_order_fields(confirmed.orderId, {"stockShortfall": True})
            confirmed = flagged or confirmed

        payment = await self._payment_summary(gateway_payment_id)
        return self._verified_response(confirmed, "Payment verified successfully", payment)

    @staticmethod
    def _verified_response(
        order: OrderInDB, message: str, payment: Optional[dict[str, Any]] = None
    ) -> VerifyPaymentResponse:
        return VerifyPaymentResponse(
            orderId=order.orderId,
            orderNumber=order.orderNumber,
            message=message,
            payment=payment,
        )

    async def _payment_summary(self, payment_id: str) -> Optional[dict[str, Any]]:
        if not self.gateway.is_available():
            return None
        try:
            payment = await self.gateway.fetch_payment(payment_id)
        except UpstreamGatewayError as e:
            # Signature was valid, details are informational only
            logger.warning("Could not fetch payment %s: %s", payment_id, e.cause)
            return None
        return summarize_payment(payment)

    async def record_failure(self, gateway_order_id: str, reason: str) -> OrderInDB:
        """Mark the payment of a pending order as failed. The order stays open for a retry."""
        order = await self.store.find_order_by_gateway_order_id(gateway_order_id)
        if not order:
            raise OrderNotFound("Order not found")

        if order.paymentInfo.status == PaymentStatus.FAILED:
            return order

        ensure_payment_transition(order.paymentInfo.status, PaymentStatus.FAILED, Role.SYSTEM)

        updated = await self.store.transition_order(
            order.orderId,
            OrderStatus.PENDING,
            {"paymentInfo.status": PaymentStatus.FAILED, "paymentInfo.failureReason": reason},
        )
        if updated is None:
            raise IllegalTransition("Order is no longer awaiting payment")

        logger.info(
            "Payment failed for order %s: %s",
            updated.orderNumber,
            reason,
            extra={"orderId": updated.orderId, "gatewayOrderId": gateway_order_id},
        )
        return updated

    async def get_payment_details(self, payment_id: str) -> PaymentResponse:
        """Fetch payment details from the gateway."""
        payment = await self.gateway.fetch_payment(payment_id)
        return PaymentResponse(payment=summarize_payment(payment, detailed=True))

    async def capture_payment(self, payment_id: str, amount: float) -> PaymentResponse:
        """Capture an authorized payment."""
        payment = await self.gateway.capture_payment(
            payment_id, to_minor_units(amount), self.settings.currency
        )
        logger.info("Captured payment %s", payment_id)
        return PaymentResponse(message="Payment captured successfully", payment=summarize_payment(payment))

    async def refund_payment(
        self, payment_id: str, amount: Optional[float] = None, reason: str = "requested_by_customer"
    ) -> PaymentResponse:
        """Refund a payment in full, or partially when ``amount`` is given."""
        refund = await self.gateway.refund_payment(
            payment_id,
            amount=to_minor_units(amount) if amount is not None else None,
            notes={"reason": reason, "refund_date": datetime.now(UTC).isoformat()},
        )
        logger.info("Refund %s created for payment %s", refund.get("id"), payment_id)
        return PaymentResponse(message="Refund created successfully", payment=summarize_payment(refund))
