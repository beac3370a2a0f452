"""Services package."""

from app.services.checkout_service import CheckoutService
from app.services.gateway import GatewayOrder, PaymentGateway
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService, summarize_payment

__all__ = [
    "CheckoutService",
    "GatewayOrder",
    "PaymentGateway",
    "OrderService",
    "PaymentService",
    "summarize_payment",
]
