"""Data models package."""

from app.models.order import (
    LineItem,
    OrderInDB,
    OrderStatus,
    PaymentInfo,
    PaymentMethod,
    PaymentStatus,
    ShippingInfo,
    StatusChange,
)
from app.models.product import ProductInDB
from app.models.request import (
    CaptureRequest,
    CartItem,
    CheckoutRequest,
    CheckoutResponse,
    ErrorResponse,
    HealthResponse,
    OrderListResponse,
    OrderStatusResponse,
    OrderStatusUpdate,
    PaymentFailureRequest,
    PaymentResponse,
    RefundRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.models.state import Role

__all__ = [
    # Order models
    "LineItem",
    "OrderInDB",
    "OrderStatus",
    "PaymentInfo",
    "PaymentMethod",
    "PaymentStatus",
    "ShippingInfo",
    "StatusChange",
    "Role",
    # Product models
    "ProductInDB",
    # Request/Response models
    "CartItem",
    "CheckoutRequest",
    "CheckoutResponse",
    "VerifyPaymentRequest",
    "VerifyPaymentResponse",
    "PaymentFailureRequest",
    "CaptureRequest",
    "RefundRequest",
    "PaymentResponse",
    "OrderStatusUpdate",
    "OrderStatusResponse",
    "OrderListResponse",
    "HealthResponse",
    "ErrorResponse",
]
