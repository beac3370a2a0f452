"""API routes for checkout, payments and orders."""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status

from app.config import Settings
from app.database.mongodb import MongoDB
from app.exceptions import Forbidden, InternalError, StorefrontError
from app.models.order import OrderInDB, OrderStatus, PaymentStatus
from app.models.request import (
    CaptureRequest,
    CheckoutRequest,
    CheckoutResponse,
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
from app.services.checkout_service import CheckoutService
from app.services.gateway import PaymentGateway
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Dependencies ───────────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> MongoDB:
    return request.app.state.store


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def is_admin(settings: Settings, admin_key: Optional[str]) -> bool:
    """Check the admin key header against the configured key."""
    if not settings.admin_api_key or not admin_key:
        return False
    return hmac.compare_digest(settings.admin_api_key.encode("utf-8"), admin_key.encode("utf-8"))


async def require_admin(
    settings: Settings = Depends(get_app_settings),
    admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> None:
    """Reject the request unless it carries a valid admin key."""
    if not is_admin(settings, admin_key):
        raise Forbidden("Admin access required")


# ── Health ─────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_app_settings),
    store: MongoDB = Depends(get_store),
    gateway: PaymentGateway = Depends(get_gateway),
) -> HealthResponse:
    """Health check endpoint."""
    mongodb_status = "connected" if store.db is not None else "disconnected"
    gateway_status = "configured" if gateway.is_available() else "not_configured"

    return HealthResponse(
        status="healthy" if mongodb_status == "connected" else "degraded",
        version=settings.app_version,
        services={
            "mongodb": mongodb_status,
            "razorpay": gateway_status,
        },
    )


# ── Checkout ───────────────────────────────────────────────────────────────

@router.post("/checkout", response_model=CheckoutResponse, response_model_exclude_none=True)
@router.post(
    "/orders/checkout",
    response_model=CheckoutResponse,
    response_model_exclude_none=True,
    include_in_schema=False,
)
async def checkout(
    request: CheckoutRequest,
    checkout_service: CheckoutService = Depends(get_checkout_service),
    user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> CheckoutResponse:
    """Create an order from the cart and start payment.

    Headers:
        X-User-ID: Optional user identifier; omitted for guest checkout

    Body:
        items: [{productId, quantity}]
        shippingInfo: fullName, email, phone, address, city, state, pincode
        paymentMethod: 'gateway' (or 'razorpay') / 'cod'
        totalAmount: total shown to the customer, checked against the server total
    """
    try:
        return await checkout_service.checkout(request, owner=user_id)
    except StorefrontError:
        raise
    except Exception as e:
        logger.error("Checkout error: %s", e, exc_info=True)
        raise InternalError("Server error during checkout") from e


# ── Payments ───────────────────────────────────────────────────────────────

@router.post("/payments/verify", response_model=VerifyPaymentResponse, response_model_exclude_none=True)
@router.post(
    "/orders/verify-payment",
    response_model=VerifyPaymentResponse,
    response_model_exclude_none=True,
    include_in_schema=False,
)
async def verify_payment(
    request: VerifyPaymentRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> VerifyPaymentResponse:
    """Verify a gateway payment signature and confirm the order."""
    try:
        return await payment_service.verify_payment(
            gateway_order_id=request.gatewayOrderId,
            gateway_payment_id=request.gatewayPaymentId,
            gateway_signature=request.gatewaySignature,
            order_id=request.orderId,
        )
    except StorefrontError:
        raise
    except Exception as e:
        logger.error("Payment verification error: %s", e, exc_info=True)
        raise InternalError("Error verifying payment") from e


@router.post("/payments/failure")
async def record_payment_failure(
    request: PaymentFailureRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> dict[str, object]:
    """Record a failed payment attempt reported by the payment widget."""
    order = await payment_service.record_failure(request.gatewayOrderId, request.reason)
    return {
        "success": True,
        "orderId": order.orderId,
        "orderNumber": order.orderNumber,
        "paymentStatus": order.paymentInfo.status.value,
    }


@router.get("/payments/{payment_id}", response_model=PaymentResponse, response_model_exclude_none=True)
async def get_payment_details(
    payment_id: str,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Fetch payment details from the gateway."""
    return await payment_service.get_payment_details(payment_id)


@router.post(
    "/payments/capture",
    response_model=PaymentResponse,
    dependencies=[Depends(require_admin)],
)
async def capture_payment(
    request: CaptureRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Capture an authorized payment (manual capture)."""
    return await payment_service.capture_payment(request.paymentId, request.amount)


@router.post(
    "/payments/refund",
    response_model=PaymentResponse,
    dependencies=[Depends(require_admin)],
)
async def refund_payment(
    request: RefundRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Refund a payment in full or in part."""
    return await payment_service.refund_payment(request.paymentId, request.amount, request.reason)


# ── Orders ─────────────────────────────────────────────────────────────────

@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    user_id: str = Header(..., alias="X-User-ID"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List the caller's orders, newest first."""
    return await order_service.list_orders_for_owner(user_id, page, limit)


@router.get("/orders/{order_id}", response_model=OrderInDB)
async def get_order(
    order_id: str,
    user_id: Optional[str] = Header(None, alias="X-User-ID"),
    admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
    settings: Settings = Depends(get_app_settings),
    order_service: OrderService = Depends(get_order_service),
) -> OrderInDB:
    """Get a single order. Only its owner or an admin may read it."""
    order = await order_service.get_order(order_id)
    if is_admin(settings, admin_key):
        return order
    if order.owner is None or order.owner != user_id:
        raise Forbidden("Access denied")
    return order


@router.get(
    "/admin/orders",
    response_model=OrderListResponse,
    dependencies=[Depends(require_admin)],
)
async def list_all_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List all orders with filters (admin only)."""
    return await order_service.list_orders(
        status=order_status,
        payment_status=payment_status,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.put(
    "/admin/orders/{order_id}/status",
    response_model=OrderStatusResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    order_service: OrderService = Depends(get_order_service),
) -> OrderStatusResponse:
    """Move an order through its lifecycle (admin only)."""
    order = await order_service.update_status(order_id, request.orderStatus)
    return OrderStatusResponse(message="Order status updated successfully", order=order)
