"""API request and response models."""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.models.order import OrderInDB, OrderStatus


class CartItem(BaseModel):
    """Cart line as submitted by the client. Only id and quantity are trusted."""

    productId: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("productId", "_id", "id"),
        description="Catalog product identifier",
    )
    quantity: int = Field(..., description="Requested quantity")
    name: Optional[str] = Field(None, description="Display name, used only in error messages")


class CheckoutRequest(BaseModel):
    """Checkout request model.

    Fields are optional here so the checkout service can report missing data
    with its own messages.
    """

    items: list[CartItem] = Field(default_factory=list)
    shippingInfo: Optional[dict[str, Any]] = None
    paymentMethod: Optional[str] = None
    totalAmount: Optional[float] = None

    @field_validator("paymentMethod", mode="before")
    @classmethod
    def normalize_payment_method(cls, v: Any) -> Any:
        """Accept the gateway's brand name as the gateway method."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "razorpay":
                return "gateway"
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "items": [{"productId": "organic-honey", "quantity": 2}],
                "shippingInfo": {
                    "fullName": "Asha Rao",
                    "email": "asha@example.com",
                    "phone": "9876543210",
                    "address": "12 MG Road",
                    "city": "Bengaluru",
                    "state": "Karnataka",
                    "pincode": "560001",
                },
                "paymentMethod": "gateway",
                "totalAmount": 900,
            }
        }
    }


class CheckoutResponse(BaseModel):
    """Checkout response model."""

    success: bool = True
    orderId: str
    orderNumber: str
    message: Optional[str] = None
    gatewayOrderId: Optional[str] = None
    amount: Optional[int] = Field(None, description="Gateway amount in minor currency units")
    currency: Optional[str] = None
    key: Optional[str] = Field(None, description="Gateway public key for the payment widget")


class VerifyPaymentRequest(BaseModel):
    """Payment verification payload reported by the client after capture."""

    gatewayOrderId: Optional[str] = Field(
        None, validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id")
    )
    gatewayPaymentId: Optional[str] = Field(
        None, validation_alias=AliasChoices("gatewayPaymentId", "razorpay_payment_id")
    )
    gatewaySignature: Optional[str] = Field(
        None, validation_alias=AliasChoices("gatewaySignature", "razorpay_signature")
    )
    orderId: Optional[str] = Field(None, validation_alias=AliasChoices("orderId", "order_id"))


class VerifyPaymentResponse(BaseModel):
    """Payment verification response model."""

    success: bool = True
    orderId: str
    orderNumber: str
    message: str
    payment: Optional[dict[str, Any]] = None


class PaymentFailureRequest(BaseModel):
    """Client-reported payment failure."""

    gatewayOrderId: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("gatewayOrderId", "razorpay_order_id")
    )
    reason: str = Field(default="Payment failed", max_length=500)


class CaptureRequest(BaseModel):
    """Manual capture of an authorized payment."""

    paymentId: str = Field(..., min_length=1, validation_alias=AliasChoices("paymentId", "payment_id"))
    amount: float = Field(..., gt=0, description="Amount in major currency units")


class RefundRequest(BaseModel):
    """Refund of a captured payment. Omit amount for a full refund."""

    paymentId: str = Field(..., min_length=1, validation_alias=AliasChoices("paymentId", "payment_id"))
    amount: Optional[float] = Field(None, gt=0, description="Amount in major currency units")
    reason: str = "requested_by_customer"


class PaymentResponse(BaseModel):
    """Gateway payment or refund summary."""

    success: bool = True
    message: Optional[str] = None
    payment: dict[str, Any]


class OrderStatusUpdate(BaseModel):
    """Admin status update request."""

    orderStatus: OrderStatus


class OrderStatusResponse(BaseModel):
    message: str
    order: OrderInDB


class OrderListResponse(BaseModel):
    """Paginated order listing."""

    orders: list[OrderInDB]
    totalPages: int
    currentPage: int
    total: int


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = False
    message: str
    error: Optional[str] = None
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    services: dict[str, str]
