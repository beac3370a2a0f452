"""Order data models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment states."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    GATEWAY = "gateway"
    COD = "cod"


class LineItem(BaseModel):
    """Line item in an order, snapshotted from the catalog at checkout."""

    productId: str = Field(..., description="Catalog product identifier")
    name: str = Field(..., description="Product name at time of purchase")
    price: float = Field(..., ge=0, description="Unit price at time of purchase")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    image: str = Field(default="", description="Product image URL")


class ShippingInfo(BaseModel):
    """Shipping address and contact details."""

    fullName: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=20)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., min_length=1, max_length=12)

    @field_validator("fullName", "phone", "address", "city", "state", "pincode", mode="before")
    @classmethod
    def strip_whitespace(cls, v: object) -> object:
        """Trim surrounding whitespace before length checks."""
        if isinstance(v, str):
            return v.strip()
        return v


class PaymentInfo(BaseModel):
    """Payment method, status and gateway references."""

    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    gatewayOrderId: Optional[str] = None
    gatewayPaymentId: Optional[str] = None
    gatewaySignature: Optional[str] = None
    failureReason: Optional[str] = None


class StatusChange(BaseModel):
    """Audit entry for an order status change."""

    status: OrderStatus
    role: str
    trigger: str
    at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class OrderInDB(BaseModel):
    """Order model as stored in database."""

    orderId: str = Field(..., description="System-generated order identifier")
    orderNumber: str = Field(default="", description="Human-readable order number")
    owner: Optional[str] = Field(None, description="User who placed the order; None for guests")
    items: list[LineItem] = Field(..., min_length=1)
    shippingInfo: ShippingInfo
    paymentInfo: PaymentInfo
    subtotal: float = Field(..., ge=0)
    shippingCost: float = Field(..., ge=0)
    totalAmount: float = Field(..., ge=0)
    currency: str = "INR"
    orderStatus: OrderStatus = OrderStatus.PENDING
    stockCommitted: bool = Field(default=False, description="Catalog stock has been decremented")
    stockShortfall: bool = Field(default=False, description="Paid order whose stock could not be committed")
    statusHistory: list[StatusChange] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updatedAt: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {
        "json_schema_extra": {
            "example": {
                "orderId": "0b6f3c1e-0d8e-4d4e-9f6a-3c2b1a0f9e8d",
                "orderNumber": "ORD-20240906-000042",
                "owner": None,
                "items": [
                    {
                        "productId": "organic-honey",
                        "name": "Organic Honey",
                        "price": 450.0,
                        "quantity": 2,
                        "image": "https://example.com/honey.jpg",
                    }
                ],
                "shippingInfo": {
                    "fullName": "Asha Rao",
                    "email": "asha@example.com",
                    "phone": "9876543210",
                    "address": "12 MG Road",
                    "city": "Bengaluru",
                    "state": "Karnataka",
                    "pincode": "560001",
                },
                "paymentInfo": {"method": "gateway", "status": "pending", "gatewayOrderId": "order_N5x"},
                "subtotal": 900.0,
                "shippingCost": 0.0,
                "totalAmount": 900.0,
                "currency": "INR",
                "orderStatus": "pending",
            }
        }
    }
