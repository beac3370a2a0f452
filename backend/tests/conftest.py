"""Shared fixtures: in-memory MongoDB, fake payment gateway and app client."""

from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.config import Settings
from app.database.mongodb import MongoDB
from app.exceptions import UpstreamGatewayError
from app.main import create_app
from app.models.order import LineItem, OrderInDB, PaymentInfo, PaymentMethod, ShippingInfo
from app.models.product import ProductInDB
from app.services.checkout_service import CheckoutService
from app.services.gateway import GatewayOrder
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.utils.helpers import generate_payment_signature, generate_uuid

GATEWAY_SECRET = "test_gateway_secret"
GATEWAY_KEY_ID = "rzp_test_key"
ADMIN_KEY = "test-admin-key"

SHIPPING = {
    "fullName": "Asha Rao",
    "email": "asha@example.com",
    "phone": "9876543210",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


class FakeGateway:
    """In-memory stand-in for the Razorpay client."""

    def __init__(self) -> None:
        self.key_id = GATEWAY_KEY_ID
        self.created: list[tuple[GatewayOrder, dict[str, str]]] = []
        self.fail_create = False
        self.fail_fetch = False

    def is_available(self) -> bool:
        return True

    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: Optional[dict[str, str]] = None
    ) -> GatewayOrder:
        if self.fail_create:
            raise UpstreamGatewayError(
                "Error during payment gateway order creation", cause="connection reset by gateway"
            )
        order = GatewayOrder(
            id=f"order_test{len(self.created) + 1:04d}",
            amount=amount,
            currency=currency,
            receipt=receipt,
            status="created",
        )
        self.created.append((order, notes or {}))
        return order

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        if self.fail_fetch:
            raise UpstreamGatewayError("Error during payment gateway payment fetch", cause="timeout")
        return {
            "id": payment_id,
            "status": "captured",
            "method": "upi",
            "amount": 120000,
            "currency": "INR",
            "vpa": "asha@upi",
        }

    async def capture_payment(self, payment_id: str, amount: int, currency: str) -> dict[str, Any]:
        return {"id": payment_id, "status": "captured", "method": "card", "amount": amount, "currency": currency}

    async def refund_payment(
        self, payment_id: str, amount: Optional[int] = None, notes: Optional[dict[str, str]] = None
    ) -> dict[str, Any]:
        return {"id": "rfnd_test0001", "status": "processed", "amount": amount or 120000, "currency": "INR"}


def sign(gateway_order_id: str, gateway_payment_id: str) -> str:
    """Signature the gateway would attach to a payment."""
    return generate_payment_signature(GATEWAY_SECRET, gateway_order_id, gateway_payment_id)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        razorpay_key_id=GATEWAY_KEY_ID,
        razorpay_key_secret=GATEWAY_SECRET,
        admin_api_key=ADMIN_KEY,
        rate_limit_requests=1000,
        rate_limit_payment_requests=1000,
        environment="development",
        log_format="text",
    )


@pytest.fixture
async def store(settings: Settings) -> MongoDB:
    store = MongoDB(settings)
    store.db = AsyncMongoMockClient()[settings.mongodb_database]
    await store.create_indexes()
    return store


@pytest.fixture
async def products(store: MongoDB) -> dict[str, ProductInDB]:
    catalog = [
        ProductInDB(productId="P1", name="Organic Honey", price=250, stock=10, image="honey.jpg"),
        ProductInDB(productId="P2", name="Green Tea", price=600, stock=5, image="tea.jpg"),
        ProductInDB(productId="P3", name="Soap Bar", price=499.99, stock=3),
        ProductInDB(productId="RETIRED", name="Old Candle", price=100, stock=50, isActive=False),
    ]
    await store.seed_products(catalog)
    return {product.productId: product for product in catalog}


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def checkout_service(store: MongoDB, gateway: FakeGateway, settings: Settings) -> CheckoutService:
    return CheckoutService(store, gateway, settings)


@pytest.fixture
def payment_service(store: MongoDB, gateway: FakeGateway, settings: Settings) -> PaymentService:
    return PaymentService(store, gateway, settings)


@pytest.fixture
def order_service(store: MongoDB) -> OrderService:
    return OrderService(store)


@pytest.fixture
def order_factory(store: MongoDB):
    """Persist an order directly, bypassing checkout."""

    async def make(
        items: Optional[list[tuple[str, int, float]]] = None,
        method: PaymentMethod = PaymentMethod.GATEWAY,
        owner: Optional[str] = None,
        gateway_order_id: Optional[str] = None,
    ) -> OrderInDB:
        items = items or [("P1", 2, 250.0)]
        line_items = [
            LineItem(productId=product_id, name=product_id, price=price, quantity=quantity)
            for product_id, quantity, price in items
        ]
        subtotal = sum(item.price * item.quantity for item in line_items)
        return await store.create_order(
            OrderInDB(
                orderId=generate_uuid(),
                owner=owner,
                items=line_items,
                shippingInfo=ShippingInfo(**SHIPPING),
                paymentInfo=PaymentInfo(method=method, gatewayOrderId=gateway_order_id),
                subtotal=subtotal,
                shippingCost=0,
                totalAmount=subtotal,
            )
        )

    return make


@pytest.fixture
async def client(settings: Settings, store: MongoDB, gateway: FakeGateway):
    app = create_app(settings, store=store, gateway=gateway)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
