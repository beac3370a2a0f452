"""Checkout service: cart revalidation, order creation and payment initiation."""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from app.config import Settings, get_settings
from app.database.mongodb import MongoDB
from app.exceptions import (
    InsufficientStock,
    InvalidInput,
    ProductUnavailable,
    TotalMismatch,
)
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
from app.models.request import CartItem, CheckoutRequest, CheckoutResponse
from app.models.state import Role, ensure_order_transition
from app.services.gateway import PaymentGateway
from app.utils.helpers import generate_uuid, round_money, to_minor_units

logger = logging.getLogger(__name__)

REQUIRED_SHIPPING_FIELDS = ("fullName", "email", "phone", "address", "city", "state", "pincode")


class CheckoutService:
    """Turns a client cart into a persisted order.

    Prices, names and images always come from the catalog. The client total
    is only compared against the server total, never stored.
    """

    def __init__(
        self,
        store: MongoDB,
        gateway: PaymentGateway,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.settings = settings or get_settings()

    def shipping_cost(self, subtotal: float) -> float:
        """Flat fee below the free-shipping threshold, free at or above it."""
        if subtotal >= self.settings.free_shipping_threshold:
            return 0.0
        return self.settings.flat_shipping_fee

    def within_tolerance(self, calculated: float, submitted: float) -> bool:
        """Check the submitted total against the calculated one in exact decimal arithmetic."""
        difference = abs(Decimal(str(calculated)) - Decimal(str(submitted)))
        return difference <= Decimal(str(self.settings.total_tolerance))

    @staticmethod
    def _validate_request(request: CheckoutRequest) -> tuple[ShippingInfo, PaymentMethod, float]:
        if not request.items:
            raise InvalidInput("No items in cart")

        if not request.shippingInfo or not request.paymentMethod or request.totalAmount is None:
            raise InvalidInput("Missing required fields")

        for field in REQUIRED_SHIPPING_FIELDS:
            value = request.shippingInfo.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidInput(f"{field} is required")

        try:
            shipping_info = ShippingInfo(**request.shippingInfo)
        except ValidationError as e:
            errors = e.errors()
            field = errors[0]["loc"][0] if errors and errors[0]["loc"] else "shippingInfo"
            raise InvalidInput(f"Invalid {field}", details={"field": field}) from e

        try:
            payment_method = PaymentMethod(request.paymentMethod)
        except ValueError as e:
            raise InvalidInput(f"Unsupported payment method: {request.paymentMethod}") from e

        for item in request.items:
            if item.quantity < 1:
                raise InvalidInput(f"Invalid quantity for product {item.productId}")

        return shipping_info, payment_method, request.totalAmount

    async def price_items(self, items: list[CartItem]) -> tuple[list[LineItem], float]:
        """Snapshot each cart line from the catalog and sum the subtotal.

        Raises:
            ProductUnavailable: product missing or inactive.
            InsufficientStock: not enough stock for the requested quantity.
        """
        line_items: list[LineItem] = []
        subtotal = 0.0

        for item in items:
            product = await self.store.find_product(item.productId)

            if not product or not product.isActive:
                raise ProductUnavailable(
                    f"Product {item.name or item.productId} is not available",
                    details={"productId": item.productId},
                )

            if product.stock < item.quantity:
                raise InsufficientStock(product.productId, product.name, product.stock)

            line_items.append(
                LineItem(
                    productId=product.productId,
                    name=product.name,
                    price=product.price,
                    quantity=item.quantity,
                    image=product.image,
                )
            )
            subtotal += product.price * item.quantity

        return line_items, round_money(subtotal)

    async def checkout(self, request: CheckoutRequest, owner: Optional[str] = None) -> CheckoutResponse:
        """Validate the cart, persist an order and start payment."""
        shipping_info, payment_method, submitted_total = self._validate_request(request)

        line_items, subtotal = await self.price_items(request.items)
        shipping_cost = self.shipping_cost(subtotal)
        total = round_money(subtotal + shipping_cost)

        if not self.within_tolerance(total, submitted_total):
            logger.warning(
                "Checkout total mismatch: submitted %.2f, calculated %.2f",
                submitted_total,
                total,
            )
            raise TotalMismatch(
                "Invalid total amount",
                details={"calculatedTotal": total},
            )

        order = await self.store.create_order(
            OrderInDB(
                orderId=generate_uuid(),
                owner=owner,
                items=line_items,
                shippingInfo=shipping_info,
                paymentInfo=PaymentInfo(method=payment_method, status=PaymentStatus.PENDING),
                subtotal=subtotal,
                shippingCost=shipping_cost,
                totalAmount=total,
                currency=self.settings.currency,
                orderStatus=OrderStatus.PENDING,
                statusHistory=[
                    StatusChange(status=OrderStatus.PENDING, role=Role.SYSTEM.value, trigger="checkout")
                ],
            )
        )
        logger.info(
            "Order %s created (%s, %.2f %s)",
            order.orderNumber,
            payment_method.value,
            total,
            order.currency,
            extra={"orderId": order.orderId, "orderNumber": order.orderNumber},
        )

        if payment_method == PaymentMethod.GATEWAY:
            return await self._start_gateway_payment(order)
        return await self._confirm_cash_on_delivery(order)

    async def _start_gateway_payment(self, order: OrderInDB) -> CheckoutResponse:
        # A gateway failure leaves the order pending without a gateway id
        gateway_order = await self.gateway.create_order(
            amount=to_minor_units(order.totalAmount),
            currency=order.currency,
            receipt=order.orderNumber,
            notes={"orderId": order.orderId, "customerEmail": order.shippingInfo.email},
        )

        order.paymentInfo.gatewayOrderId = gateway_order.id
        await self.store.update_order(order)

        return CheckoutResponse(
            orderId=order.orderId,
            orderNumber=order.orderNumber,
            gatewayOrderId=gateway_order.id,
            amount=gateway_order.amount,
            currency=gateway_order.currency,
            key=self.gateway.key_id,
        )

    async def _confirm_cash_on_delivery(self, order: OrderInDB) -> CheckoutResponse:
        ensure_order_transition(order.orderStatus, OrderStatus.CONFIRMED, Role.SYSTEM)

        try:
            await self.store.commit_order_stock(order)
        except InsufficientStock:
            # Lost a race for the last units after validation
            await self.store.transition_order(
                order.orderId,
                OrderStatus.PENDING,
                {"orderStatus": OrderStatus.CANCELLED},
                history=StatusChange(
                    status=OrderStatus.CANCELLED, role=Role.SYSTEM.value, trigger="stock_unavailable"
                ),
            )
            raise

        confirmed = await self.store.transition_order(
            order.orderId,
            OrderStatus.PENDING,
            {"orderStatus": OrderStatus.CONFIRMED},
            history=StatusChange(
                status=OrderStatus.CONFIRMED, role=Role.SYSTEM.value, trigger="cash_on_delivery"
            ),
        )
        order = confirmed or order
        logger.info(
            "COD order %s confirmed",
            order.orderNumber,
            extra={"orderId": order.orderId, "orderNumber": order.orderNumber},
        )

        return CheckoutResponse(
            orderId=order.orderId,
            orderNumber=order.orderNumber,
            message="Order placed successfully",
        )
