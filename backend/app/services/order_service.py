"""Order service for order queries and back-office status changes."""

import logging
import math
from typing import Any, Optional

from app.database.mongodb import MongoDB
from app.exceptions import IllegalTransition, InvalidInput, OrderNotFound
from app.models.order import OrderInDB, OrderStatus, PaymentStatus, StatusChange
from app.models.request import OrderListResponse
from app.models.state import Role, ensure_order_transition

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = frozenset({"createdAt", "updatedAt", "totalAmount", "orderNumber", "orderStatus"})
MAX_PAGE_SIZE = 100


class OrderService:
    """Order lookups and admin-driven status transitions."""

    def __init__(self, store: MongoDB) -> None:
        self.store = store

    async def get_order(self, order_id: str) -> OrderInDB:
        """Get order by ID or raise OrderNotFound."""
        order = await self.store.get_order(order_id)
        if not order:
            raise OrderNotFound("Order not found")
        return order

    async def _paginate(
        self,
        filters: dict[str, Any],
        page: int,
        limit: int,
        sort_by: str = "createdAt",
        descending: bool = True,
    ) -> OrderListResponse:
        if page < 1 or limit < 1:
            raise InvalidInput("page and limit must be positive")
        limit = min(limit, MAX_PAGE_SIZE)

        orders = await self.store.list_orders(
            filters,
            skip=(page - 1) * limit,
            limit=limit,
            sort_by=sort_by,
            descending=descending,
        )
        total = await self.store.count_orders(filters)
        return OrderListResponse(
            orders=orders,
            totalPages=math.ceil(total / limit),
            currentPage=page,
            total=total,
        )

    async def list_orders_for_owner(self, owner: str, page: int = 1, limit: int = 10) -> OrderListResponse:
        """List a user's orders, newest first."""
        return await self._paginate({"owner": owner}, page, limit)

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> OrderListResponse:
        """List all orders with optional status filters."""
        if sort_by not in SORTABLE_FIELDS:
            raise InvalidInput(f"Cannot sort by {sort_by}")

        filters: dict[str, Any] = {}
        if status:
            filters["orderStatus"] = status.value
        if payment_status:
            filters["paymentInfo.status"] = payment_status.value

        return await self._paginate(filters, page, limit, sort_by, descending=sort_order == "desc")

    async def update_status(
        self, order_id: str, target: OrderStatus, role: Role = Role.ADMIN
    ) -> OrderInDB:
        """Move an order to ``target`` if the state machine allows it.

        Cancelling an order that holds committed stock returns the stock to
        the catalog.
        """
        order = await self.get_order(order_id)
        ensure_order_transition(order.orderStatus, target, role)

        updated = await self.store.transition_order(
            order.orderId,
            order.orderStatus,
            {"orderStatus": target},
            history=StatusChange(status=target, role=role.value, trigger="status_update"),
        )
        if updated is None:
            raise IllegalTransition(
                "Order status changed concurrently, reload and retry",
                details={"from": order.orderStatus.value, "to": target.value},
            )

        if target == OrderStatus.CANCELLED and updated.stockCommitted:
            await self.store.release_order_stock(updated)

        logger.info(
            "Order %s moved from %s to %s by %s",
            updated.orderNumber,
            order.orderStatus.value,
            target.value,
            role.value,
            extra={"orderId": updated.orderId, "orderNumber": updated.orderNumber},
        )
        return updated
