"""MongoDB database connection and operations.

Provides the product catalog lookup and the order store used by the checkout
and payment services. Catalog stock is only ever changed through
``commit_stock`` / ``release_stock``.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from app.config import Settings, get_settings
from app.exceptions import InsufficientStock, InternalError
from app.models.order import LineItem, OrderInDB, OrderStatus, StatusChange
from app.models.product import ProductInDB
from app.utils.helpers import format_order_number

logger = logging.getLogger(__name__)

ORDER_NUMBER_COUNTER = "orderNumber"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def to_document(model: BaseModel) -> dict[str, Any]:
    """Dump a model for storage, with enums stored as their plain values."""
    return _plain(model.model_dump())


def _order_from(document: Optional[dict[str, Any]]) -> Optional[OrderInDB]:
    # find_one_and_update returns the full document, including the Mongo _id
    if not document:
        return None
    document.pop("_id", None)
    return OrderInDB(**document)


class MongoDB:
    """MongoDB connection manager."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize MongoDB connection."""
        self.settings = settings or get_settings()
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Connect to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(
                self.settings.mongodb_url,
                maxPoolSize=self.settings.mongodb_max_pool_size,
                minPoolSize=self.settings.mongodb_min_pool_size,
                tz_aware=True,
            )
            self.db = self.client[self.settings.mongodb_database]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Connected to MongoDB: %s", self.settings.mongodb_database)

            await self.create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB: %s", e)
            raise

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")
        self.client = None
        self.db = None

    def _collection(self, name: str) -> AsyncIOMotorCollection:
        if self.db is None:
            raise ConnectionError("Database not connected")
        return self.db[name]

    @property
    def products(self) -> AsyncIOMotorCollection:
        return self._collection(self.settings.mongodb_product_collection)

    @property
    def orders(self) -> AsyncIOMotorCollection:
        return self._collection(self.settings.mongodb_order_collection)

    @property
    def counters(self) -> AsyncIOMotorCollection:
        return self._collection(self.settings.mongodb_counter_collection)

    async def create_indexes(self) -> None:
        """Create database indexes."""
        await self.products.create_index("productId", unique=True, name="productId_unique")
        await self.orders.create_index("orderId", unique=True, name="orderId_unique")
        await self.orders.create_index("orderNumber", unique=True, name="orderNumber_unique")
        await self.orders.create_index(
            "paymentInfo.gatewayOrderId", name="gatewayOrderId_index"
        )
        await self.orders.create_index("owner", name="owner_index")
        await self.orders.create_index("createdAt", name="createdAt_index")
        logger.info("MongoDB indexes created")

    # ── Catalog ────────────────────────────────────────────────────────────

    async def find_product(self, product_id: str) -> Optional[ProductInDB]:
        """Get a catalog entry by product ID."""
        product_data = await self.products.find_one({"productId": product_id}, {"_id": 0})
        if product_data:
            return ProductInDB(**product_data)
        return None

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically take ``quantity`` units if at least that many are in stock.

        Returns False when the product is missing or short of stock; nothing
        is changed in that case.
        """
        result = await self.products.update_one(
            {"productId": product_id, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}, "$set": {"updatedAt": datetime.now(UTC)}},
        )
        return result.modified_count == 1

    async def restore_stock(self, product_id: str, quantity: int) -> None:
        """Put ``quantity`` units back into stock."""
        await self.products.update_one(
            {"productId": product_id},
            {"$inc": {"stock": quantity}, "$set": {"updatedAt": datetime.now(UTC)}},
        )

    async def commit_stock(self, items: list[LineItem]) -> None:
        """Decrement stock for every line item, all or nothing.

        Raises:
            InsufficientStock: an item could not be decremented; items already
                decremented by this call are restored first.
        """
        committed: list[LineItem] = []
        for item in items:
            if await self.decrement_stock(item.productId, item.quantity):
                committed.append(item)
                continue

            await self.release_stock(committed)
            product = await self.find_product(item.productId)
            available = product.stock if product else 0
            logger.warning(
                "Stock commit failed for %s: requested %d, available %d",
                item.productId,
                item.quantity,
                available,
            )
            raise InsufficientStock(item.productId, item.name, available)

        logger.info("Committed stock for %d line items", len(items))

    async def release_stock(self, items: list[LineItem]) -> None:
        """Restore stock for every line item."""
        for item in items:
            await self.restore_stock(item.productId, item.quantity)

    async def commit_order_stock(self, order: OrderInDB) -> bool:
        """Decrement catalog stock for an order at most once.

        The order's ``stockCommitted`` flag is claimed before touching the
        catalog, so concurrent callers cannot both decrement. Returns False if
        the stock was already committed.
        """
        if not await self.mark_stock_committed(order.orderId, True):
            return False

        try:
            await self.commit_stock(order.items)
        except InsufficientStock:
            await self.mark_stock_committed(order.orderId, False)
            raise

        order.stockCommitted = True
        return True

    async def release_order_stock(self, order: OrderInDB) -> bool:
        """Return an order's committed stock to the catalog at most once."""
        if not await self.mark_stock_committed(order.orderId, False):
            return False

        await self.release_stock(order.items)
        order.stockCommitted = False
        logger.info("Released stock for order %s", order.orderNumber)
        return True

    async def seed_products(self, products: list[ProductInDB]) -> int:
        """Insert or refresh catalog entries keyed by product ID."""
        now = datetime.now(UTC)
        for product in products:
            await self.products.update_one(
                {"productId": product.productId},
                {"$set": {**to_document(product), "updatedAt": now}, "$setOnInsert": {"createdAt": now}},
                upsert=True,
            )
        return len(products)

    async def clear_products(self) -> int:
        """Delete every catalog entry."""
        result = await self.products.delete_many({})
        return result.deleted_count

    # ── Orders ─────────────────────────────────────────────────────────────

    async def _next_order_number(self) -> str:
        counter = await self.counters.find_one_and_update(
            {"_id": ORDER_NUMBER_COUNTER},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return format_order_number(counter["seq"])

    async def create_order(self, order: OrderInDB) -> OrderInDB:
        """Persist a new order, assigning its order number."""
        order.orderNumber = await self._next_order_number()
        now = datetime.now(UTC)
        order.createdAt = now
        order.updatedAt = now

        try:
            await self.orders.insert_one(to_document(order))
        except DuplicateKeyError as e:
            logger.error("Duplicate order key for %s: %s", order.orderNumber, e)
            raise InternalError("Failed to create order") from e

        return order

    async def get_order(self, order_id: str) -> Optional[OrderInDB]:
        """Get order by ID."""
        order_data = await self.orders.find_one({"orderId": order_id}, {"_id": 0})
        if order_data:
            return OrderInDB(**order_data)
        return None

    async def find_order_by_gateway_order_id(self, gateway_order_id: str) -> Optional[OrderInDB]:
        """Get the order registered with a gateway order ID."""
        order_data = await self.orders.find_one(
            {"paymentInfo.gatewayOrderId": gateway_order_id}, {"_id": 0}
        )
        if order_data:
            return OrderInDB(**order_data)
        return None

    async def update_order(self, order: OrderInDB) -> OrderInDB:
        """Replace the stored order document."""
        order.updatedAt = datetime.now(UTC)
        result = await self.orders.replace_one({"orderId": order.orderId}, to_document(order))
        if not result.matched_count:
            raise InternalError(f"Order {order.orderId} vanished during update")
        return order

    async def transition_order(
        self,
        order_id: str,
        expected_status: OrderStatus,
        changes: dict[str, Any],
        history: Optional[StatusChange] = None,
    ) -> Optional[OrderInDB]:
        """Apply ``changes`` only if the stored status still equals ``expected_status``.

        Returns the updated order, or None when the order is missing or its
        status has moved on.
        """
        update: dict[str, Any] = {"$set": {**_plain(changes), "updatedAt": datetime.now(UTC)}}
        if history is not None:
            update["$push"] = {"statusHistory": to_document(history)}

        order_data = await self.orders.find_one_and_update(
            {"orderId": order_id, "orderStatus": expected_status.value},
            update,
            return_document=ReturnDocument.AFTER,
        )
        return _order_from(order_data)

    async def update_order_fields(self, order_id: str, changes: dict[str, Any]) -> Optional[OrderInDB]:
        """Set individual fields on an order without a status check."""
        order_data = await self.orders.find_one_and_update(
            {"orderId": order_id},
            {"$set": {**_plain(changes), "updatedAt": datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        return _order_from(order_data)

    async def mark_stock_committed(self, order_id: str, committed: bool = True) -> bool:
        """Flip the order's stock flag; False if it already had that value."""
        result = await self.orders.update_one(
            {"orderId": order_id, "stockCommitted": not committed},
            {"$set": {"stockCommitted": committed, "updatedAt": datetime.now(UTC)}},
        )
        return result.modified_count == 1

    async def list_orders(
        self,
        filters: Optional[dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 20,
        sort_by: str = "createdAt",
        descending: bool = True,
    ) -> list[OrderInDB]:
        """List orders matching ``filters`` with pagination."""
        cursor = (
            self.orders.find(filters or {}, {"_id": 0})
            .sort(sort_by, DESCENDING if descending else ASCENDING)
            .skip(skip)
            .limit(limit)
        )
        orders = await cursor.to_list(length=limit)
        return [OrderInDB(**order) for order in orders]

    async def count_orders(self, filters: Optional[dict[str, Any]] = None) -> int:
        """Count orders matching ``filters``."""
        return await self.orders.count_documents(filters or {})


# Global MongoDB instance
mongodb = MongoDB()
