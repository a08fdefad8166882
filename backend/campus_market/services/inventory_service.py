from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func

from campus_market.errors import InsufficientStock, ValidationError
from campus_market.extensions import db
from campus_market.models import Order, OrderItem, Product
from campus_market.utils.locking import lock_rows

logger = logging.getLogger(__name__)

RELEASED_STATUSES = ("cancelled",)


@dataclass
class InventoryStats:
    product_id: int
    listed: int
    available: int
    sold: int
    reserved: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "listed": self.listed,
            "available": self.available,
            "sold": self.sold,
            "reserved": self.reserved,
        }


def _active_items_query(product_id: int):
    # Disputed orders keep their reservation; only cancelled or deleted orders release it.
    return (
        db.session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(OrderItem.product_id == int(product_id))
        .filter(Order.is_deleted.is_(False))
        .filter(Order.status.notin_(RELEASED_STATUSES))
    )


def reserved_quantity(product_id: int, *, exclude_order_id: int | None = None) -> int:
    q = _active_items_query(product_id)
    if exclude_order_id is not None:
        q = q.filter(Order.id != int(exclude_order_id))
    return int(q.scalar() or 0)


def available_quantity(product: Product, *, exclude_order_id: int | None = None) -> int:
    """Stock that can still be bought, recomputed from active orders on every call."""
    listed = int(product.total_quantity or 0)
    reserved = reserved_quantity(int(product.id), exclude_order_id=exclude_order_id)
    available = max(0, listed - reserved)
    logger.debug("inventory product=%s listed=%s reserved=%s available=%s", product.id, listed, reserved, available)
    return available


def sold_quantity(product_id: int) -> int:
    q = (
        _active_items_query(product_id)
        .filter(Order.buyer_confirmed.is_(True))
        .filter(Order.seller_confirmed.is_(True))
    )
    return int(q.scalar() or 0)


def inventory_stats(product: Product) -> InventoryStats:
    listed = int(product.total_quantity or 0)
    available = available_quantity(product)
    sold = sold_quantity(int(product.id))
    return InventoryStats(
        product_id=int(product.id),
        listed=listed,
        available=available,
        sold=sold,
        reserved=max(0, listed - available - sold),
    )


def lock_products(product_ids) -> dict[int, Product]:
    return {int(p.id): p for p in lock_rows(Product, product_ids)}


def assert_available(product: Product, requested: int, *, exclude_order_id: int | None = None) -> int:
    available = available_quantity(product, exclude_order_id=exclude_order_id)
    if int(requested) > available:
        raise InsufficientStock(
            int(product.id),
            int(requested),
            available,
            message=f"Product {product.name} only has {available} available",
        )
    return available


def assert_can_set_total_quantity(product: Product, new_total: int) -> None:
    """A seller may never list fewer units than active orders already hold."""
    if int(new_total) < 0:
        raise ValidationError("Quantity cannot be negative")
    if int(new_total) == int(product.total_quantity or 0):
        return
    committed = reserved_quantity(int(product.id))
    if int(new_total) < committed:
        raise ValidationError(
            f"Cannot set inventory to {int(new_total)}. There are {committed} units in active orders. "
            f"Minimum allowed inventory: {committed}",
            product_id=int(product.id),
            requested=int(new_total),
            minimum=committed,
        )
