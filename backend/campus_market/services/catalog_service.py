from __future__ import annotations

import logging

from campus_market.errors import Forbidden, NotFound, ValidationError
from campus_market.extensions import db
from campus_market.models import Product, User
from campus_market.services.inventory_service import assert_can_set_total_quantity
from campus_market.utils.locking import lock_row
from campus_market.utils.money import to_money

logger = logging.getLogger(__name__)

PRODUCT_CONDITIONS = ("new", "like_new", "good", "fair", "poor")
PRODUCT_STATUSES = ("available", "sold")


def _parse_total_quantity(value) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number", field="quantity")
    if qty < 0:
        raise ValidationError("Quantity cannot be negative", field="quantity")
    return qty


def _apply_fields(product: Product, payload: dict) -> None:
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValidationError("Product name is required", field="name")
        product.name = name[:160]
    if "description" in payload:
        product.description = str(payload.get("description") or "").strip()[:5000]
    if "price" in payload:
        try:
            product.price = to_money(payload.get("price"))
        except ValueError:
            raise ValidationError("Price must be a non-negative amount", field="price")
    if "image" in payload:
        product.image = str(payload.get("image") or "").strip()[:1024] or None
    if "campus" in payload:
        product.campus = str(payload.get("campus") or "").strip()[:120] or None
    if "condition" in payload:
        condition = str(payload.get("condition") or "").strip().lower()
        if condition and condition not in PRODUCT_CONDITIONS:
            raise ValidationError(f"Unknown condition: {condition}", field="condition")
        product.condition = condition or None
    if "status" in payload:
        status = str(payload.get("status") or "").strip().lower()
        if status not in PRODUCT_STATUSES:
            raise ValidationError(f"Unknown status: {status}", field="status")
        product.status = status


def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    product = db.session.get(Product, int(product_id))
    if product is None or (product.is_deleted and not include_deleted):
        raise NotFound("Product not found")
    return product


def list_seller_products(seller: User, *, include_deleted: bool = False) -> list[Product]:
    q = Product.query.filter_by(seller_id=int(seller.id))
    if not include_deleted:
        q = q.filter_by(is_deleted=False)
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def create_product(seller: User, payload: dict) -> Product:
    if seller is None or not seller.is_active_account:
        raise Forbidden("Account is not allowed to sell")
    data = payload if isinstance(payload, dict) else {}
    if not str(data.get("name") or "").strip():
        raise ValidationError("Product name is required", field="name")
    if data.get("price") is None:
        raise ValidationError("Price is required", field="price")

    product = Product(seller_id=int(seller.id), status="available")
    _apply_fields(product, data)
    product.total_quantity = _parse_total_quantity(data.get("quantity", data.get("total_quantity", 1)))
    if not product.campus and seller.campus:
        product.campus = seller.campus
    try:
        db.session.add(product)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("product_created product_id=%s seller_id=%s quantity=%s", product.id, seller.id, product.total_quantity)
    return product


def update_product(product_id: int, payload: dict, actor: User) -> Product:
    """Edit a listing. Shrinking stock is checked against live reservations
    while the product row is locked."""
    data = payload if isinstance(payload, dict) else {}
    try:
        product = lock_row(Product, product_id)
        if product is None or product.is_deleted:
            raise NotFound("Product not found")
        if actor is None or not (actor.is_admin or int(actor.id) == int(product.seller_id)):
            raise Forbidden("Not authorized to update this product")
        _apply_fields(product, data)
        raw_qty = data.get("quantity", data.get("total_quantity"))
        if raw_qty is not None:
            new_total = _parse_total_quantity(raw_qty)
            assert_can_set_total_quantity(product, new_total)
            product.total_quantity = new_total
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("product_updated product_id=%s actor_id=%s", product.id, actor.id)
    return product
