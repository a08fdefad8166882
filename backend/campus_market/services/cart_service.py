from __future__ import annotations

import logging
from decimal import Decimal

from campus_market.errors import (
    InsufficientStock,
    NotFound,
    ProductUnavailable,
    SellerInactive,
    ValidationError,
)
from campus_market.extensions import db
from campus_market.models import Cart, CartItem, Product, User
from campus_market.services.inventory_service import available_quantity
from campus_market.utils.locking import lock_row

logger = logging.getLogger(__name__)


def _parse_quantity(value) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number", field="quantity")
    if qty < 1:
        raise ValidationError("Quantity must be at least 1", field="quantity")
    return qty


def get_cart(user: User) -> Cart:
    cart = Cart.query.filter_by(user_id=int(user.id)).first()
    if cart is None:
        cart = Cart(user_id=int(user.id), total_amount=Decimal("0.00"))
        db.session.add(cart)
        db.session.commit()
    return cart


def _locked_cart(user: User) -> Cart:
    cart = get_cart(user)
    return lock_row(Cart, cart.id)


def _purchasable_product(user: User, product_id) -> Product:
    try:
        pid = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError("product_id is required", field="product_id")
    product = db.session.get(Product, pid)
    if product is None or product.is_deleted:
        raise NotFound("Product not found")
    if (product.status or "available") == "sold":
        raise ProductUnavailable("Product is no longer available", product_id=pid)
    if int(product.seller_id) == int(user.id):
        raise ValidationError("You cannot add your own product to cart", product_id=pid)
    seller = db.session.get(User, int(product.seller_id))
    if seller is None or not seller.is_active_account:
        raise SellerInactive("The seller of this product is no longer active", product_id=pid)
    return product


def _check_stock(product: Product, requested: int) -> None:
    available = available_quantity(product)
    if requested > available:
        raise InsufficientStock(
            int(product.id),
            requested,
            available,
            message=f"Only {available} item(s) available",
        )


def add_item(user: User, product_id, quantity=1) -> Cart:
    qty = _parse_quantity(quantity)
    try:
        product = _purchasable_product(user, product_id)
        cart = _locked_cart(user)
        item = cart.find_item(int(product.id))
        new_qty = qty + (int(item.quantity) if item is not None else 0)
        _check_stock(product, new_qty)
        if item is None:
            item = CartItem(product_id=int(product.id), quantity=new_qty)
            cart.items.append(item)
        item.quantity = new_qty
        item.name = product.name
        item.price = product.price
        item.image = product.image
        cart.recompute_total()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("cart_item_added user_id=%s product_id=%s quantity=%s", user.id, product.id, new_qty)
    return cart


def update_item(user: User, product_id, quantity) -> Cart:
    """Set a line's quantity, refreshing its price snapshot from the product."""
    qty = _parse_quantity(quantity)
    try:
        cart = _locked_cart(user)
        item = cart.find_item(int(product_id))
        if item is None:
            raise NotFound("Item not found in cart")
        product = _purchasable_product(user, product_id)
        _check_stock(product, qty)
        item.quantity = qty
        item.name = product.name
        item.price = product.price
        item.image = product.image
        cart.recompute_total()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return cart


def remove_item(user: User, product_id) -> Cart:
    try:
        cart = _locked_cart(user)
        item = cart.find_item(int(product_id))
        if item is None:
            raise NotFound("Item not found in cart")
        cart.items.remove(item)
        cart.recompute_total()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return cart


def clear_cart(user: User) -> Cart:
    try:
        cart = _locked_cart(user)
        for item in list(cart.items):
            cart.items.remove(item)
        cart.total_amount = Decimal("0.00")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return cart
