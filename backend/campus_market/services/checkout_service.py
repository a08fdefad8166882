from __future__ import annotations

import json
import logging
import secrets
import string
import time
from decimal import Decimal

from flask import current_app

from campus_market.errors import (
    EmptyCart,
    InsufficientStock,
    ProductUnavailable,
    SellerInactive,
    ValidationError,
)
from campus_market.extensions import db
from campus_market.integrations.payments import CardDetails, PaymentsProvider, build_payments_provider
from campus_market.models import Cart, Order, OrderItem, Payment, User
from campus_market.services.inventory_service import available_quantity, lock_products
from campus_market.services.order_state_service import OrderStatus, record_transition
from campus_market.utils.clock import utcnow
from campus_market.utils.events import log_event
from campus_market.utils.locking import lock_row
from campus_market.utils.money import line_total

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")
PAYMENT_METHODS = ("credit_card", "debit_card")

_ORDER_ALPHABET = string.ascii_uppercase + string.digits


def new_order_number() -> str:
    suffix = "".join(secrets.choice(_ORDER_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def _clean_address(raw, label: str) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"{label} address is required", field=label)
    cleaned = {}
    for key in ADDRESS_FIELDS:
        value = str(raw.get(key) or "").strip()
        if key != "state" and not value:
            raise ValidationError(f"{label} address {key} is required", field=f"{label}.{key}")
        cleaned[key] = value[:200]
    return cleaned


def _currency() -> str:
    try:
        return (current_app.config.get("ORDER_CURRENCY") or "USD").strip().upper()[:8]
    except RuntimeError:
        return "USD"


def create_order(
    buyer: User,
    shipping_address: dict,
    billing_address: dict,
    card: dict | CardDetails,
    *,
    payment_method: str = "credit_card",
    provider: PaymentsProvider | None = None,
) -> Order:
    """Turn the buyer's cart into a paid order in one transaction.

    Lock order is cart first, then products by ascending id. Stock is
    recomputed under those locks, so of two buyers racing for the last unit
    exactly one commits. Any failure leaves no order, no payment and the
    cart as it was.
    """
    shipping = _clean_address(shipping_address, "shipping")
    billing = _clean_address(billing_address, "billing")
    card_details = card if isinstance(card, CardDetails) else CardDetails.from_payload(card)
    method = (payment_method or "credit_card").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unsupported payment method: {method}", field="payment_method")
    provider = provider or build_payments_provider("mock")

    try:
        cart_row = Cart.query.filter_by(user_id=int(buyer.id)).first()
        cart = lock_row(Cart, cart_row.id) if cart_row is not None else None
        if cart is None or not cart.items:
            raise EmptyCart()

        wanted: dict[int, int] = {}
        for item in cart.items:
            wanted[int(item.product_id)] = wanted.get(int(item.product_id), 0) + int(item.quantity or 0)
        products = lock_products(wanted.keys())

        for product_id in sorted(wanted):
            product = products.get(product_id)
            if product is None or product.is_deleted or (product.status or "available") == "sold":
                raise ProductUnavailable(f"Product {product_id} is no longer available", product_id=product_id)
            seller = db.session.get(User, int(product.seller_id))
            if seller is None or not seller.is_active_account:
                raise SellerInactive(
                    f"The seller of {product.name} is no longer active",
                    product_id=product_id,
                )
            if int(product.seller_id) == int(buyer.id):
                raise ValidationError("You cannot buy your own product", product_id=product_id)

        for product_id in sorted(wanted):
            product = products[product_id]
            available = available_quantity(product)
            if wanted[product_id] > available:
                raise InsufficientStock(
                    product_id,
                    wanted[product_id],
                    available,
                    message=f"Product {product.name} only has {available} available",
                )

        first_product = products[int(cart.items[0].product_id)]
        order = Order(
            order_number=new_order_number(),
            buyer_id=int(buyer.id),
            seller_id=int(first_product.seller_id),
            currency=_currency(),
            status=OrderStatus.WAITING_TO_MEET,
            buyer_confirmed=False,
            seller_confirmed=False,
            shipping_address_json=json.dumps(shipping),
        )
        total = Decimal("0.00")
        for cart_item in cart.items:
            product = products[int(cart_item.product_id)]
            # Current product data, not the cart snapshot, is what gets sold.
            order.items.append(
                OrderItem(
                    product_id=int(product.id),
                    seller_id=int(product.seller_id),
                    name=product.name,
                    unit_price=product.price,
                    image=product.image,
                    quantity=int(cart_item.quantity),
                )
            )
            total += line_total(product.price, cart_item.quantity)
        order.total_amount = total
        db.session.add(order)
        db.session.flush()
        record_transition(order, "created", "", OrderStatus.WAITING_TO_MEET, actor=buyer)

        charge = provider.charge(
            amount=total,
            currency=order.currency,
            card=card_details,
            reference=order.order_number,
        )
        payment = Payment(
            order_id=int(order.id),
            user_id=int(buyer.id),
            amount=total,
            currency=order.currency,
            payment_method=method,
            provider=charge.provider,
            status=charge.status,
            transaction_id=charge.transaction_id,
            card_last4=card_details.last4,
            card_holder_name=card_details.holder_name,
            card_expiry=card_details.expiry or None,
            billing_address_json=json.dumps(billing),
            paid_at=utcnow(),
        )
        db.session.add(payment)

        for cart_item in list(cart.items):
            cart.items.remove(cart_item)
        cart.total_amount = Decimal("0.00")

        log_event(
            "order_created",
            actor_user_id=int(buyer.id),
            subject_type="order",
            subject_id=int(order.id),
            metadata={"order_number": order.order_number, "total": total, "items": len(order.items)},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "order_created order_id=%s order_number=%s buyer_id=%s total=%s",
        order.id,
        order.order_number,
        buyer.id,
        order.total_amount,
    )
    return order
