from __future__ import annotations

import logging
import uuid

from campus_market.errors import Conflict, DomainError, Forbidden, InvalidState, NotFound, ValidationError
from campus_market.extensions import db
from campus_market.models import Order, OrderItem, Payment, Product, User
from campus_market.services.inventory_service import assert_available, lock_products
from campus_market.services.order_state_service import OrderStatus
from campus_market.utils.clock import utcnow
from campus_market.utils.events import log_event
from campus_market.utils.locking import lock_row

logger = logging.getLogger(__name__)


def _require_admin(actor: User | None) -> None:
    if actor is None or not actor.is_admin:
        raise Forbidden("Admin access required")


def _stamp(row, *, actor: User, batch: str, at) -> None:
    row.is_deleted = True
    row.deleted_at = at
    row.deleted_by = int(actor.id)
    row.deletion_batch = batch


def _unstamp(row) -> None:
    row.is_deleted = False
    row.deleted_at = None
    row.deleted_by = None
    row.deletion_batch = None


def _assert_stock_for(orders) -> None:
    wanted: dict[int, int] = {}
    for order in orders:
        if order.status == OrderStatus.CANCELLED:
            continue
        for item in order.items:
            wanted[int(item.product_id)] = wanted.get(int(item.product_id), 0) + int(item.quantity or 0)
    if not wanted:
        return
    products = lock_products(wanted.keys())
    for product_id in sorted(wanted):
        product = products.get(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found")
        # Orders being restored are still stamped here, so they are not counted.
        assert_available(product, wanted[product_id])


def _audited(event_type: str, subject_type: str, subject_id, actor: User | None, fn, **metadata):
    """Run ``fn`` as one unit of work and leave an audit row either way.

    A rejected attempt is rolled back first, then recorded on its own so the
    actor and timestamp survive the failure.
    """
    try:
        result = fn()
        log_event(
            event_type,
            actor_user_id=int(actor.id),
            subject_type=subject_type,
            subject_id=subject_id,
            metadata=metadata,
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        log_event(
            f"{event_type}_rejected",
            actor_user_id=int(actor.id) if actor is not None else None,
            subject_type=subject_type,
            subject_id=subject_id,
            severity="WARN",
            metadata=dict(metadata, error=e.code, message=e.message),
            commit=True,
        )
        raise
    except Exception:
        db.session.rollback()
        raise
    logger.info("%s %s_id=%s actor_id=%s", event_type, subject_type, subject_id, actor.id)
    return result


def delete_user(user_id: int, actor: User) -> User:
    """Soft-delete a user and, under the same stamp, their listings and purchases."""

    def run():
        _require_admin(actor)
        user = db.session.get(User, int(user_id))
        if user is None:
            raise NotFound("User not found")
        if int(user.id) == int(actor.id):
            raise ValidationError("Admins cannot delete their own account")
        if user.is_deleted:
            raise InvalidState("User is already deleted")

        batch = uuid.uuid4().hex
        now = utcnow()
        _stamp(user, actor=actor, batch=batch, at=now)
        products = Product.query.filter_by(seller_id=int(user.id), is_deleted=False).all()
        for product in products:
            _stamp(product, actor=actor, batch=batch, at=now)
        orders = Order.query.filter_by(buyer_id=int(user.id), is_deleted=False).all()
        for order in orders:
            _stamp(order, actor=actor, batch=batch, at=now)
        return user

    return _audited("user_deleted", "user", int(user_id), actor, run)


def restore_user(user_id: int, actor: User) -> User:
    """Undo exactly the cascade recorded by ``delete_user``.

    Only products and orders carrying the user's own deletion stamp come
    back; rows deleted separately stay deleted. Restored orders that would
    reserve stock again must still fit in the current listings.
    """

    def run():
        _require_admin(actor)
        user = db.session.get(User, int(user_id))
        if user is None:
            raise NotFound("User not found")
        if not user.is_deleted:
            raise InvalidState("User is not deleted")
        clash = (
            User.query.filter(User.email == user.email, User.is_deleted.is_(False), User.id != user.id)
            .first()
        )
        if clash is not None:
            raise Conflict("Another active account already uses this email", email=user.email)

        deleted_by = user.deleted_by
        batch = user.deletion_batch
        if batch:
            orders = Order.query.filter_by(
                buyer_id=int(user.id), is_deleted=True, deleted_by=deleted_by, deletion_batch=batch
            ).all()
            _assert_stock_for(orders)
            for product in Product.query.filter_by(
                seller_id=int(user.id), is_deleted=True, deleted_by=deleted_by, deletion_batch=batch
            ).all():
                _unstamp(product)
            for order in orders:
                _unstamp(order)
        _unstamp(user)
        return user

    return _audited("user_restored", "user", int(user_id), actor, run)


def delete_product(product_id: int, actor: User) -> Product:
    def run():
        product = lock_row(Product, product_id)
        if product is None:
            raise NotFound("Product not found")
        if actor is None or not (actor.is_admin or int(actor.id) == int(product.seller_id)):
            raise Forbidden("Not authorized to delete this product")
        if product.is_deleted:
            raise InvalidState("Product is already deleted")
        blocking = (
            db.session.query(Order.id)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .filter(OrderItem.product_id == int(product.id))
            .filter(Order.is_deleted.is_(False))
            .filter(Order.status != OrderStatus.CANCELLED)
            .first()
        )
        if blocking is not None:
            raise Conflict(
                "Cannot delete a product that has active orders",
                product_id=int(product.id),
                order_id=int(blocking[0]),
            )
        _stamp(product, actor=actor, batch=uuid.uuid4().hex, at=utcnow())
        return product

    return _audited("product_deleted", "product", int(product_id), actor, run)


def restore_product(product_id: int, actor: User) -> Product:
    def run():
        _require_admin(actor)
        product = lock_row(Product, product_id)
        if product is None:
            raise NotFound("Product not found")
        if not product.is_deleted:
            raise InvalidState("Product is not deleted")
        seller = db.session.get(User, int(product.seller_id))
        if seller is None or seller.is_deleted:
            raise InvalidState("Cannot restore a product whose seller is deleted")
        _unstamp(product)
        return product

    return _audited("product_restored", "product", int(product_id), actor, run)


def delete_order(order_id: int, actor: User) -> Order:
    def run():
        _require_admin(actor)
        order = lock_row(Order, order_id)
        if order is None:
            raise NotFound("Order not found")
        if order.is_deleted:
            raise InvalidState("Order is already deleted")
        _stamp(order, actor=actor, batch=uuid.uuid4().hex, at=utcnow())
        return order

    return _audited("order_deleted", "order", int(order_id), actor, run)


def restore_order(order_id: int, actor: User) -> Order:
    """Bring an order back; if it would reserve stock again, that stock must exist."""

    def run():
        _require_admin(actor)
        order = lock_row(Order, order_id)
        if order is None:
            raise NotFound("Order not found")
        if not order.is_deleted:
            raise InvalidState("Order is not deleted")
        buyer = db.session.get(User, int(order.buyer_id))
        if buyer is None or buyer.is_deleted:
            raise InvalidState("Cannot restore an order whose buyer is deleted")
        _assert_stock_for([order])
        _unstamp(order)
        return order

    return _audited("order_restored", "order", int(order_id), actor, run)


def delete_payment(payment_id: int, actor: User) -> Payment:
    def run():
        _require_admin(actor)
        payment = db.session.get(Payment, int(payment_id))
        if payment is None:
            raise NotFound("Payment not found")
        if payment.is_deleted:
            raise InvalidState("Payment is already deleted")
        payment.is_deleted = True
        payment.deleted_at = utcnow()
        payment.deleted_by = int(actor.id)
        return payment

    return _audited("payment_deleted", "payment", int(payment_id), actor, run)


def restore_payment(payment_id: int, actor: User) -> Payment:
    def run():
        _require_admin(actor)
        payment = db.session.get(Payment, int(payment_id))
        if payment is None:
            raise NotFound("Payment not found")
        if not payment.is_deleted:
            raise InvalidState("Payment is not deleted")
        payer = db.session.get(User, int(payment.user_id))
        if payer is None or payer.is_deleted:
            raise InvalidState("Cannot restore a payment whose user is deleted")
        order = db.session.get(Order, int(payment.order_id))
        if order is None or order.is_deleted:
            raise InvalidState("Cannot restore a payment whose order is deleted")
        payment.is_deleted = False
        payment.deleted_at = None
        payment.deleted_by = None
        return payment

    return _audited("payment_restored", "payment", int(payment_id), actor, run)


def ban_user(user_id: int, actor: User, *, reason: str = "") -> User:
    def run():
        _require_admin(actor)
        user = db.session.get(User, int(user_id))
        if user is None or user.is_deleted:
            raise NotFound("User not found")
        if int(user.id) == int(actor.id):
            raise ValidationError("Admins cannot ban themselves")
        if user.is_banned:
            raise InvalidState("User is already banned")
        user.is_banned = True
        user.banned_at = utcnow()
        user.banned_by = int(actor.id)
        user.ban_reason = (reason or "").strip()[:240] or None
        return user

    return _audited("user_banned", "user", int(user_id), actor, run, reason=reason)


def unban_user(user_id: int, actor: User) -> User:
    def run():
        _require_admin(actor)
        user = db.session.get(User, int(user_id))
        if user is None or user.is_deleted:
            raise NotFound("User not found")
        if not user.is_banned:
            raise InvalidState("User is not banned")
        user.is_banned = False
        user.banned_at = None
        user.banned_by = None
        user.ban_reason = None
        return user

    return _audited("user_unbanned", "user", int(user_id), actor, run)
