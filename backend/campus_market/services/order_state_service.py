from __future__ import annotations

import json
import logging

from campus_market.errors import (
    AlreadyConfirmed,
    DomainError,
    Forbidden,
    Frozen,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from campus_market.extensions import db
from campus_market.models import Dispute, Order, OrderTransition, User
from campus_market.services.inventory_service import assert_available, lock_products
from campus_market.utils.events import log_event
from campus_market.utils.locking import lock_row

logger = logging.getLogger(__name__)


class OrderStatus:
    WAITING_TO_MEET = "waiting_to_meet"
    MET_AND_EXCHANGED = "met_and_exchanged"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"

    ALL = (WAITING_TO_MEET, MET_AND_EXCHANGED, CANCELLED, DISPUTED)

    # Admin override graph. Buyer/seller paths are narrower and checked inline.
    ALLOWED = {
        WAITING_TO_MEET: {WAITING_TO_MEET, MET_AND_EXCHANGED, CANCELLED, DISPUTED},
        MET_AND_EXCHANGED: {MET_AND_EXCHANGED, DISPUTED},
        CANCELLED: {CANCELLED, WAITING_TO_MEET, MET_AND_EXCHANGED, DISPUTED},
        DISPUTED: {DISPUTED, WAITING_TO_MEET, MET_AND_EXCHANGED, CANCELLED},
    }


CONFIRM_SIDES = ("buyer", "seller")


def _actor_type(order: Order, actor: User | None) -> str:
    if actor is None:
        return "system"
    if actor.is_admin:
        return "admin"
    if int(actor.id) == int(order.buyer_id):
        return "buyer"
    if int(actor.id) == int(order.seller_id):
        return "seller"
    return "user"


def record_transition(
    order: Order,
    event: str,
    from_status: str,
    to_status: str,
    *,
    actor: User | None = None,
    reason: str = "",
    metadata: dict | None = None,
) -> OrderTransition:
    row = OrderTransition(
        order_id=int(order.id),
        event=(event or "")[:40],
        from_status=(from_status or "")[:24],
        to_status=(to_status or "")[:24],
        actor_type=_actor_type(order, actor),
        actor_id=int(actor.id) if actor is not None else None,
        reason=(reason or "")[:240],
        metadata_json=json.dumps(metadata or {})[:4000],
    )
    db.session.add(row)
    return row


def load_order_for_update(order_id: int) -> Order:
    order = lock_row(Order, order_id)
    if order is None or order.is_deleted:
        raise NotFound("Order not found")
    return order


def assert_not_frozen(order: Order) -> None:
    if Dispute.active_for_order(int(order.id)) is not None:
        raise Frozen("Order is locked while a dispute is open", order_id=int(order.id))


def force_cancel(order: Order, *, actor: User | None, event: str, reason: str = "") -> bool:
    """Cancel an already-locked order inside the caller's transaction.

    Returns False when the order was already cancelled. Used by dispute
    resolution and refunds; neither path is subject to the dispute freeze.
    """
    current = order.status or OrderStatus.WAITING_TO_MEET
    if current == OrderStatus.CANCELLED:
        return False
    order.status = OrderStatus.CANCELLED
    record_transition(order, event, current, OrderStatus.CANCELLED, actor=actor, reason=reason)
    return True


def confirm(order_id: int, side: str, actor: User) -> Order:
    """Record one party's meetup confirmation.

    The order advances to ``met_and_exchanged`` only once both flags are set,
    judged from the row as re-read after this side's write.
    """
    side = (side or "").strip().lower()
    if side not in CONFIRM_SIDES:
        raise ValidationError("side must be buyer or seller")
    try:
        order = load_order_for_update(order_id)
        party_id = order.buyer_id if side == "buyer" else order.seller_id
        if actor is None or int(actor.id) != int(party_id):
            raise Forbidden(f"Only the {side} can confirm this side of the exchange")

        assert_not_frozen(order)
        flag = f"{side}_confirmed"
        if bool(getattr(order, flag)):
            raise AlreadyConfirmed(f"{side.capitalize()} has already confirmed this order")
        if order.status != OrderStatus.WAITING_TO_MEET:
            raise Frozen(f"Order is {order.status}", order_id=int(order.id))

        setattr(order, flag, True)
        record_transition(
            order,
            flag,
            OrderStatus.WAITING_TO_MEET,
            OrderStatus.WAITING_TO_MEET,
            actor=actor,
        )
        db.session.flush()
        db.session.refresh(order)

        if order.buyer_confirmed and order.seller_confirmed and order.status == OrderStatus.WAITING_TO_MEET:
            order.status = OrderStatus.MET_AND_EXCHANGED
            record_transition(
                order,
                "met_and_exchanged",
                OrderStatus.WAITING_TO_MEET,
                OrderStatus.MET_AND_EXCHANGED,
                actor=actor,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("order_confirmed order_id=%s side=%s status=%s", order.id, side, order.status)
    return order


def cancel_order(order_id: int, actor: User) -> Order:
    try:
        order = load_order_for_update(order_id)
        if actor is None or not (
            actor.is_admin or int(actor.id) in (int(order.buyer_id), int(order.seller_id))
        ):
            raise Forbidden("Not authorized to cancel this order")
        assert_not_frozen(order)
        if order.status != OrderStatus.WAITING_TO_MEET:
            raise InvalidTransition(
                f"Cannot cancel an order that is {order.status}",
                from_status=order.status,
                to_status=OrderStatus.CANCELLED,
            )
        order.status = OrderStatus.CANCELLED
        record_transition(order, "cancelled", OrderStatus.WAITING_TO_MEET, OrderStatus.CANCELLED, actor=actor)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("order_cancelled order_id=%s actor_id=%s", order.id, actor.id)
    return order


def _reserve_again(order: Order) -> None:
    wanted: dict[int, int] = {}
    for item in order.items:
        wanted[int(item.product_id)] = wanted.get(int(item.product_id), 0) + int(item.quantity or 0)
    products = lock_products(wanted.keys())
    for product_id in sorted(wanted):
        product = products.get(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found")
        assert_available(product, wanted[product_id], exclude_order_id=int(order.id))


def set_order_status(order_id: int, status: str, actor: User, *, reason: str = "") -> Order:
    """Administrative override of ``order.status``.

    Bringing a cancelled order back re-validates stock, since its
    reservation was released when it was cancelled.
    """
    target = (status or "").strip().lower()
    try:
        if actor is None or not actor.is_admin:
            raise Forbidden("Admin access required")
        if target not in OrderStatus.ALL:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(OrderStatus.ALL)}",
                status=target,
            )
        order = lock_row(Order, order_id)
        if order is None:
            raise NotFound("Order not found")
        if order.is_deleted:
            raise InvalidState("Order is deleted", order_id=int(order.id))
        assert_not_frozen(order)

        current = order.status or OrderStatus.WAITING_TO_MEET
        if target not in OrderStatus.ALLOWED.get(current, {current}):
            raise InvalidTransition(
                f"Cannot move order from {current} to {target}",
                from_status=current,
                to_status=target,
            )
        if target == OrderStatus.WAITING_TO_MEET and order.buyer_confirmed and order.seller_confirmed:
            raise InvalidTransition(
                "Both parties have already confirmed this order",
                from_status=current,
                to_status=target,
            )
        if current == target:
            db.session.commit()
            return order

        if current == OrderStatus.CANCELLED:
            _reserve_again(order)

        if target == OrderStatus.MET_AND_EXCHANGED:
            order.buyer_confirmed = True
            order.seller_confirmed = True
        order.status = target
        record_transition(order, "admin_override", current, target, actor=actor, reason=reason)
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        log_event(
            "order_status_override_rejected",
            actor_user_id=int(actor.id) if actor is not None else None,
            subject_type="order",
            subject_id=int(order_id),
            severity="WARN",
            metadata={"requested": target, "error": e.code, "message": e.message},
            commit=True,
        )
        raise
    except Exception:
        db.session.rollback()
        raise
    log_event(
        "order_status_override",
        actor_user_id=int(actor.id),
        subject_type="order",
        subject_id=int(order.id),
        metadata={"from": current, "to": target, "reason": reason},
        commit=True,
    )
    logger.info("order_status_override order_id=%s from=%s to=%s", order.id, current, target)
    return order
