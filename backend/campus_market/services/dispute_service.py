from __future__ import annotations

import json
import logging

from campus_market.errors import (
    Conflict,
    DomainError,
    Forbidden,
    Frozen,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from campus_market.extensions import db
from campus_market.models import Dispute, DisputeMessage, Order, User
from campus_market.services.order_state_service import force_cancel
from campus_market.utils.clock import utcnow
from campus_market.utils.events import log_event
from campus_market.utils.locking import lock_row

logger = logging.getLogger(__name__)

REASON_MAX = 5000
MESSAGE_MIN = 10
MESSAGE_MAX = 5000


class DisputeStatus:
    OPEN = "open"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    CLOSED = "closed"

    ACTIVE = Dispute.ACTIVE_STATUSES
    FINAL = (RESOLVED, CLOSED)


def _clean_text(value) -> str:
    return str(value or "").replace("\x00", "").strip()


def _participant_role(dispute_or_order, actor: User | None) -> str | None:
    if actor is None:
        return None
    if int(actor.id) == int(dispute_or_order.buyer_id):
        return "buyer"
    if int(actor.id) == int(dispute_or_order.seller_id):
        return "seller"
    if actor.is_admin:
        return "admin"
    return None


def _reject(event_type: str, dispute_id, actor: User | None, error: DomainError) -> None:
    log_event(
        event_type,
        actor_user_id=int(actor.id) if actor is not None else None,
        subject_type="dispute",
        subject_id=dispute_id,
        severity="WARN",
        metadata={"error": error.code, "message": error.message},
        commit=True,
    )


def get_dispute(dispute_id: int, actor: User, *, include_deleted: bool = False) -> Dispute:
    dispute = db.session.get(Dispute, int(dispute_id))
    if dispute is None or (dispute.is_deleted and not (include_deleted and actor.is_admin)):
        raise NotFound("Dispute not found")
    if _participant_role(dispute, actor) is None:
        raise Forbidden("Not authorized to view this dispute")
    return dispute


def open_dispute(order_id: int, reason: str, actor: User) -> Dispute:
    """Open a dispute on an order, freezing its state machine until resolved.

    The order's status is left untouched; the active dispute itself is what
    blocks confirm, cancel and admin overrides.
    """
    text = _clean_text(reason)
    if not text:
        raise ValidationError("Reason is required", field="reason")
    if len(text) > REASON_MAX:
        raise ValidationError(f"Reason must be at most {REASON_MAX} characters", field="reason")
    try:
        order = lock_row(Order, order_id)
        if order is None or order.is_deleted:
            raise NotFound("Order not found")
        role = None
        if actor is not None and int(actor.id) == int(order.buyer_id):
            role = "buyer"
        elif actor is not None and int(actor.id) == int(order.seller_id):
            role = "seller"
        if role is None:
            raise Forbidden("Only the buyer or seller can open a dispute")
        existing = Dispute.current_for_order(int(order.id))
        if existing is not None:
            raise Conflict("A dispute already exists for this order", dispute_id=int(existing.id))

        dispute = Dispute(
            order_id=int(order.id),
            buyer_id=int(order.buyer_id),
            seller_id=int(order.seller_id),
            product_ids_json=json.dumps(order.product_ids()),
            reason=text,
            status=DisputeStatus.OPEN,
        )
        dispute.messages.append(DisputeMessage(sender_id=int(actor.id), sender_role=role, body=text))
        db.session.add(dispute)
        db.session.flush()
        order.dispute_id = int(dispute.id)
        log_event(
            "dispute_opened",
            actor_user_id=int(actor.id),
            subject_type="dispute",
            subject_id=int(dispute.id),
            metadata={"order_id": int(order.id), "role": role},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("dispute_opened dispute_id=%s order_id=%s role=%s", dispute.id, order.id, role)
    return dispute


def _load_for_update(dispute_id: int) -> tuple[Dispute, Order]:
    dispute = db.session.get(Dispute, int(dispute_id))
    if dispute is None or dispute.is_deleted:
        raise NotFound("Dispute not found")
    order = lock_row(Order, dispute.order_id)
    db.session.refresh(dispute)
    if order is None or order.is_deleted:
        raise Frozen("The order for this dispute has been deleted", dispute_id=int(dispute.id))
    return dispute, order


def add_dispute_message(dispute_id: int, text: str, actor: User) -> Dispute:
    body = _clean_text(text)
    if len(body) < MESSAGE_MIN or len(body) > MESSAGE_MAX:
        raise ValidationError(
            f"Message must be between {MESSAGE_MIN} and {MESSAGE_MAX} characters",
            field="message",
        )
    try:
        dispute, _order = _load_for_update(dispute_id)
        role = _participant_role(dispute, actor)
        if role is None:
            raise Forbidden("Not authorized to message on this dispute")
        if dispute.status in DisputeStatus.FINAL:
            raise Frozen(f"Dispute is {dispute.status}", dispute_id=int(dispute.id))
        dispute.messages.append(DisputeMessage(sender_id=int(actor.id), sender_role=role, body=body))
        if role == "admin" and dispute.status == DisputeStatus.OPEN:
            dispute.status = DisputeStatus.UNDER_REVIEW
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return dispute


def resolve_dispute(dispute_id: int, resolution: str, actor: User) -> Dispute:
    """Settle a dispute and cancel its order, releasing the reserved stock."""
    text = _clean_text(resolution)
    try:
        if actor is None or not actor.is_admin:
            raise Forbidden("Admin access required")
        if not text:
            raise ValidationError("Resolution is required", field="resolution")
        if len(text) > MESSAGE_MAX:
            raise ValidationError(f"Resolution must be at most {MESSAGE_MAX} characters", field="resolution")
        dispute, order = _load_for_update(dispute_id)
        if dispute.status in DisputeStatus.FINAL:
            raise InvalidTransition(f"Dispute is already {dispute.status}", status=dispute.status)

        dispute.status = DisputeStatus.RESOLVED
        dispute.resolution = text
        dispute.resolved_by = int(actor.id)
        dispute.resolved_at = utcnow()
        dispute.messages.append(
            DisputeMessage(sender_id=int(actor.id), sender_role="admin", body=f"Dispute resolved: {text}")
        )
        cancelled = force_cancel(order, actor=actor, event="dispute_resolved", reason=text[:240])
        log_event(
            "dispute_resolved",
            actor_user_id=int(actor.id),
            subject_type="dispute",
            subject_id=int(dispute.id),
            metadata={"order_id": int(order.id), "order_cancelled": cancelled},
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        _reject("dispute_resolve_rejected", dispute_id, actor, e)
        raise
    except Exception:
        db.session.rollback()
        raise
    logger.info("dispute_resolved dispute_id=%s order_id=%s", dispute.id, order.id)
    return dispute


def close_dispute(dispute_id: int, actor: User) -> Dispute:
    try:
        if actor is None or not actor.is_admin:
            raise Forbidden("Admin access required")
        dispute, _order = _load_for_update(dispute_id)
        if dispute.status in DisputeStatus.FINAL:
            raise InvalidTransition(f"Dispute is already {dispute.status}", status=dispute.status)
        dispute.status = DisputeStatus.CLOSED
        log_event(
            "dispute_closed",
            actor_user_id=int(actor.id),
            subject_type="dispute",
            subject_id=int(dispute.id),
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        _reject("dispute_close_rejected", dispute_id, actor, e)
        raise
    except Exception:
        db.session.rollback()
        raise
    return dispute


def delete_dispute(dispute_id: int, actor: User) -> Dispute:
    try:
        if actor is None or not actor.is_admin:
            raise Forbidden("Admin access required")
        dispute = db.session.get(Dispute, int(dispute_id))
        if dispute is None:
            raise NotFound("Dispute not found")
        if dispute.is_deleted:
            raise InvalidState("Dispute is already deleted")
        dispute.is_deleted = True
        dispute.deleted_at = utcnow()
        dispute.deleted_by = int(actor.id)
        order = lock_row(Order, dispute.order_id)
        if order is not None and order.dispute_id == dispute.id:
            order.dispute_id = None
        log_event(
            "dispute_deleted",
            actor_user_id=int(actor.id),
            subject_type="dispute",
            subject_id=int(dispute.id),
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        _reject("dispute_delete_rejected", dispute_id, actor, e)
        raise
    except Exception:
        db.session.rollback()
        raise
    return dispute


def restore_dispute(dispute_id: int, actor: User) -> Dispute:
    try:
        if actor is None or not actor.is_admin:
            raise Forbidden("Admin access required")
        dispute = db.session.get(Dispute, int(dispute_id))
        if dispute is None:
            raise NotFound("Dispute not found")
        if not dispute.is_deleted:
            raise InvalidState("Dispute is not deleted")
        order = lock_row(Order, dispute.order_id)
        other = Dispute.current_for_order(int(dispute.order_id))
        if other is not None and int(other.id) != int(dispute.id):
            raise Conflict("Another dispute already exists for this order", dispute_id=int(other.id))
        dispute.is_deleted = False
        dispute.deleted_at = None
        dispute.deleted_by = None
        if order is not None:
            order.dispute_id = int(dispute.id)
        log_event(
            "dispute_restored",
            actor_user_id=int(actor.id),
            subject_type="dispute",
            subject_id=int(dispute.id),
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        _reject("dispute_restore_rejected", dispute_id, actor, e)
        raise
    except Exception:
        db.session.rollback()
        raise
    return dispute
