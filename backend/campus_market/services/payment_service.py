from __future__ import annotations

import logging

from campus_market.errors import DomainError, Forbidden, InvalidState, NotFound, ValidationError
from campus_market.extensions import db
from campus_market.integrations.payments import PaymentsProvider, build_payments_provider
from campus_market.models import Order, Payment, User
from campus_market.services.order_state_service import assert_not_frozen, force_cancel
from campus_market.utils.clock import utcnow
from campus_market.utils.events import log_event
from campus_market.utils.locking import lock_row
from campus_market.utils.money import to_money

logger = logging.getLogger(__name__)


def payments_for_order(order_id: int) -> list[Payment]:
    return (
        Payment.query.filter_by(order_id=int(order_id), is_deleted=False)
        .order_by(Payment.id.asc())
        .all()
    )


def refund_payment(
    payment_id: int,
    actor: User,
    *,
    reason: str = "",
    amount=None,
    provider: PaymentsProvider | None = None,
) -> Payment:
    """Refund a completed payment and cancel its order.

    Refusals are audited after the rollback. An order still under an active
    dispute must have the dispute settled first.
    """
    provider = provider or build_payments_provider("mock")
    try:
        if actor is None or not actor.is_admin:
            raise Forbidden("Admin access required")
        payment = db.session.get(Payment, int(payment_id))
        if payment is None or payment.is_deleted:
            raise NotFound("Payment not found")
        order = lock_row(Order, payment.order_id)
        db.session.refresh(payment)
        if payment.status != "completed":
            raise InvalidState(f"Payment is {payment.status}", payment_id=int(payment.id))
        if order is None or order.is_deleted:
            raise InvalidState("Order for this payment is deleted", payment_id=int(payment.id))
        assert_not_frozen(order)

        if amount is None:
            refund_amount = payment.amount
        else:
            try:
                refund_amount = to_money(amount)
            except ValueError:
                raise ValidationError("Refund amount must be a non-negative amount", field="amount")
            if refund_amount <= 0 or refund_amount > payment.amount:
                raise ValidationError("Refund amount must be positive and at most the amount paid", field="amount")

        result = provider.refund(transaction_id=payment.transaction_id or "", amount=refund_amount)
        payment.status = result.status
        payment.refunded_at = utcnow()
        payment.refund_amount = refund_amount
        payment.refund_reason = (reason or "").strip()[:240] or None
        force_cancel(order, actor=actor, event="refunded", reason=payment.refund_reason or "")
        log_event(
            "payment_refunded",
            actor_user_id=int(actor.id),
            subject_type="payment",
            subject_id=int(payment.id),
            metadata={"order_id": int(order.id), "amount": refund_amount, "reason": reason},
        )
        db.session.commit()
    except DomainError as e:
        db.session.rollback()
        log_event(
            "payment_refund_rejected",
            actor_user_id=int(actor.id) if actor is not None else None,
            subject_type="payment",
            subject_id=int(payment_id),
            severity="WARN",
            metadata={"error": e.code, "message": e.message},
            commit=True,
        )
        raise
    except Exception:
        db.session.rollback()
        raise
    logger.info("payment_refunded payment_id=%s order_id=%s amount=%s", payment.id, payment.order_id, refund_amount)
    return payment
