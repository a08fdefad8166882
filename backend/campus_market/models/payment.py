import json

from campus_market.extensions import db
from campus_market.utils.clock import utcnow
from campus_market.utils.money import format_money


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="USD")
    payment_method = db.Column(db.String(24), nullable=False, default="credit_card")
    provider = db.Column(db.String(32), nullable=False, default="mock")
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    transaction_id = db.Column(db.String(64), nullable=True, unique=True)

    # Card fingerprint only: the full number and CVV are never stored.
    card_last4 = db.Column(db.String(4), nullable=True)
    card_holder_name = db.Column(db.String(120), nullable=True)
    card_expiry = db.Column(db.String(8), nullable=True)

    billing_address_json = db.Column(db.Text, nullable=True)

    paid_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    refund_amount = db.Column(db.Numeric(12, 2), nullable=True)
    refund_reason = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True)

    def billing_address(self) -> dict:
        try:
            parsed = json.loads(self.billing_address_json or "{}")
            return parsed if isinstance(parsed, dict) else {}
        except Exception:
            return {}

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_id": int(self.order_id),
            "user_id": int(self.user_id),
            "amount": format_money(self.amount),
            "currency": self.currency or "USD",
            "payment_method": self.payment_method or "credit_card",
            "provider": self.provider or "mock",
            "status": self.status or "completed",
            "transaction_id": self.transaction_id or "",
            "card": {
                "last4": self.card_last4 or "",
                "holder_name": self.card_holder_name or "",
                "expiry": self.card_expiry or "",
            },
            "billing_address": self.billing_address(),
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "refunded_at": self.refunded_at.isoformat() if self.refunded_at else None,
            "refund_amount": format_money(self.refund_amount) if self.refund_amount is not None else None,
            "refund_reason": self.refund_reason or "",
            "is_deleted": bool(self.is_deleted),
        }
