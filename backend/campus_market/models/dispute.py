import json

from campus_market.extensions import db
from campus_market.utils.clock import utcnow


class Dispute(db.Model):
    __tablename__ = "disputes"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_ids_json = db.Column(db.Text, nullable=True)

    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="open", index=True)

    resolution = db.Column(db.Text, nullable=True)
    resolved_by = db.Column(db.Integer, nullable=True)
    resolved_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True)

    messages = db.relationship(
        "DisputeMessage",
        backref="dispute",
        cascade="all, delete-orphan",
        order_by="DisputeMessage.id",
        lazy="select",
    )

    ACTIVE_STATUSES = ("open", "under_review")

    @classmethod
    def active_for_order(cls, order_id: int):
        return (
            cls.query.filter_by(order_id=int(order_id), is_deleted=False)
            .filter(cls.status.in_(cls.ACTIVE_STATUSES))
            .order_by(cls.id.desc())
            .first()
        )

    @classmethod
    def current_for_order(cls, order_id: int):
        return cls.query.filter_by(order_id=int(order_id), is_deleted=False).order_by(cls.id.desc()).first()

    def product_ids(self) -> list[int]:
        try:
            parsed = json.loads(self.product_ids_json or "[]")
        except Exception:
            return []
        if not isinstance(parsed, list):
            return []
        return [int(v) for v in parsed]

    def to_dict(self, *, include_messages: bool = True) -> dict:
        payload = {
            "id": int(self.id),
            "order_id": int(self.order_id),
            "buyer_id": int(self.buyer_id),
            "seller_id": int(self.seller_id),
            "product_ids": self.product_ids(),
            "reason": self.reason or "",
            "status": self.status or "open",
            "resolution": self.resolution or "",
            "resolved_by": int(self.resolved_by) if self.resolved_by is not None else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "is_deleted": bool(self.is_deleted),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }
        if include_messages:
            payload["messages"] = [m.to_dict() for m in self.messages]
        return payload


class DisputeMessage(db.Model):
    __tablename__ = "dispute_messages"

    id = db.Column(db.Integer, primary_key=True)
    dispute_id = db.Column(db.Integer, db.ForeignKey("disputes.id"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, nullable=False)
    sender_role = db.Column(db.String(16), nullable=False)
    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "sender_id": int(self.sender_id),
            "sender_role": self.sender_role or "",
            "message": self.body or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
