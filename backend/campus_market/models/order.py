import json

from campus_market.extensions import db
from campus_market.utils.clock import utcnow
from campus_market.utils.money import format_money


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), nullable=False, unique=True, index=True)

    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Seller of the first line item; the counterparty for meetup confirmation.
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="USD")

    status = db.Column(db.String(24), nullable=False, default="waiting_to_meet", index=True)
    buyer_confirmed = db.Column(db.Boolean, nullable=False, default=False)
    seller_confirmed = db.Column(db.Boolean, nullable=False, default=False)

    dispute_id = db.Column(db.Integer, nullable=True, index=True)

    shipping_address_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True, index=True)
    deletion_batch = db.Column(db.String(32), nullable=True, index=True)

    lock_version = db.Column(db.Integer, nullable=False, default=0)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="select",
    )

    def shipping_address(self) -> dict:
        raw = self.shipping_address_json
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, dict):
                return parsed
        except Exception:
            pass
        return {}

    def product_ids(self) -> list[int]:
        return [int(item.product_id) for item in self.items]

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "order_number": self.order_number or "",
            "buyer_id": int(self.buyer_id),
            "seller_id": int(self.seller_id),
            "items": [item.to_dict() for item in self.items],
            "total_amount": format_money(self.total_amount),
            "currency": self.currency or "USD",
            "status": self.status or "waiting_to_meet",
            "buyer_confirmed": bool(self.buyer_confirmed),
            "seller_confirmed": bool(self.seller_confirmed),
            "dispute_id": int(self.dispute_id) if self.dispute_id is not None else None,
            "shipping_address": self.shipping_address(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "is_deleted": bool(self.is_deleted),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "deleted_by": int(self.deleted_by) if self.deleted_by is not None else None,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, nullable=False, index=True)

    # Snapshots taken at checkout; later product edits never flow back here.
    name = db.Column(db.String(160), nullable=False, default="")
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    image = db.Column(db.String(1024), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {
            "product_id": int(self.product_id),
            "seller_id": int(self.seller_id),
            "name": self.name or "",
            "price": format_money(self.unit_price),
            "image": self.image or "",
            "quantity": int(self.quantity or 0),
        }
