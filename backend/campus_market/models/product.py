from campus_market.extensions import db
from campus_market.utils.clock import utcnow
from campus_market.utils.money import format_money


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)

    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    image = db.Column(db.String(1024), nullable=True)
    campus = db.Column(db.String(120), nullable=True)
    condition = db.Column(db.String(24), nullable=True)

    # Listed stock. What is purchasable is derived from active orders.
    total_quantity = db.Column(db.Integer, nullable=False, default=1)

    # Stored status; "sold" is also reported whenever nothing is available.
    status = db.Column(db.String(16), nullable=False, default="available", index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True, index=True)
    deletion_batch = db.Column(db.String(32), nullable=True, index=True)

    lock_version = db.Column(db.Integer, nullable=False, default=0)

    seller = db.relationship("User", foreign_keys=[seller_id], lazy="joined")

    def effective_status(self, available: int) -> str:
        if int(available) <= 0:
            return "sold"
        return self.status or "available"

    def to_dict(self, *, available: int | None = None) -> dict:
        payload = {
            "id": int(self.id),
            "seller_id": int(self.seller_id),
            "name": self.name or "",
            "description": self.description or "",
            "price": format_money(self.price),
            "image": self.image or "",
            "campus": self.campus or "",
            "condition": self.condition or "",
            "total_quantity": int(self.total_quantity or 0),
            "status": self.status or "available",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "is_deleted": bool(self.is_deleted),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "deleted_by": int(self.deleted_by) if self.deleted_by is not None else None,
        }
        if available is not None:
            payload["available_quantity"] = int(available)
            payload["status"] = self.effective_status(available)
        return payload
