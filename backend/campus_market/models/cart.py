from decimal import Decimal

from campus_market.extensions import db
from campus_market.utils.clock import utcnow
from campus_market.utils.money import format_money, line_total


class Cart(db.Model):
    __tablename__ = "carts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    lock_version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
        lazy="select",
    )

    def find_item(self, product_id: int):
        for item in self.items:
            if int(item.product_id) == int(product_id):
                return item
        return None

    def recompute_total(self) -> Decimal:
        total = Decimal("0.00")
        for item in self.items:
            total += line_total(item.price, item.quantity)
        self.total_amount = total
        return total

    def to_dict(self) -> dict:
        return {
            "id": int(self.id) if self.id is not None else None,
            "user_id": int(self.user_id),
            "items": [item.to_dict() for item in self.items],
            "total_amount": format_money(self.total_amount),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class CartItem(db.Model):
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(160), nullable=False, default="")
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    image = db.Column(db.String(1024), nullable=True)

    def to_dict(self) -> dict:
        return {
            "product_id": int(self.product_id),
            "name": self.name or "",
            "price": format_money(self.price),
            "quantity": int(self.quantity or 0),
            "image": self.image or "",
        }
