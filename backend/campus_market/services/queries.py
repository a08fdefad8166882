from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import or_

from campus_market.errors import Forbidden, NotFound
from campus_market.extensions import db
from campus_market.models import Dispute, Order, Payment, Product, User
from campus_market.services.inventory_service import InventoryStats, available_quantity, inventory_stats


@dataclass
class PartySummary:
    id: int
    name: str
    email: str
    is_banned: bool
    is_deleted: bool

    @classmethod
    def from_user(cls, user: User | None, user_id: int) -> "PartySummary":
        if user is None:
            return cls(id=int(user_id), name="", email="", is_banned=False, is_deleted=True)
        return cls(
            id=int(user.id),
            name=user.name or "",
            email=user.email or "",
            is_banned=bool(user.is_banned),
            is_deleted=bool(user.is_deleted),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_banned": self.is_banned,
            "is_deleted": self.is_deleted,
        }


@dataclass
class DisputeSummary:
    id: int
    order_id: int
    order_number: str
    status: str
    reason: str
    resolution: str
    order_deleted: bool
    buyer: PartySummary
    seller: PartySummary
    message_count: int
    created_at: str | None
    messages: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "status": self.status,
            "reason": self.reason,
            "resolution": self.resolution,
            "order_deleted": self.order_deleted,
            "buyer": self.buyer.to_dict(),
            "seller": self.seller.to_dict(),
            "message_count": self.message_count,
            "created_at": self.created_at,
            "messages": list(self.messages),
        }


@dataclass
class OrderSummary:
    order: dict
    buyer: PartySummary
    seller: PartySummary
    dispute: DisputeSummary | None
    payments: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = dict(self.order)
        payload["buyer"] = self.buyer.to_dict()
        payload["seller"] = self.seller.to_dict()
        payload["dispute"] = self.dispute.to_dict() if self.dispute is not None else None
        payload["payments"] = list(self.payments)
        return payload


def _users_by_id(ids) -> dict[int, User]:
    wanted = {int(i) for i in ids if i is not None}
    if not wanted:
        return {}
    return {int(u.id): u for u in User.query.filter(User.id.in_(wanted)).all()}


def dispute_summary(dispute: Dispute, *, order: Order | None = None, users: dict | None = None,
                    include_messages: bool = False) -> DisputeSummary:
    order = order if order is not None else db.session.get(Order, int(dispute.order_id))
    users = users if users is not None else _users_by_id([dispute.buyer_id, dispute.seller_id])
    return DisputeSummary(
        id=int(dispute.id),
        order_id=int(dispute.order_id),
        order_number=order.order_number if order is not None else "",
        status=dispute.status or "open",
        reason=dispute.reason or "",
        resolution=dispute.resolution or "",
        order_deleted=order is None or bool(order.is_deleted),
        buyer=PartySummary.from_user(users.get(int(dispute.buyer_id)), dispute.buyer_id),
        seller=PartySummary.from_user(users.get(int(dispute.seller_id)), dispute.seller_id),
        message_count=len(dispute.messages),
        created_at=dispute.created_at.isoformat() if dispute.created_at else None,
        messages=[m.to_dict() for m in dispute.messages] if include_messages else [],
    )


def _order_summaries(orders: list[Order]) -> list[OrderSummary]:
    if not orders:
        return []
    users = _users_by_id([o.buyer_id for o in orders] + [o.seller_id for o in orders])
    order_ids = [int(o.id) for o in orders]
    # Deleted disputes never surface in order views.
    disputes = {
        int(d.order_id): d
        for d in Dispute.query.filter(Dispute.order_id.in_(order_ids), Dispute.is_deleted.is_(False))
        .order_by(Dispute.id.asc())
        .all()
    }
    payments: dict[int, list[dict]] = {}
    for p in Payment.query.filter(Payment.order_id.in_(order_ids), Payment.is_deleted.is_(False)).all():
        payments.setdefault(int(p.order_id), []).append(p.to_dict())

    out = []
    for order in orders:
        dispute = disputes.get(int(order.id))
        out.append(
            OrderSummary(
                order=order.to_dict(),
                buyer=PartySummary.from_user(users.get(int(order.buyer_id)), order.buyer_id),
                seller=PartySummary.from_user(users.get(int(order.seller_id)), order.seller_id),
                dispute=dispute_summary(dispute, order=order, users=users) if dispute is not None else None,
                payments=payments.get(int(order.id), []),
            )
        )
    return out


def buyer_orders(buyer: User) -> list[OrderSummary]:
    orders = (
        Order.query.filter_by(buyer_id=int(buyer.id), is_deleted=False)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return _order_summaries(orders)


def seller_orders(seller: User) -> list[OrderSummary]:
    orders = (
        Order.query.filter_by(seller_id=int(seller.id), is_deleted=False)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return _order_summaries(orders)


def order_detail(order_id: int, actor: User) -> OrderSummary:
    order = db.session.get(Order, int(order_id))
    if order is None or (order.is_deleted and not actor.is_admin):
        raise NotFound("Order not found")
    if not (actor.is_admin or int(actor.id) in (int(order.buyer_id), int(order.seller_id))):
        raise Forbidden("Not authorized to view this order")
    return _order_summaries([order])[0]


def list_disputes(actor: User, *, status: str | None = None, include_deleted: bool = False) -> list[DisputeSummary]:
    q = Dispute.query
    if not actor.is_admin:
        q = q.filter(or_(Dispute.buyer_id == int(actor.id), Dispute.seller_id == int(actor.id)))
        include_deleted = False
    if not include_deleted:
        q = q.filter(Dispute.is_deleted.is_(False))
    if status:
        q = q.filter(Dispute.status == status.strip().lower())
    disputes = q.order_by(Dispute.created_at.desc(), Dispute.id.desc()).all()
    users = _users_by_id([d.buyer_id for d in disputes] + [d.seller_id for d in disputes])
    orders = {}
    order_ids = {int(d.order_id) for d in disputes}
    if order_ids:
        orders = {int(o.id): o for o in Order.query.filter(Order.id.in_(order_ids)).all()}
    return [
        dispute_summary(d, order=orders.get(int(d.order_id)), users=users)
        for d in disputes
    ]


def product_listing(product: Product) -> dict:
    return product.to_dict(available=available_quantity(product))


def product_stats(product: Product) -> InventoryStats:
    return inventory_stats(product)
