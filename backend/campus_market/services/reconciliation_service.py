from __future__ import annotations

import logging

from campus_market.models import Product
from campus_market.services.inventory_service import reserved_quantity, sold_quantity
from campus_market.utils.clock import utcnow
from campus_market.utils.events import log_event

logger = logging.getLogger(__name__)


def audit_inventory(*, include_deleted: bool = False) -> dict:
    """Recompute reservations for every listing and report any that exceed stock.

    Oversell should be impossible while checkout holds its locks; a non-empty
    report means something wrote around the service layer.
    """
    q = Product.query
    if not include_deleted:
        q = q.filter_by(is_deleted=False)
    products = q.order_by(Product.id.asc()).all()

    oversold = []
    for product in products:
        listed = int(product.total_quantity or 0)
        reserved = reserved_quantity(int(product.id))
        if reserved > listed:
            oversold.append(
                {
                    "product_id": int(product.id),
                    "seller_id": int(product.seller_id),
                    "listed": listed,
                    "reserved": reserved,
                    "sold": sold_quantity(int(product.id)),
                    "excess": reserved - listed,
                }
            )

    summary = {
        "ok": True,
        "scope": "inventory",
        "product_count": len(products),
        "oversold_count": len(oversold),
        "oversold_items": oversold,
        "generated_at": utcnow().isoformat(),
    }
    if oversold:
        logger.warning("inventory_audit_drift oversold_count=%s", len(oversold))
    return summary


def persist_audit(summary: dict, *, actor_user_id: int | None = None):
    return log_event(
        "inventory_audit",
        actor_user_id=actor_user_id,
        subject_type="inventory",
        severity="WARN" if int(summary.get("oversold_count") or 0) else "INFO",
        metadata=summary,
        commit=True,
    )
