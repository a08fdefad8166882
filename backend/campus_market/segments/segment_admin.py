from __future__ import annotations

from flask import Blueprint, jsonify, request

from campus_market.services import dispute_service, order_state_service, payment_service, soft_delete_service
from campus_market.services.reconciliation_service import audit_inventory, persist_audit
from campus_market.utils.auth import require_admin

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/admin")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@admin_bp.delete("/users/<int:user_id>")
def delete_user(user_id: int):
    u = require_admin()
    user = soft_delete_service.delete_user(user_id, u)
    return jsonify({"ok": True, "user": user.to_dict()}), 200


@admin_bp.put("/users/<int:user_id>/restore")
def restore_user(user_id: int):
    u = require_admin()
    user = soft_delete_service.restore_user(user_id, u)
    return jsonify({"ok": True, "user": user.to_dict()}), 200


@admin_bp.put("/users/<int:user_id>/ban")
def ban_user(user_id: int):
    u = require_admin()
    user = soft_delete_service.ban_user(user_id, u, reason=_payload().get("reason") or "")
    return jsonify({"ok": True, "user": user.to_dict()}), 200


@admin_bp.put("/users/<int:user_id>/unban")
def unban_user(user_id: int):
    u = require_admin()
    user = soft_delete_service.unban_user(user_id, u)
    return jsonify({"ok": True, "user": user.to_dict()}), 200


@admin_bp.delete("/products/<int:product_id>")
def delete_product(product_id: int):
    u = require_admin()
    product = soft_delete_service.delete_product(product_id, u)
    return jsonify({"ok": True, "product": product.to_dict()}), 200


@admin_bp.put("/products/<int:product_id>/restore")
def restore_product(product_id: int):
    u = require_admin()
    product = soft_delete_service.restore_product(product_id, u)
    return jsonify({"ok": True, "product": product.to_dict()}), 200


@admin_bp.put("/orders/<int:order_id>/status")
def set_order_status(order_id: int):
    u = require_admin()
    payload = _payload()
    order = order_state_service.set_order_status(
        order_id,
        payload.get("status") or "",
        u,
        reason=payload.get("reason") or "",
    )
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@admin_bp.delete("/orders/<int:order_id>")
def delete_order(order_id: int):
    u = require_admin()
    order = soft_delete_service.delete_order(order_id, u)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@admin_bp.put("/orders/<int:order_id>/restore")
def restore_order(order_id: int):
    u = require_admin()
    order = soft_delete_service.restore_order(order_id, u)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@admin_bp.delete("/disputes/<int:dispute_id>")
def delete_dispute(dispute_id: int):
    u = require_admin()
    dispute = dispute_service.delete_dispute(dispute_id, u)
    return jsonify({"ok": True, "dispute": dispute.to_dict(include_messages=False)}), 200


@admin_bp.put("/disputes/<int:dispute_id>/restore")
def restore_dispute(dispute_id: int):
    u = require_admin()
    dispute = dispute_service.restore_dispute(dispute_id, u)
    return jsonify({"ok": True, "dispute": dispute.to_dict(include_messages=False)}), 200


@admin_bp.post("/payments/<int:payment_id>/refund")
def refund_payment(payment_id: int):
    u = require_admin()
    payload = _payload()
    payment = payment_service.refund_payment(
        payment_id,
        u,
        reason=payload.get("reason") or "",
        amount=payload.get("amount"),
    )
    return jsonify({"ok": True, "payment": payment.to_dict()}), 200


@admin_bp.delete("/payments/<int:payment_id>")
def delete_payment(payment_id: int):
    u = require_admin()
    payment = soft_delete_service.delete_payment(payment_id, u)
    return jsonify({"ok": True, "payment": payment.to_dict()}), 200


@admin_bp.put("/payments/<int:payment_id>/restore")
def restore_payment(payment_id: int):
    u = require_admin()
    payment = soft_delete_service.restore_payment(payment_id, u)
    return jsonify({"ok": True, "payment": payment.to_dict()}), 200


@admin_bp.get("/inventory/audit")
def inventory_audit():
    u = require_admin()
    summary = audit_inventory()
    if str(request.args.get("persist") or "").strip().lower() in ("1", "true", "yes"):
        event = persist_audit(summary, actor_user_id=int(u.id))
        summary["event_id"] = int(event.id) if event is not None else None
    return jsonify(summary), 200
