from __future__ import annotations

from flask import Blueprint, jsonify, request

from campus_market.services import checkout_service, order_state_service
from campus_market.services.queries import buyer_orders, order_detail, seller_orders
from campus_market.utils.auth import require_user

orders_bp = Blueprint("orders_bp", __name__, url_prefix="/api/orders")


@orders_bp.get("")
def my_orders():
    u = require_user()
    return jsonify({"ok": True, "items": [o.to_dict() for o in buyer_orders(u)]}), 200


@orders_bp.get("/seller")
def my_sales():
    u = require_user()
    return jsonify({"ok": True, "items": [o.to_dict() for o in seller_orders(u)]}), 200


@orders_bp.get("/<int:order_id>")
def get_order(order_id: int):
    u = require_user()
    return jsonify({"ok": True, "order": order_detail(order_id, u).to_dict()}), 200


@orders_bp.post("")
def create_order():
    u = require_user()
    payload = request.get_json(silent=True) or {}
    card = payload.get("payment_details") or payload.get("card") or {}
    order = checkout_service.create_order(
        u,
        payload.get("shipping_address"),
        payload.get("billing_address"),
        card,
        payment_method=payload.get("payment_method") or "credit_card",
    )
    return jsonify({"ok": True, "order": order_detail(order.id, u).to_dict()}), 201


@orders_bp.put("/<int:order_id>/buyer-confirm")
def buyer_confirm(order_id: int):
    u = require_user()
    order = order_state_service.confirm(order_id, "buyer", u)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.put("/<int:order_id>/seller-confirm")
def seller_confirm(order_id: int):
    u = require_user()
    order = order_state_service.confirm(order_id, "seller", u)
    return jsonify({"ok": True, "order": order.to_dict()}), 200


@orders_bp.put("/<int:order_id>/cancel")
def cancel(order_id: int):
    u = require_user()
    order = order_state_service.cancel_order(order_id, u)
    return jsonify({"ok": True, "order": order.to_dict()}), 200
