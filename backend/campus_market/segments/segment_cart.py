from __future__ import annotations

from flask import Blueprint, jsonify, request

from campus_market.services import cart_service
from campus_market.utils.auth import require_user

cart_bp = Blueprint("cart_bp", __name__, url_prefix="/api/cart")


@cart_bp.get("")
def get_cart():
    u = require_user()
    cart = cart_service.get_cart(u)
    return jsonify({"ok": True, "cart": cart.to_dict()}), 200


@cart_bp.post("/items")
def add_item():
    u = require_user()
    payload = request.get_json(silent=True) or {}
    cart = cart_service.add_item(u, payload.get("product_id"), payload.get("quantity", 1))
    return jsonify({"ok": True, "cart": cart.to_dict()}), 200


@cart_bp.put("/items/<int:product_id>")
def update_item(product_id: int):
    u = require_user()
    payload = request.get_json(silent=True) or {}
    cart = cart_service.update_item(u, product_id, payload.get("quantity"))
    return jsonify({"ok": True, "cart": cart.to_dict()}), 200


@cart_bp.delete("/items/<int:product_id>")
def remove_item(product_id: int):
    u = require_user()
    cart = cart_service.remove_item(u, product_id)
    return jsonify({"ok": True, "cart": cart.to_dict()}), 200


@cart_bp.delete("")
def clear_cart():
    u = require_user()
    cart = cart_service.clear_cart(u)
    return jsonify({"ok": True, "cart": cart.to_dict()}), 200
