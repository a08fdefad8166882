from __future__ import annotations

from flask import Blueprint, jsonify, request

from campus_market.errors import Forbidden
from campus_market.services import catalog_service, soft_delete_service
from campus_market.services.queries import product_listing, product_stats
from campus_market.utils.auth import current_user, require_user

products_bp = Blueprint("products_bp", __name__, url_prefix="/api/products")


@products_bp.post("")
def create_product():
    u = require_user()
    payload = request.get_json(silent=True) or {}
    product = catalog_service.create_product(u, payload)
    return jsonify({"ok": True, "product": product_listing(product)}), 201


@products_bp.get("/mine")
def my_products():
    u = require_user()
    rows = catalog_service.list_seller_products(u)
    return jsonify({"ok": True, "items": [product_listing(p) for p in rows]}), 200


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    u = current_user()
    product = catalog_service.get_product(product_id, include_deleted=bool(u and u.is_admin))
    return jsonify({"ok": True, "product": product_listing(product)}), 200


@products_bp.get("/<int:product_id>/stats")
def get_product_stats(product_id: int):
    u = require_user()
    product = catalog_service.get_product(product_id)
    if not (u.is_admin or int(u.id) == int(product.seller_id)):
        raise Forbidden("Not authorized to view stats for this product")
    return jsonify({"ok": True, "stats": product_stats(product).to_dict()}), 200


@products_bp.put("/<int:product_id>")
def update_product(product_id: int):
    u = require_user()
    payload = request.get_json(silent=True) or {}
    product = catalog_service.update_product(product_id, payload, u)
    return jsonify({"ok": True, "product": product_listing(product)}), 200


@products_bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    u = require_user()
    product = soft_delete_service.delete_product(product_id, u)
    return jsonify({"ok": True, "product": product.to_dict()}), 200
