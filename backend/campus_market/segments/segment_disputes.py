from __future__ import annotations

from flask import Blueprint, jsonify, request

from campus_market.errors import ValidationError
from campus_market.services import dispute_service
from campus_market.services.queries import dispute_summary, list_disputes
from campus_market.utils.auth import require_user

disputes_bp = Blueprint("disputes_bp", __name__, url_prefix="/api/disputes")


def _truthy(value) -> bool:
    return str(value or "").strip().lower() in ("1", "true", "yes")


@disputes_bp.get("")
def index():
    u = require_user()
    rows = list_disputes(
        u,
        status=request.args.get("status") or None,
        include_deleted=_truthy(request.args.get("include_deleted")),
    )
    return jsonify({"ok": True, "items": [d.to_dict() for d in rows]}), 200


@disputes_bp.get("/<int:dispute_id>")
def detail(dispute_id: int):
    u = require_user()
    dispute = dispute_service.get_dispute(dispute_id, u, include_deleted=True)
    summary = dispute_summary(dispute, include_messages=True)
    return jsonify({"ok": True, "dispute": summary.to_dict()}), 200


@disputes_bp.post("")
def create():
    u = require_user()
    payload = request.get_json(silent=True) or {}
    try:
        order_id = int(payload.get("order_id"))
    except (TypeError, ValueError):
        raise ValidationError("order_id is required", field="order_id")
    dispute = dispute_service.open_dispute(order_id, payload.get("reason") or "", u)
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 201


@disputes_bp.post("/<int:dispute_id>/messages")
def post_message(dispute_id: int):
    u = require_user()
    payload = request.get_json(silent=True) or {}
    dispute = dispute_service.add_dispute_message(dispute_id, payload.get("message") or "", u)
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 201


@disputes_bp.put("/<int:dispute_id>/resolve")
def resolve(dispute_id: int):
    u = require_user()
    payload = request.get_json(silent=True) or {}
    dispute = dispute_service.resolve_dispute(dispute_id, payload.get("resolution") or "", u)
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 200


@disputes_bp.put("/<int:dispute_id>/close")
def close(dispute_id: int):
    u = require_user()
    dispute = dispute_service.close_dispute(dispute_id, u)
    return jsonify({"ok": True, "dispute": dispute.to_dict()}), 200
