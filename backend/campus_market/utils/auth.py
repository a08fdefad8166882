from __future__ import annotations

from flask import g, request

from campus_market.errors import Forbidden, Unauthorized
from campus_market.extensions import db
from campus_market.models import User
from campus_market.utils.jwt_utils import decode_token, get_bearer_token


def _bearer_token() -> str | None:
    return get_bearer_token(request.headers.get("Authorization", ""))


def current_user() -> User | None:
    token = _bearer_token()
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    try:
        uid = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    user = db.session.get(User, uid)
    if user is None or user.is_deleted:
        return None
    return user


def require_user() -> User:
    u = current_user()
    if u is None:
        raise Unauthorized("Unauthorized")
    if u.is_banned:
        raise Forbidden(f"Account has been banned. Reason: {u.ban_reason or 'Violation of terms'}")
    g.auth_user_id = int(u.id)
    return u


def require_admin() -> User:
    u = require_user()
    if not u.is_admin:
        raise Forbidden("Admin access required")
    return u
