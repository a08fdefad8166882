from werkzeug.security import generate_password_hash, check_password_hash

from campus_market.extensions import db
from campus_market.utils.clock import utcnow


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False, default="")
    # Not unique: soft-deleted accounts may share an email with the one active account.
    email = db.Column(db.String(255), index=True, nullable=False)

    password_hash = db.Column(db.String(255), nullable=False, default="")

    role = db.Column(db.String(32), nullable=False, default="user")
    campus = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    is_banned = db.Column(db.Boolean, nullable=False, default=False)
    banned_at = db.Column(db.DateTime, nullable=True)
    banned_by = db.Column(db.Integer, nullable=True)
    ban_reason = db.Column(db.String(240), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    deleted_by = db.Column(db.Integer, nullable=True, index=True)
    deletion_batch = db.Column(db.String(32), nullable=True, index=True)

    def set_password(self, raw_password: str) -> None:
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password_hash(self.password_hash, raw_password)

    @property
    def is_admin(self) -> bool:
        return (self.role or "").strip().lower() == "admin"

    @property
    def is_active_account(self) -> bool:
        return not bool(self.is_deleted) and not bool(self.is_banned)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role or "user",
            "campus": self.campus or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "is_banned": bool(self.is_banned),
            "banned_at": self.banned_at.isoformat() if self.banned_at else None,
            "ban_reason": self.ban_reason or "",
            "is_deleted": bool(self.is_deleted),
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "deleted_by": int(self.deleted_by) if self.deleted_by is not None else None,
        }
