from __future__ import annotations

from ..extensions import db
from stocksimple.time_utils import to_utc_z


class User(db.Model):
    """
    User accounts for authentication and movement attribution.

    Email is the login identifier and is unique across the whole system.
    password_hash normally holds a bcrypt hash; rows imported from the old
    system may still hold a plaintext password until their next login
    (see auth_service.authenticate).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=True)
    role = db.Column(db.String(32), nullable=False, default="user")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "createdAt": to_utc_z(self.created_at),
            "lastLoginAt": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class RefreshToken(db.Model):
    """
    Issued refresh tokens, one row per token.

    Only the SHA-256 of the token is stored. A row is revoked when the token
    is rotated or the user logs out; revoked rows are kept for audit.
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        db.Index("ix_refresh_tokens_user_revoked", "user_id", "revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("refresh_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "expiresAt": to_utc_z(self.expires_at),
            "revoked": self.revoked,
            "revokedAt": to_utc_z(self.revoked_at) if self.revoked_at else None,
            "createdAt": to_utc_z(self.created_at),
        }
