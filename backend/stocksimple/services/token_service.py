# Overview: Service-layer operations for bearer tokens; JWT issuance, validation and refresh rotation.

"""
Token Management Service

Access tokens are short-lived-ish signed JWTs checked on every protected
request without a database lookup of the token itself. Refresh tokens are
JWTs too, but each one is also recorded (as a SHA-256 hash) so it can be
rotated and revoked.

SECURITY FEATURES:
- HS256 signatures with JWT_SECRET_KEY
- 'type' claim separates access from refresh tokens
- 'jti' claim makes every token unique, even when issued in the same second
- Refresh tokens hashed with SHA-256 before storage (never stored in plaintext)
- Rotation: a refresh token can be exchanged exactly once
- Reuse of an already-rotated refresh token revokes every refresh token of
  that user
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import RefreshToken, User
from ..validation import AuthError
from stocksimple.time_utils import from_timestamp, utcnow

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_record: RefreshToken

    def to_dict(self) -> dict:
        return {
            "token": self.access_token,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
        }


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is
    sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _signing_key() -> str:
    return current_app.config["JWT_SECRET_KEY"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def _encode(user_id: int, token_type: str, lifetime: timedelta) -> tuple[str, datetime]:
    now = datetime.now(timezone.utc)
    expires = now + lifetime
    claims = {
        "user_id": user_id,
        "type": token_type,
        "iat": now,
        "exp": expires,
        "jti": uuid.uuid4().hex,
    }
    token = jwt.encode(claims, _signing_key(), algorithm=_algorithm())
    return token, expires.replace(tzinfo=None)


def decode_token(token: str, expected_type: str) -> dict | None:
    """
    Verify signature, expiry and token type.

    Returns the claims dict, or None for any invalid token.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        claims = jwt.decode(
            token,
            _signing_key(),
            algorithms=[_algorithm()],
            options={"require": ["exp", "iat", "type", "user_id"]},
        )
    except jwt.InvalidTokenError:
        return None
    if claims.get("type") != expected_type:
        return None
    return claims


def decode_access_token(token: str) -> dict | None:
    return decode_token(token, ACCESS)


def issue_token_pair(user: User) -> TokenPair:
    """
    Issue an access token and a recorded refresh token for the user.
    """
    access_token, _ = _encode(
        user.id, ACCESS, timedelta(seconds=current_app.config["JWT_ACCESS_TOKEN_EXPIRES"])
    )
    refresh_token, refresh_expires = _encode(
        user.id, REFRESH, timedelta(seconds=current_app.config["JWT_REFRESH_TOKEN_EXPIRES"])
    )

    record = RefreshToken(
        token_hash=hash_token(refresh_token),
        user_id=user.id,
        expires_at=refresh_expires,
        revoked=False,
    )
    db.session.add(record)
    db.session.commit()

    return TokenPair(access_token=access_token, refresh_token=refresh_token, refresh_record=record)


def rotate_refresh_token(token: str) -> TokenPair:
    """
    Exchange a refresh token for a new token pair, revoking the old one.

    Raises AuthError if the token is invalid, expired, unknown, revoked, or
    belongs to an inactive user.
    """
    claims = decode_token(token, REFRESH)
    if not claims:
        raise AuthError("Invalid refresh token")

    token_hash = hash_token(token)
    record = db.session.query(RefreshToken).filter_by(token_hash=token_hash).first()
    if record is None:
        raise AuthError("Invalid refresh token")

    if record.revoked:
        # A rotated token came back: treat the whole token family as leaked
        revoked = revoke_all_user_tokens(record.user_id)
        logger.warning(
            "Refresh token reuse for user id=%s; revoked %s active tokens",
            record.user_id, revoked,
        )
        raise AuthError("Refresh token has been revoked")

    if record.expires_at < utcnow():
        raise AuthError("Refresh token has expired")

    user = db.session.query(User).filter_by(id=record.user_id, is_active=True).first()
    if user is None:
        raise AuthError("Invalid refresh token")

    # Conditional update: only one concurrent caller can win the rotation
    result = db.session.execute(
        update(RefreshToken)
        .where(RefreshToken.id == record.id, RefreshToken.revoked.is_(False))
        .values(revoked=True, revoked_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise AuthError("Refresh token has been revoked")
    db.session.commit()

    return issue_token_pair(user)


def revoke_refresh_token(token: str) -> bool:
    """
    Revoke a refresh token (logout).

    Returns True if a live token was revoked, False if unknown or already revoked.
    """
    if not token or not isinstance(token, str):
        return False

    record = db.session.query(RefreshToken).filter_by(
        token_hash=hash_token(token),
        revoked=False,
    ).first()
    if record is None:
        return False

    record.revoked = True
    record.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_all_user_tokens(user_id: int) -> int:
    """
    Revoke all live refresh tokens for a user.

    Returns count of tokens revoked.
    """
    now = utcnow()
    result = db.session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
        .values(revoked=True, revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount


def cleanup_expired_tokens(retention_days: int = 30) -> int:
    """
    Delete refresh tokens that expired or were revoked more than
    retention_days ago.

    Returns count of rows deleted.
    """
    cutoff = utcnow() - timedelta(days=retention_days)

    deleted = db.session.query(RefreshToken).filter(
        db.or_(
            RefreshToken.expires_at < cutoff,
            db.and_(RefreshToken.revoked.is_(True), RefreshToken.revoked_at < cutoff),
        )
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted


def token_expiry(claims: dict) -> datetime:
    """UTC-naive expiry of decoded claims."""
    return from_timestamp(claims["exp"])
