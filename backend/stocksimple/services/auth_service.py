# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every stock movement is attributed to a user, so every API call needs one.
Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_LOG_ROUNDS, default 12)
- Minimum 6 characters required
- Rows carried over from the previous system may hold plaintext passwords.
  authenticate() accepts them once and replaces them with a bcrypt hash.
- Tokens are managed separately (see token_service.py)
"""

import hmac
import logging

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError, validate_email
from stocksimple.time_utils import utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt ignores anything past 72 bytes

BCRYPT_PREFIX = "$2"


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password) -> None:
    """
    Validate password meets requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
        )


def _log_rounds() -> int:
    return int(current_app.config.get("BCRYPT_LOG_ROUNDS", 12))


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    return _bcrypt_hash(password)


def _bcrypt_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=_log_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def is_password_hash(stored: str | None) -> bool:
    """True when the stored credential looks like a bcrypt hash."""
    return bool(stored) and stored.startswith(BCRYPT_PREFIX)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # malformed hash
        return False


def register_user(*, email, password, name=None) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad email or password
        ConflictError: email already registered
    """
    email = validate_email(email)
    validate_password_strength(password)
    if name is not None:
        name = str(name).strip() or None
        if name is not None and len(name) > 120:
            raise ValidationError("name exceeds max length 120")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("User already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # concurrent registration of the same email
        db.session.rollback()
        raise ConflictError("User already exists")

    logger.info("Registered user id=%s email=%s", user.id, user.email)
    return user


def _migrate_legacy_password(user: User, password: str) -> None:
    """
    Replace a plaintext credential with a bcrypt hash.

    A failed write here must not block the login that triggered it; the
    plaintext row simply stays and is migrated on a later login.
    """
    try:
        # legacy passwords predate the length policy; hash them as they are
        user.password_hash = _bcrypt_hash(password)
        db.session.commit()
        logger.info("Migrated legacy plaintext password for user id=%s", user.id)
    except (SQLAlchemyError, ValueError):
        db.session.rollback()
        logger.warning("Legacy password migration failed for user id=%s", user.id, exc_info=True)


def authenticate(email, password) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    if not isinstance(email, str) or not isinstance(password, str) or not password:
        return None

    user = (
        db.session.query(User)
        .filter(User.email == email.strip().lower(), User.is_active.is_(True))
        .first()
    )
    if not user:
        return None

    stored = user.password_hash or ""
    if not stored:
        return None
    if is_password_hash(stored):
        if not verify_password(password, stored):
            return None
    else:
        # Legacy plaintext compare (constant time), then migrate
        if not hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8")):
            return None
        _migrate_legacy_password(user, password)

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_active_user(user_id) -> User | None:
    if user_id is None:
        return None
    return db.session.query(User).filter_by(id=user_id, is_active=True).first()


def set_role(user: User, role: str) -> User:
    role = (role or "").strip()
    if not role:
        raise ValidationError("role is required")
    user.role = role
    db.session.commit()
    return user
