# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import auth_service, token_service


def bearer_token() -> str | None:
    """Token from an 'Authorization: Bearer <token>' header, or None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid access token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.token_claims: The decoded access token claims

    Returns 401 if:
    - No Authorization header
    - Invalid, expired, or non-access token
    - User missing or deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        claims = token_service.decode_access_token(token)
        if not claims:
            return jsonify({"error": "Invalid or expired token"}), 401

        user = auth_service.get_active_user(claims.get("user_id"))
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.token_claims = claims

        return f(*args, **kwargs)

    return decorated_function

