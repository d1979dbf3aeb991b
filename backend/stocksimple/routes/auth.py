# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stocksimple/routes/auth.py
"""
Authentication API routes

- Self-registration with email/password/name
- Login with email/password (legacy plaintext credentials migrate on success)
- Refresh-token rotation and logout
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import token_service
from ..validation import AuthError, ConflictError, ValidationError
from ..decorators import require_auth
from stocksimple.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _auth_response(user, pair, message: str) -> dict:
    return {
        "message": message,
        **pair.to_dict(),
        "user": user.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """
    Register a new user and sign them in.

    Duplicate email answers 400, matching the client's expectations.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    try:
        user = auth_service.register_user(
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
        )
        pair = token_service.issue_token_pair(user)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_auth_response(user, pair, "User registered successfully")), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue tokens.

    The access token goes in the Authorization header for protected routes;
    the refresh token is exchanged at /api/auth/refresh.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            data = {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        pair = token_service.issue_token_pair(user)
        return jsonify(_auth_response(user, pair, "Login successful")), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """
    Rotate a refresh token: the presented token is revoked and a new pair issued.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    refresh_token = data.get("refreshToken")
    if not refresh_token:
        return jsonify({"error": "No refresh token provided"}), 400

    try:
        pair = token_service.rotate_refresh_token(refresh_token)
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to refresh token")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(pair.to_dict()), 200


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke a refresh token (logout).

    Access tokens are stateless and simply expire.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    refresh_token = data.get("refreshToken")
    if not refresh_token:
        return jsonify({"error": "No refresh token provided"}), 400

    try:
        revoked = token_service.revoke_refresh_token(refresh_token)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500

    if not revoked:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user and access-token expiry, for the client's session check."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "tokenExpiresAt": to_utc_z(token_service.token_expiry(g.token_claims)),
    }), 200
