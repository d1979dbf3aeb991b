# Overview: Flask API routes for stock movements; parses input and returns JSON responses.

# backend/stocksimple/routes/movements.py
"""
Stock movement routes.

POST records one movement through the stock ledger and returns the clamped
stock level; GET lists the movement log newest first with product and user
details joined.
"""
from flask import Blueprint, request, jsonify, g

from ..services import ledger_service
from ..validation import ValidationError, NotFoundError, coerce_int
from ..decorators import require_auth


movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")

MAX_LIST_LIMIT = 1000


@movements_bp.post("")
@require_auth
def create_movement_route():
    """
    Record a stock movement.

    Body: {productId, quantity, type: "in" | "out", reason?}
    quantity is a positive magnitude; an "out" larger than the stock on hand
    is recorded in full and the stock floors at zero.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    unknown = set(payload) - {"productId", "quantity", "type", "reason"}
    if unknown:
        return jsonify({"error": f"Field not allowed: {', '.join(sorted(unknown))}"}), 400
    if payload.get("productId") is None:
        return jsonify({"error": "productId is required"}), 400

    try:
        movement, new_stock = ledger_service.record_movement(
            product_id=payload.get("productId"),
            quantity=payload.get("quantity"),
            movement_type=payload.get("type"),
            reason=payload.get("reason", ""),
            user_id=g.current_user.id,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({
        "message": "Stock movement logged successfully",
        "movement": movement.to_dict(),
        "newStock": new_stock,
    }), 201


@movements_bp.get("")
@require_auth
def list_movements_route():
    """
    List movements, newest first.

    Query params:
    - productId: int (optional) - only this product's movements
    - limit: int (optional) - at most this many rows (max 1000)
    """
    try:
        product_id = request.args.get("productId")
        product_id = coerce_int("productId", product_id) if product_id is not None else None
        limit = request.args.get("limit")
        limit = coerce_int("limit", limit) if limit is not None else None
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if limit is not None:
        if limit <= 0:
            return jsonify({"error": "limit must be a positive integer"}), 400
        limit = min(limit, MAX_LIST_LIMIT)

    rows = ledger_service.list_movements(product_id=product_id, limit=limit)
    return jsonify([m.to_dict(include_related=True) for m in rows]), 200
