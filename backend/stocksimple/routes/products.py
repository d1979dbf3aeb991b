# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stocksimple/routes/products.py
"""
Product catalog routes.

All routes require authentication.
- Update is addressed by SKU (PUT /api/products/<sku>)
- Lookup and delete are addressed by id
- currentStock is accepted on create only; afterwards stock changes go
  through POST /api/movements
"""
from flask import Blueprint, request, jsonify

from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
    MAX_INTEGER,
)
from ..decorators import require_auth

PRODUCT_FIELD_MAP = {
    "currentStock": "current_stock",
    "reorderPoint": "reorder_point",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "cost", "currentStock", "reorderPoint"},
    required_on_create={"sku", "name", "cost"},
    field_map=PRODUCT_FIELD_MAP,
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "cost", "reorderPoint"},
    field_map=PRODUCT_FIELD_MAP,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """List active products ordered by name."""
    return jsonify([p.to_dict() for p in products_service.list_products()]), 200


@products_bp.get(f"/<int(max={MAX_INTEGER}):product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a new product.

    Body: {name, sku, cost, currentStock?, reorderPoint?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(created.to_dict()), 201


@products_bp.put("/<string:sku>")
@require_auth
def update_product_route(sku: str):
    """
    Partially update a product by SKU.

    Only supplied fields change. currentStock is rejected here.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    if "currentStock" in payload:
        return jsonify({
            "error": "currentStock cannot be set directly; record a stock movement instead"
        }), 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        updated = products_service.update_product_by_sku(sku=sku, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(updated.to_dict()), 200


@products_bp.delete(f"/<int(max={MAX_INTEGER}):product_id>")
@require_auth
def delete_product_route(product_id: int):
    """
    Delete a product (soft delete; movement history is kept).
    """
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"message": "Product deleted successfully", "id": deleted.id}), 200
