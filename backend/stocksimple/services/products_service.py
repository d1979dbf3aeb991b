# backend/stocksimple/services/products_service.py
"""
Product catalog service.

- Products are created with an initial stock level; afterwards current_stock
  only changes through ledger_service.record_movement.
- Updates are addressed by sku and are partial (only supplied fields change).
- Deletes are soft: the row stays so stock_movements keep a valid reference.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "cost", "reorder_point"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return db.session.query(q.exists()).scalar()


def list_products() -> list[Product]:
    """Active products ordered by name."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def get_product(product_id: int) -> Product:
    p = db.session.query(Product).filter_by(id=product_id, is_active=True).first()
    if p is None:
        raise NotFoundError("Product not found")
    return p


def get_product_by_sku(sku: str) -> Product:
    p = db.session.query(Product).filter_by(sku=sku, is_active=True).first()
    if p is None:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    current_stock from the patch becomes both the counter and the recorded
    initial_stock that ledger replays start from.

    Raises:
        ConflictError: If the SKU is already used (including by a deleted product)
    """
    sku = patch.get("sku")
    if not sku:
        raise ValueError("sku is required")

    if _sku_taken(sku):
        raise ConflictError("SKU already exists.")

    initial_stock = patch.get("current_stock") or 0

    p = Product(
        current_stock=initial_stock,
        initial_stock=initial_stock,
    )
    apply_product_patch(p, patch)

    db.session.add(p)
    try:
        db.session.commit()
    except IntegrityError:
        # lost a race with a concurrent create of the same sku
        db.session.rollback()
        raise ConflictError("SKU already exists.")
    logger.info("Created product id=%s sku=%s initial_stock=%s", p.id, p.sku, initial_stock)
    return p


def update_product_by_sku(*, sku: str, patch: dict) -> Product:
    """
    Partial update of catalog fields, addressed by sku.

    Raises:
        NotFoundError: unknown or deleted sku
        ConflictError: new sku already used, or the row changed concurrently
    """
    p = get_product_by_sku(sku)

    if "sku" in patch and patch["sku"] != p.sku:
        if _sku_taken(patch["sku"], exclude_id=p.id):
            raise ConflictError("SKU already exists.")

    apply_product_patch(p, patch)
    try:
        db.session.commit()
    except (StaleDataError, IntegrityError):
        db.session.rollback()
        raise ConflictError("Product was modified concurrently; retry the update.")

    logger.info("Updated product id=%s fields=%s", p.id, ", ".join(sorted(patch.keys())))
    return p


def delete_product(*, product_id: int) -> Product:
    """
    Soft-delete a product.

    The product disappears from listings, alerts and reports immediately;
    its movement history is preserved.

    Raises:
        NotFoundError: unknown or already deleted id
    """
    p = get_product(product_id)
    p.is_active = False
    db.session.commit()
    logger.info("Soft-deleted product id=%s sku=%s", p.id, p.sku)
    return p
