# Overview: Stock ledger; records movements and maintains the product stock counter.

from __future__ import annotations

import logging

from sqlalchemy import case, select, update
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, StockMovement, MOVEMENT_TYPES
from ..validation import MAX_INTEGER, NotFoundError, ValidationError, coerce_int, validate_movement_input
"""
Stock Ledger Invariants (authoritative)

- stock_movements is append-only: rows are inserted, never updated or deleted.
- quantity is the positive magnitude; type ('in' | 'out') carries the sign.
- products.current_stock is a cached projection of the ledger:
    initial_stock, then for each movement in order:
        stock = max(0, stock + signed_quantity)
  The floor is applied after every movement (running clamp), not once at the end.
- Over-draws are not rejected: an 'out' larger than stock on hand is recorded
  with its full quantity and the counter floors at 0.
- The counter update is a single server-side UPDATE evaluated by the database
  (no read-modify-write in Python), committed in the same transaction as the
  movement row. Concurrent movements on one product cannot lose an update.
- An 'in' that would take the counter past MAX_INTEGER is rejected outright
  (nothing is recorded); the ceiling is checked inside the same UPDATE.
"""

logger = logging.getLogger(__name__)

DEFAULT_REPORT_SIZE = 5


def clamped_stock(current: int, signed_quantity: int) -> int:
    return max(0, current + signed_quantity)


def _signed(quantity: int, movement_type: str) -> int:
    return quantity if movement_type == "in" else -quantity


def record_movement(
    *,
    product_id,
    quantity,
    movement_type,
    reason: str | None = "",
    user_id: int | None = None,
) -> tuple[StockMovement, int]:
    """
    Append a movement and apply it to the product's stock counter.

    Returns (movement, new_stock) where new_stock is the clamped counter value
    after this movement.

    Raises:
        ValidationError: quantity not a positive integer, type not in/out, or an
            'in' that would push the counter past MAX_INTEGER
        NotFoundError: product missing or soft-deleted
    """
    product_id = coerce_int("productId", product_id)
    qty, movement_type = validate_movement_input(quantity, movement_type, MOVEMENT_TYPES)
    if reason is None:
        reason = ""
    if not isinstance(reason, str):
        raise ValidationError("reason must be a string")

    delta = _signed(qty, movement_type)
    new_value = Product.current_stock + delta

    # Write first: the UPDATE is the first statement of the transaction, so
    # the row (or database, on SQLite) is write-locked before anything is read.
    stmt = update(Product).where(Product.id == product_id, Product.is_active.is_(True))
    if delta > 0:
        stmt = stmt.where(Product.current_stock <= MAX_INTEGER - delta)
    result = db.session.execute(
        stmt
        .values(current_stock=case((new_value < 0, 0), else_=new_value))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        if delta > 0 and _is_active_product(product_id):
            raise ValidationError(f"currentStock cannot exceed {MAX_INTEGER}")
        raise NotFoundError("Product not found")

    new_stock = db.session.execute(
        select(Product.current_stock).where(Product.id == product_id)
    ).scalar_one()

    movement = StockMovement(
        product_id=product_id,
        user_id=user_id,
        quantity=qty,
        type=movement_type,
        reason=reason.strip(),
    )
    db.session.add(movement)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if movement_type == "out" and new_stock == 0:
        # Either an exact draw-down or an over-draw floored at zero
        logger.warning(
            "Product %s reached zero stock after out movement of %s (movement %s)",
            product_id, qty, movement.id,
        )
    logger.info(
        "Recorded movement %s: product=%s %s %s new_stock=%s user=%s",
        movement.id, product_id, movement_type, qty, new_stock, user_id,
    )
    return movement, new_stock


def list_movements(product_id: int | None = None, limit: int | None = None) -> list[StockMovement]:
    """
    Movement log, newest first, with product and user eagerly loaded.

    Movements of soft-deleted products are included.
    """
    q = (
        db.session.query(StockMovement)
        .options(joinedload(StockMovement.product), joinedload(StockMovement.user))
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    )
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def _active_products():
    return db.session.query(Product).filter(Product.is_active.is_(True))


def _is_active_product(product_id: int) -> bool:
    return db.session.query(_active_products().filter(Product.id == product_id).exists()).scalar()


def get_alerts() -> list[Product]:
    """
    Products at or below their reorder point, lowest stock first.

    A product at zero stock is both out of stock and low stock; the alert
    set uses the single inclusive predicate current_stock <= reorder_point.
    """
    return (
        _active_products()
        .filter(Product.current_stock <= Product.reorder_point)
        .order_by(Product.current_stock.asc(), Product.sku.asc())
        .all()
    )


def get_top_and_bottom_stock(n: int = DEFAULT_REPORT_SIZE) -> dict[str, list[Product]]:
    """
    The n highest-stock and n lowest-stock products, ties broken by sku.

    The lists are computed independently; a product appears in both only
    when there are at most 2n active products.
    """
    n = coerce_int("n", n)
    if n <= 0:
        raise ValidationError("n must be a positive integer")

    top = (
        _active_products()
        .order_by(Product.current_stock.desc(), Product.sku.asc())
        .limit(n)
        .all()
    )
    low = (
        _active_products()
        .order_by(Product.current_stock.asc(), Product.sku.asc())
        .limit(n)
        .all()
    )
    return {"topStock": top, "lowStock": low}


def replay_stock(initial_stock: int, movements) -> int:
    """Fold movements over initial_stock with the running clamp."""
    stock = initial_stock
    for m in movements:
        stock = clamped_stock(stock, m.signed_quantity)
    return stock


def recompute_stock(product_id: int) -> dict:
    """
    Replay a product's movement history and compare with the stored counter.

    Read-only; used by the `flask products check-stock` command to detect
    counter drift.
    """
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError("Product not found")

    movements = (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.id.asc())
        .all()
    )
    replayed = replay_stock(product.initial_stock, movements)
    return {
        "product": product.to_dict(),
        "stored": product.current_stock,
        "replayed": replayed,
        "movements": len(movements),
        "consistent": replayed == product.current_stock,
    }
