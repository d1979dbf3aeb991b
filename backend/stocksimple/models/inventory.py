from __future__ import annotations

from ..extensions import db
from stocksimple.time_utils import to_utc_z

MOVEMENT_TYPES = ("in", "out")

DEFAULT_REORDER_POINT = 10


class Product(db.Model):
    """
    Product catalog entry with its denormalized stock counter.

    STOCK COUNTER:
    current_stock is a cached projection of the stock_movements ledger:
    initial_stock plus every movement, floored at zero after each step.
    It is written at creation and afterwards only by
    ledger_service.record_movement, through an atomic server-side UPDATE.
    Catalog edits never touch it.

    SKU vs ID:
    sku is the stable external key (update-by-sku); id is used for lookups
    and deletes. Deletes are soft (is_active=False) so movement history keeps
    a valid reference, and a deleted product's SKU stays reserved.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_current_stock_nonneg"),
        db.CheckConstraint("reorder_point >= 0", name="ck_products_reorder_point_nonneg"),
        db.CheckConstraint("cost >= 0", name="ck_products_cost_nonneg"),
        db.Index("ix_products_active_stock", "is_active", "current_stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    # Stock at creation; the replay origin for ledger_service.recompute_stock
    initial_stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=False, default=DEFAULT_REORDER_POINT)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.current_stock}>"

    @property
    def stock_status(self) -> str:
        if self.current_stock == 0:
            return "out_of_stock"
        if self.current_stock <= self.reorder_point:
            return "low_stock"
        return "in_stock"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "cost": f"{self.cost:.2f}" if self.cost is not None else None,
            "currentStock": self.current_stock,
            "reorderPoint": self.reorder_point,
            "status": self.stock_status,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    One append-only stock movement.

    quantity is always the positive magnitude requested by the caller; the
    direction is carried by type. An 'out' larger than the stock on hand is
    stored with its full quantity even though the counter floors at zero.
    Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("type IN ('in', 'out')", name="ck_stock_movements_type"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    # Attribution only; CLI-recorded movements have no user
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(8), nullable=False)
    reason = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    user = db.relationship("User")

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} product_id={self.product_id} {self.type} {self.quantity}>"

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == "in" else -self.quantity

    def to_dict(self, *, include_related: bool = False) -> dict:
        data = {
            "id": self.id,
            "productId": self.product_id,
            "userId": self.user_id,
            "quantity": self.quantity,
            "type": self.type,
            "reason": self.reason or "",
            "createdAt": to_utc_z(self.created_at),
        }
        if include_related:
            data["product"] = (
                {"name": self.product.name, "sku": self.product.sku} if self.product else None
            )
            data["user"] = (
                {"name": self.user.name, "email": self.user.email} if self.user else None
            )
        return data
