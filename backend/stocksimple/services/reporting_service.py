# Overview: Read-only inventory aggregates for the dashboard.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import case, func

from ..extensions import db
from ..models import Product, StockMovement


def inventory_summary() -> dict:
    """
    Headline numbers for the dashboard, over active products.

    lowStock counts every product at or below its reorder point (out-of-stock
    products included); outOfStock counts only those at zero.
    """
    row = db.session.query(
        func.count(Product.id).label("products"),
        func.coalesce(func.sum(Product.current_stock), 0).label("units"),
        func.coalesce(func.sum(Product.current_stock * Product.cost), 0).label("value"),
        func.coalesce(
            func.sum(case((Product.current_stock <= Product.reorder_point, 1), else_=0)), 0
        ).label("low"),
        func.coalesce(
            func.sum(case((Product.current_stock == 0, 1), else_=0)), 0
        ).label("out"),
    ).filter(Product.is_active.is_(True)).one()

    value = Decimal(str(row.value or 0)).quantize(Decimal("0.01"))

    movement_count = db.session.query(func.count(StockMovement.id)).scalar() or 0

    return {
        "totalProducts": int(row.products or 0),
        "totalUnits": int(row.units or 0),
        "inventoryValue": f"{value:.2f}",
        "lowStockCount": int(row.low or 0),
        "outOfStockCount": int(row.out or 0),
        "movementCount": int(movement_count),
    }
