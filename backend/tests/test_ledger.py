"""
Stock ledger tests.

Verifies:
- Movements apply a running clamp at zero (floor after every step)
- Over-draws are recorded with their full quantity
- Invalid input never touches the counter
- Alert set is exactly current_stock <= reorder_point
- Top/bottom report ordering and tie-break by SKU
- Replaying the movement log reproduces the stored counter
"""

import random

import pytest

from stocksimple.extensions import db
from stocksimple.models import Product, StockMovement
from stocksimple.services import ledger_service, products_service
from stocksimple.validation import MAX_INTEGER, NotFoundError, ValidationError, coerce_int


def _apply(product_id, *steps, user_id=None):
    """Record (type, quantity) steps and return the last new_stock."""
    new_stock = None
    for movement_type, quantity in steps:
        _, new_stock = ledger_service.record_movement(
            product_id=product_id,
            quantity=quantity,
            movement_type=movement_type,
            user_id=user_id,
        )
    return new_stock


# =============================================================================
# RUNNING CLAMP
# =============================================================================


class TestRunningClamp:
    """Stock floors at zero after each movement, not once at the end."""

    def test_in_increases_stock(self, make_product, user):
        p = make_product(current_stock=5)
        movement, new_stock = ledger_service.record_movement(
            product_id=p.id, quantity=3, movement_type="in", reason="Restock", user_id=user.id,
        )
        assert new_stock == 8
        assert movement.quantity == 3
        assert movement.type == "in"
        assert movement.reason == "Restock"
        assert movement.user_id == user.id
        assert db.session.get(Product, p.id).current_stock == 8

    def test_out_then_in_floors_before_adding(self, make_product):
        p = make_product(current_stock=5)
        assert _apply(p.id, ("out", 10)) == 0
        assert _apply(p.id, ("in", 3)) == 3

    def test_in_then_out_floors_at_end(self, make_product):
        p = make_product(current_stock=5)
        assert _apply(p.id, ("in", 3)) == 8
        assert _apply(p.id, ("out", 10)) == 0

    def test_overdraw_records_full_quantity(self, make_product):
        p = make_product(current_stock=2)
        movement, new_stock = ledger_service.record_movement(
            product_id=p.id, quantity=7, movement_type="out",
        )
        assert new_stock == 0
        stored = db.session.get(StockMovement, movement.id)
        assert stored.quantity == 7
        assert stored.type == "out"

    def test_exact_draw_down_reaches_zero(self, make_product):
        p = make_product(current_stock=4)
        assert _apply(p.id, ("out", 4)) == 0

    def test_random_sequences_match_running_clamp(self, make_product):
        rng = random.Random(1234)
        for i in range(5):
            start = rng.randint(0, 20)
            p = make_product(sku=f"SEQ-{i}", current_stock=start)
            expected = start
            for _ in range(25):
                movement_type = rng.choice(["in", "out"])
                quantity = rng.randint(1, 15)
                expected = max(0, expected + (quantity if movement_type == "in" else -quantity))
                assert _apply(p.id, (movement_type, quantity)) == expected
            assert db.session.get(Product, p.id).current_stock == expected

    def test_scenario_out_3_then_out_20(self, make_product):
        p = make_product(sku="A1", current_stock=10, reorder_point=5)

        assert _apply(p.id, ("out", 3)) == 7
        assert p.id not in {a.id for a in ledger_service.get_alerts()}

        assert _apply(p.id, ("out", 20)) == 0
        alerts = ledger_service.get_alerts()
        assert p.id in {a.id for a in alerts}
        assert db.session.get(Product, p.id).stock_status == "out_of_stock"


# =============================================================================
# INPUT VALIDATION
# =============================================================================


class TestMovementValidation:
    """Rejected movements leave no row and no counter change."""

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2.0", "1e3", True, None, "abc", MAX_INTEGER + 1, 10**19])
    def test_rejects_bad_quantity(self, make_product, quantity):
        p = make_product(current_stock=5)
        with pytest.raises(ValidationError):
            ledger_service.record_movement(product_id=p.id, quantity=quantity, movement_type="in")
        assert db.session.get(Product, p.id).current_stock == 5
        assert db.session.query(StockMovement).count() == 0

    @pytest.mark.parametrize("movement_type", ["IN", "adjust", "", None, 1])
    def test_rejects_bad_type(self, make_product, movement_type):
        p = make_product(current_stock=5)
        with pytest.raises(ValidationError):
            ledger_service.record_movement(product_id=p.id, quantity=1, movement_type=movement_type)
        assert db.session.query(StockMovement).count() == 0

    def test_digit_string_quantity_accepted(self, make_product):
        p = make_product(current_stock=5)
        _, new_stock = ledger_service.record_movement(product_id=p.id, quantity="4", movement_type="in")
        assert new_stock == 9

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            ledger_service.record_movement(product_id=999, quantity=1, movement_type="in")
        assert db.session.query(StockMovement).count() == 0

    def test_deleted_product_rejects_movements(self, make_product):
        p = make_product(current_stock=5)
        products_service.delete_product(product_id=p.id)
        with pytest.raises(NotFoundError):
            ledger_service.record_movement(product_id=p.id, quantity=1, movement_type="in")
        assert db.session.get(Product, p.id).current_stock == 5

    def test_in_past_integer_ceiling_rejected(self, make_product):
        p = make_product(current_stock=MAX_INTEGER - 2)
        with pytest.raises(ValidationError):
            ledger_service.record_movement(product_id=p.id, quantity=3, movement_type="in")
        assert db.session.get(Product, p.id).current_stock == MAX_INTEGER - 2
        assert db.session.query(StockMovement).count() == 0

        _, new_stock = ledger_service.record_movement(product_id=p.id, quantity=2, movement_type="in")
        assert new_stock == MAX_INTEGER

    @pytest.mark.parametrize("value", [MAX_INTEGER + 1, -MAX_INTEGER - 1, str(MAX_INTEGER + 1)])
    def test_coerce_int_bounds(self, value):
        with pytest.raises(ValidationError):
            coerce_int("n", value)
        assert coerce_int("n", str(MAX_INTEGER)) == MAX_INTEGER

    def test_null_reason_stored_as_empty(self, make_product):
        p = make_product(current_stock=5)
        movement, _ = ledger_service.record_movement(
            product_id=p.id, quantity=1, movement_type="in", reason=None,
        )
        assert movement.reason == ""


# =============================================================================
# STOCK STATUS / ALERTS
# =============================================================================


class TestAlerts:
    """Alert set is the inclusive predicate current_stock <= reorder_point."""

    def test_status_boundaries(self, make_product):
        assert make_product(sku="Z", current_stock=0, reorder_point=5).stock_status == "out_of_stock"
        assert make_product(sku="L", current_stock=5, reorder_point=5).stock_status == "low_stock"
        assert make_product(sku="I", current_stock=6, reorder_point=5).stock_status == "in_stock"
        # zero reorder point: zero stock is still out of stock
        assert make_product(sku="Z0", current_stock=0, reorder_point=0).stock_status == "out_of_stock"

    def test_alerts_match_predicate(self, make_product):
        rng = random.Random(99)
        for i in range(30):
            make_product(
                sku=f"P{i:02d}",
                current_stock=rng.randint(0, 15),
                reorder_point=rng.randint(0, 10),
            )

        expected = {
            p.id for p in db.session.query(Product).all()
            if p.current_stock <= p.reorder_point
        }
        assert {p.id for p in ledger_service.get_alerts()} == expected

    def test_alerts_ordered_lowest_first_then_sku(self, make_product):
        make_product(sku="B", current_stock=3, reorder_point=5)
        make_product(sku="A", current_stock=3, reorder_point=5)
        make_product(sku="C", current_stock=0, reorder_point=5)
        make_product(sku="D", current_stock=50, reorder_point=5)

        assert [p.sku for p in ledger_service.get_alerts()] == ["C", "A", "B"]

    def test_alerts_exclude_deleted(self, make_product):
        p = make_product(sku="GONE", current_stock=0)
        products_service.delete_product(product_id=p.id)
        assert ledger_service.get_alerts() == []


# =============================================================================
# TOP / BOTTOM REPORT
# =============================================================================


class TestTopAndBottom:
    def test_top_and_low(self, make_product):
        for i, stock in enumerate([5, 40, 12, 0, 40, 7, 19]):
            make_product(sku=f"S{i}", current_stock=stock)

        report = ledger_service.get_top_and_bottom_stock(3)
        assert [p.current_stock for p in report["topStock"]] == [40, 40, 19]
        assert [p.sku for p in report["topStock"]][:2] == ["S1", "S4"]
        assert [p.current_stock for p in report["lowStock"]] == [0, 5, 7]

    def test_fewer_products_than_n(self, make_product):
        make_product(sku="ONLY", current_stock=1)
        report = ledger_service.get_top_and_bottom_stock(5)
        assert [p.sku for p in report["topStock"]] == ["ONLY"]
        assert [p.sku for p in report["lowStock"]] == ["ONLY"]

    @pytest.mark.parametrize("n", [0, -3, "x"])
    def test_rejects_bad_n(self, db_session, n):
        with pytest.raises(ValidationError):
            ledger_service.get_top_and_bottom_stock(n)


# =============================================================================
# MOVEMENT LOG / REPLAY
# =============================================================================


class TestMovementLog:
    def test_list_newest_first_with_filter(self, make_product, user):
        a = make_product(sku="A", current_stock=5)
        b = make_product(sku="B", current_stock=5)
        m1, _ = ledger_service.record_movement(product_id=a.id, quantity=1, movement_type="in", user_id=user.id)
        m2, _ = ledger_service.record_movement(product_id=b.id, quantity=2, movement_type="out")
        m3, _ = ledger_service.record_movement(product_id=a.id, quantity=3, movement_type="out")

        assert [m.id for m in ledger_service.list_movements()] == [m3.id, m2.id, m1.id]
        assert [m.id for m in ledger_service.list_movements(product_id=a.id)] == [m3.id, m1.id]
        assert [m.id for m in ledger_service.list_movements(limit=1)] == [m3.id]

        row = ledger_service.list_movements(product_id=a.id)[-1].to_dict(include_related=True)
        assert row["product"] == {"name": "Product A", "sku": "A"}
        assert row["user"]["email"] == user.email

    def test_recompute_matches_counter(self, make_product):
        p = make_product(current_stock=5)
        _apply(p.id, ("out", 10), ("in", 3), ("in", 4), ("out", 2))

        result = ledger_service.recompute_stock(p.id)
        assert result["stored"] == 5
        assert result["replayed"] == 5
        assert result["movements"] == 4
        assert result["consistent"] is True

    def test_recompute_detects_drift(self, make_product):
        p = make_product(current_stock=5)
        _apply(p.id, ("in", 1))
        db.session.query(Product).filter_by(id=p.id).update({"current_stock": 42})
        db.session.commit()

        result = ledger_service.recompute_stock(p.id)
        assert result["consistent"] is False
        assert result["replayed"] == 6

    def test_replay_uses_movement_sign(self, make_product):
        p = make_product(current_stock=2)
        _apply(p.id, ("out", 5), ("in", 4))
        movements = db.session.query(StockMovement).order_by(StockMovement.id).all()
        assert [m.signed_quantity for m in movements] == [-5, 4]
        assert ledger_service.replay_stock(2, movements) == 4
        assert ledger_service.replay_stock(10, movements) == 9
