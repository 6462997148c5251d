"""
Stock ledger tests: production, manual adjustments and physical counts.

Every change to Product.current_stock must come with exactly one
StockMovement whose previous/new values bracket the change.
"""

import pytest

from backoffice.models import StockMovement, StockOpname
from backoffice.services import stock_service
from backoffice.services.stock_service import record_movement
from backoffice.validation import ConflictError, ValidationError


def _ledger(session, product_id):
    return (
        session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id)
        .all()
    )


class TestRecordMovement:

    def test_out_beyond_stock_conflicts(self, db_session, product_b):
        with pytest.raises(ConflictError, match="available 50, requested 51"):
            record_movement(
                product_id=product_b.id, quantity=51, direction="OUT", movement_type="ADJUSTMENT_OUT"
            )

    def test_zero_quantity_rejected(self, db_session, product_b):
        with pytest.raises(ValidationError):
            record_movement(product_id=product_b.id, quantity=0, direction="IN", movement_type="ADJUSTMENT_IN")


# =============================================================================
# PRODUCTION
# =============================================================================


class TestProduction:

    def test_production_adds_stock(self, db_session, warehouse, product_a):
        log = stock_service.create_production_log(
            items=[{"product_id": product_a.id, "quantity": 500}], user_id=warehouse.id
        )

        assert log.status == "COMPLETED"
        assert product_a.current_stock == 600
        movement = _ledger(db_session, product_a.id)[-1]
        assert (movement.movement_type, movement.direction, movement.quantity) == ("PRODUCTION_IN", "IN", 500)
        assert (movement.previous_stock, movement.new_stock) == (100, 600)

    def test_delete_restores_stock_exactly(self, db_session, warehouse, product_a):
        log = stock_service.create_production_log(
            items=[{"product_id": product_a.id, "quantity": 500}], user_id=warehouse.id
        )

        voided = stock_service.delete_production_log(log.id, user_id=warehouse.id)

        assert voided.status == "VOIDED"
        assert voided.voided_by_user_id == warehouse.id
        assert product_a.current_stock == 100
        assert [m.movement_type for m in _ledger(db_session, product_a.id)] == [
            "PRODUCTION_IN", "PRODUCTION_VOID_OUT",
        ]

    def test_void_twice_conflicts(self, db_session, warehouse, product_a):
        log = stock_service.create_production_log(
            items=[{"product_id": product_a.id, "quantity": 5}], user_id=warehouse.id
        )
        stock_service.delete_production_log(log.id, user_id=warehouse.id)

        with pytest.raises(ConflictError, match="already voided"):
            stock_service.delete_production_log(log.id, user_id=warehouse.id)

        assert product_a.current_stock == 100

    def test_void_after_units_consumed_conflicts(self, db_session, warehouse, product_a):
        log = stock_service.create_production_log(
            items=[{"product_id": product_a.id, "quantity": 50}], user_id=warehouse.id
        )
        stock_service.create_stock_adjustment(
            kind="OUT", items=[{"product_id": product_a.id, "quantity": 120}], user_id=warehouse.id
        )

        with pytest.raises(ConflictError, match="Insufficient stock"):
            stock_service.delete_production_log(log.id, user_id=warehouse.id)

        assert product_a.current_stock == 30


# =============================================================================
# ADJUSTMENTS
# =============================================================================


class TestAdjustments:

    def test_in_and_out(self, db_session, warehouse, product_a):
        stock_service.create_stock_adjustment(
            kind="IN", items=[{"product_id": product_a.id, "quantity": 7}], user_id=warehouse.id
        )
        stock_service.create_stock_adjustment(
            kind="OUT", items=[{"product_id": product_a.id, "quantity": 2, "notes": "Damaged"}], user_id=warehouse.id
        )

        assert product_a.current_stock == 105
        assert [m.movement_type for m in _ledger(db_session, product_a.id)] == ["ADJUSTMENT_IN", "ADJUSTMENT_OUT"]

    def test_signed_opname_adjustment(self, db_session, warehouse, product_a, product_b):
        stock_service.create_stock_adjustment(
            kind="OPNAME_ADJUSTMENT",
            items=[
                {"product_id": product_a.id, "quantity": -4},
                {"product_id": product_b.id, "quantity": 6},
            ],
            user_id=warehouse.id,
        )

        assert product_a.current_stock == 96
        assert product_b.current_stock == 56

    def test_negative_quantity_rejected_for_plain_adjustment(self, db_session, warehouse, product_a):
        with pytest.raises(ValidationError):
            stock_service.create_stock_adjustment(
                kind="IN", items=[{"product_id": product_a.id, "quantity": -1}], user_id=warehouse.id
            )

    def test_failed_line_rolls_back_whole_adjustment(self, db_session, warehouse, product_a, product_b):
        with pytest.raises(ConflictError):
            stock_service.create_stock_adjustment(
                kind="OUT",
                items=[
                    {"product_id": product_a.id, "quantity": 10},
                    {"product_id": product_b.id, "quantity": 999},
                ],
                user_id=warehouse.id,
            )

        assert product_a.current_stock == 100
        assert db_session.query(StockMovement).count() == 0


# =============================================================================
# OPNAME
# =============================================================================


class TestStockOpname:

    def test_matching_count_completes_immediately(self, db_session, warehouse, product_a):
        opname = stock_service.create_stock_opname(
            items=[{"product_id": product_a.id, "physical_stock": 100}], user_id=warehouse.id
        )

        assert opname.status == "COMPLETED"
        assert opname.items[0].difference == 0

    def test_differences_wait_for_reconciliation(self, db_session, warehouse, product_a, product_b):
        opname = stock_service.create_stock_opname(
            items=[
                {"product_id": product_a.id, "physical_stock": 97},
                {"product_id": product_b.id, "physical_stock": 52},
            ],
            user_id=warehouse.id,
        )

        assert opname.status == "RECONCILED"
        assert sorted(item.difference for item in opname.items) == [-3, 2]
        assert product_a.current_stock == 100

        opname = stock_service.reconcile_stock_opname(opname.id, user_id=warehouse.id)

        assert opname.status == "COMPLETED"
        assert product_a.current_stock == 97
        assert product_b.current_stock == 52
        assert {m.movement_type for m in db_session.query(StockMovement).all()} == {"OPNAME_ADJUSTMENT"}

    def test_reconcile_once(self, db_session, warehouse, product_a):
        opname = stock_service.create_stock_opname(
            items=[{"product_id": product_a.id, "physical_stock": 90}], user_id=warehouse.id
        )
        stock_service.reconcile_stock_opname(opname.id, user_id=warehouse.id)

        with pytest.raises(ConflictError, match="no pending differences"):
            stock_service.reconcile_stock_opname(opname.id, user_id=warehouse.id)

    def test_manual_adjustment_leaves_opname_pending(self, db_session, warehouse, product_a):
        opname = stock_service.create_stock_opname(
            items=[{"product_id": product_a.id, "physical_stock": 90}], user_id=warehouse.id
        )
        opname_id = opname.id

        stock_service.create_stock_adjustment(
            kind="OPNAME_ADJUSTMENT", items=[{"product_id": product_a.id, "quantity": -2}], user_id=warehouse.id
        )
        db_session.expire_all()

        assert db_session.get(StockOpname, opname_id).status == "RECONCILED"
        assert product_a.current_stock == 98

        opname = stock_service.reconcile_stock_opname(opname_id, user_id=warehouse.id)
        assert opname.status == "COMPLETED"

    def test_product_counted_twice_rejected(self, db_session, warehouse, product_a):
        with pytest.raises(ValidationError, match="counted twice"):
            stock_service.create_stock_opname(
                items=[
                    {"product_id": product_a.id, "physical_stock": 1},
                    {"product_id": product_a.id, "physical_stock": 2},
                ],
                user_id=warehouse.id,
            )


class TestStockQueries:

    def test_low_stock_uses_minimum(self, db_session, warehouse, product_a, product_b):
        stock_service.create_stock_adjustment(
            kind="OUT", items=[{"product_id": product_b.id, "quantity": 46}], user_id=warehouse.id
        )

        assert [p.id for p in stock_service.get_low_stock_products()] == [product_b.id]

    def test_movements_filter_by_type(self, db_session, warehouse, product_a):
        stock_service.create_stock_adjustment(
            kind="IN", items=[{"product_id": product_a.id, "quantity": 1}], user_id=warehouse.id
        )
        stock_service.create_production_log(
            items=[{"product_id": product_a.id, "quantity": 2}], user_id=warehouse.id
        )

        movements = stock_service.get_stock_movements(movement_type="PRODUCTION_IN")
        assert [m.quantity for m in movements] == [2]
