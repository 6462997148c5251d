"""
Order lifecycle: creation, confirmation, cancellation and item edits, with
the stock ledger checked after every transition.
"""

from datetime import date

import pytest

from backoffice.models import Customer, Order, StockMovement
from backoffice.services import order_service
from backoffice.validation import ConflictError, NotFoundError, ValidationError


def _two_line_items(product_a, product_b):
    return [
        {"product_id": product_a.id, "quantity": 10},
        {"product_id": product_b.id, "quantity": 3},
    ]


def _movements_for(session, order_id):
    return session.query(StockMovement).filter_by(order_id=order_id).order_by(StockMovement.id).all()


# =============================================================================
# CREATION
# =============================================================================


class TestCreateOrder:

    def test_create_reserves_stock_per_line(self, db_session, sales_rep, customer, product_a, product_b):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=_two_line_items(product_a, product_b),
        )

        assert order.status == "NEW"
        assert order.stock_reserved is True
        assert order.total_amount_cents == 110000

        movements = _movements_for(db_session, order.id)
        assert [(m.product_id, m.direction, m.quantity, m.movement_type) for m in movements] == [
            (product_a.id, "OUT", 10, "SALES_OUT"),
            (product_b.id, "OUT", 3, "SALES_OUT"),
        ]
        assert product_a.current_stock == 90
        assert product_b.current_stock == 47

    def test_movement_records_previous_and_new_stock(self, db_session, sales_rep, customer, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 4}],
        )

        movement = _movements_for(db_session, order.id)[0]
        assert movement.previous_stock == 100
        assert movement.new_stock == 96
        assert movement.reference == order.order_number

    def test_line_discount_reduces_total(self, db_session, sales_rep, customer, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 2, "price_cents": 4000, "discount_cents": 500}],
        )

        assert order.subtotal_cents == 8000
        assert order.total_amount_cents == 7500

    def test_insufficient_stock_rolls_back_everything(self, db_session, sales_rep, customer, product_a, product_b):
        with pytest.raises(ConflictError, match="Insufficient stock for Widget B: available 50, requested 60"):
            order_service.create_order(
                sales_user_id=sales_rep.id,
                customer_id=customer.id,
                items=[
                    {"product_id": product_a.id, "quantity": 10},
                    {"product_id": product_b.id, "quantity": 60},
                ],
            )

        assert db_session.query(Order).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert product_a.current_stock == 100

    def test_requires_confirmation_holds_no_stock(self, db_session, sales_rep, customer, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 5}],
            requires_confirmation=True,
        )

        assert order.status == "PENDING_CONFIRMATION"
        assert order.stock_reserved is False
        assert _movements_for(db_session, order.id) == []
        assert product_a.current_stock == 100

    def test_non_sales_user_rejected(self, db_session, warehouse, customer, product_a):
        with pytest.raises(ValidationError, match="does not have the SALES role"):
            order_service.create_order(
                sales_user_id=warehouse.id,
                customer_id=customer.id,
                items=[{"product_id": product_a.id, "quantity": 1}],
            )

    def test_empty_items_rejected(self, db_session, sales_rep, customer):
        with pytest.raises(ValidationError, match="at least one item"):
            order_service.create_order(sales_user_id=sales_rep.id, customer_id=customer.id, items=[])

    def test_unknown_product_rejected(self, db_session, sales_rep, customer):
        with pytest.raises(NotFoundError):
            order_service.create_order(
                sales_user_id=sales_rep.id,
                customer_id=customer.id,
                items=[{"product_id": 999, "quantity": 1}],
            )

    def test_customer_name_resolves_case_insensitively(self, db_session, sales_rep, customer, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_name="  TOKO maju ",
            items=[{"product_id": product_a.id, "quantity": 1}],
        )

        assert order.customer_id == customer.id
        assert db_session.query(Customer).count() == 1

    def test_unknown_customer_name_is_created(self, db_session, sales_rep, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_name="Warung Baru",
            items=[{"product_id": product_a.id, "quantity": 1}],
        )

        assert order.customer.name == "Warung Baru"

    def test_order_numbers_are_sequential_per_month(self, db_session, sales_rep, customer, product_a):
        numbers = [
            order_service.create_order(
                sales_user_id=sales_rep.id,
                customer_id=customer.id,
                items=[{"product_id": product_a.id, "quantity": 1}],
                order_date=on_date,
            ).order_number
            for on_date in (date(2025, 2, 1), date(2025, 2, 20), date(2025, 3, 1))
        ]

        assert numbers == ["ORD-202502-001", "ORD-202502-002", "ORD-202503-001"]


# =============================================================================
# CONFIRMATION
# =============================================================================


class TestConfirmOrder:

    @pytest.fixture
    def pending_order(self, db_session, sales_rep, customer, product_a):
        return order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 5}],
            requires_confirmation=True,
        )

    def test_approve_reserves_stock(self, db_session, admin, pending_order, product_a):
        order = order_service.confirm_order(pending_order.id, approve=True, confirmed_by=admin.id)

        assert order.status == "NEW"
        assert order.stock_reserved is True
        assert order.confirmed_by_user_id == admin.id
        assert order.confirmed_at is not None
        assert product_a.current_stock == 95

    def test_reject_cancels_without_stock(self, db_session, admin, pending_order, product_a):
        order = order_service.confirm_order(
            pending_order.id, approve=False, confirmed_by=admin.id, notes="Customer on hold"
        )

        assert order.status == "CANCELED"
        assert order.cancel_reason == "Customer on hold"
        assert _movements_for(db_session, order.id) == []
        assert product_a.current_stock == 100

    def test_confirm_twice_conflicts(self, db_session, admin, pending_order):
        order_service.confirm_order(pending_order.id, approve=True, confirmed_by=admin.id)

        with pytest.raises(ConflictError, match="is not awaiting confirmation"):
            order_service.confirm_order(pending_order.id, approve=True, confirmed_by=admin.id)


# =============================================================================
# PROCESSING / CANCELLATION
# =============================================================================


class TestOrderTransitions:

    @pytest.fixture
    def new_order(self, db_session, sales_rep, customer, product_a, product_b):
        return order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=_two_line_items(product_a, product_b),
        )

    def test_process_then_complete(self, db_session, warehouse, new_order):
        order = order_service.start_processing(new_order.id, user_id=warehouse.id)
        assert order.status == "IN_PROCESS"

        order = order_service.complete_order(new_order.id, user_id=warehouse.id)
        assert order.status == "COMPLETED"
        assert order.completed_at is not None

    def test_complete_directly_from_new(self, db_session, warehouse, new_order):
        assert order_service.complete_order(new_order.id, user_id=warehouse.id).status == "COMPLETED"

    def test_cancel_releases_reserved_stock(self, db_session, admin, new_order, product_a, product_b):
        order = order_service.cancel_order(new_order.id, reason="Customer changed mind", user_id=admin.id)

        assert order.status == "CANCELED"
        assert order.stock_reserved is False
        assert product_a.current_stock == 100
        assert product_b.current_stock == 50

        releases = [m for m in _movements_for(db_session, order.id) if m.direction == "IN"]
        assert sorted((m.product_id, m.quantity, m.movement_type) for m in releases) == sorted([
            (product_a.id, 10, "ORDER_RELEASE_IN"),
            (product_b.id, 3, "ORDER_RELEASE_IN"),
        ])

    def test_cancel_requires_reason(self, db_session, admin, new_order):
        with pytest.raises(ValidationError, match="reason is required"):
            order_service.cancel_order(new_order.id, reason="  ", user_id=admin.id)

    def test_cancel_completed_order_conflicts(self, db_session, admin, warehouse, new_order):
        order_service.complete_order(new_order.id, user_id=warehouse.id)

        with pytest.raises(ConflictError):
            order_service.cancel_order(new_order.id, reason="Too late", user_id=admin.id)

    def test_cancel_pending_order_moves_nothing(self, db_session, admin, sales_rep, customer, product_a):
        pending = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 5}],
            requires_confirmation=True,
        )

        order_service.cancel_order(pending.id, reason="Duplicate", user_id=admin.id)

        assert _movements_for(db_session, pending.id) == []
        assert product_a.current_stock == 100

    def test_unknown_order_not_found(self, db_session, admin):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(999, reason="x", user_id=admin.id)


# =============================================================================
# ITEM EDITS
# =============================================================================


class TestUpdateOrderItems:

    def test_replacing_items_moves_reservation(self, db_session, sales_rep, customer, product_a, product_b):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 10}],
        )

        order = order_service.update_order_items(
            order.id,
            items=[{"product_id": product_b.id, "quantity": 2}],
            user_id=sales_rep.id,
        )

        assert product_a.current_stock == 100
        assert product_b.current_stock == 48
        assert order.total_amount_cents == 40000
        assert [item.product_id for item in order.items] == [product_b.id]

    def test_edit_after_processing_conflicts(self, db_session, sales_rep, warehouse, customer, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 1}],
        )
        order_service.start_processing(order.id, user_id=warehouse.id)

        with pytest.raises(ConflictError):
            order_service.update_order_items(
                order.id, items=[{"product_id": product_a.id, "quantity": 2}], user_id=sales_rep.id
            )


class TestListOrders:

    def test_filters_by_status_and_rep(self, db_session, sales_rep, second_sales_rep, customer, product_a):
        for rep, needs_confirmation in ((sales_rep, False), (sales_rep, True), (second_sales_rep, False)):
            order_service.create_order(
                sales_user_id=rep.id,
                customer_id=customer.id,
                items=[{"product_id": product_a.id, "quantity": 1}],
                requires_confirmation=needs_confirmation,
            )

        orders, total = order_service.list_orders(sales_user_id=sales_rep.id)
        assert total == 2

        orders, total = order_service.list_orders(status="new")
        assert total == 2
        assert all(o.status == "NEW" for o in orders)
