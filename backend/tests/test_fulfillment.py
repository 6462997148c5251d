"""
Warehouse preparation and delivery of invoices.

Preparation only advances for invoices whose payment status meets the
configured threshold; deliveries only start from READY_FOR_DELIVERY.
"""

from datetime import date

import pytest

from backoffice.models import StockMovement
from backoffice.services import (
    delivery_service,
    invoice_service,
    order_service,
    payment_service,
    preparation_service,
)
from backoffice.statuses import PaymentStatus
from backoffice.validation import ConflictError, ValidationError


@pytest.fixture
def unpaid_invoice(db_session, admin, customer, product_a):
    return invoice_service.create_invoice(
        customer_id=customer.id,
        items=[{"product_id": product_a.id, "quantity": 4}],
        user_id=admin.id,
        invoice_date=date(2025, 2, 1),
    )


@pytest.fixture
def paid(db_session, admin, unpaid_invoice):
    payment_service.add_payment(unpaid_invoice.id, amount_cents=20000, user_id=admin.id)
    return unpaid_invoice


@pytest.fixture
def ready(db_session, warehouse, paid):
    preparation_service.confirm_preparation(paid.id, new_status="PREPARING", actor_id=warehouse.id)
    return preparation_service.confirm_preparation(paid.id, new_status="READY_FOR_DELIVERY", actor_id=warehouse.id)


@pytest.fixture
def ready_from_order(db_session, admin, sales_rep, warehouse, customer, product_a):
    order = order_service.create_order(
        sales_user_id=sales_rep.id,
        customer_id=customer.id,
        items=[{"product_id": product_a.id, "quantity": 4}],
        order_date=date(2025, 2, 1),
    )
    order_service.complete_order(order.id, user_id=warehouse.id)
    invoice = invoice_service.create_invoice_from_order(order.id, user_id=admin.id, invoice_date=date(2025, 2, 1))
    payment_service.add_payment(invoice.id, amount_cents=invoice.total_amount_cents, user_id=admin.id)
    preparation_service.confirm_preparation(invoice.id, new_status="PREPARING", actor_id=warehouse.id)
    return preparation_service.confirm_preparation(
        invoice.id, new_status="READY_FOR_DELIVERY", actor_id=warehouse.id
    )

# =============================================================================
# ELIGIBILITY
# =============================================================================


class TestEligibility:

    def test_default_threshold_is_paid(self, app):
        with app.app_context():
            assert preparation_service.eligible_payment_statuses() == (PaymentStatus.PAID,)

    def test_partially_paid_not_eligible_by_default(self, db_session, admin, unpaid_invoice):
        payment_service.add_payment(unpaid_invoice.id, amount_cents=5000, user_id=admin.id)

        assert preparation_service.is_eligible_for_preparation(unpaid_invoice) is False
        assert preparation_service.is_eligible_for_preparation(
            unpaid_invoice, eligible_statuses=(PaymentStatus.PAID, PaymentStatus.PARTIALLY_PAID)
        ) is True

    def test_queues_share_the_predicate(self, db_session, admin, customer, product_a, paid):
        invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 1}],
            user_id=admin.id,
        )

        queue = preparation_service.get_preparation_queue()
        waiting = preparation_service.get_waiting_for_preparation()

        assert [i.id for i in queue] == [paid.id]
        assert [i.id for i in waiting] == [paid.id]


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestConfirmPreparation:

    def test_forward_steps(self, db_session, warehouse, paid):
        invoice = preparation_service.confirm_preparation(
            paid.id, new_status="PREPARING", actor_id=warehouse.id, notes="Picking"
        )
        assert invoice.status_preparation == "PREPARING"
        assert invoice.prepared_by_user_id == warehouse.id
        assert invoice.preparation_notes == "Picking"

        invoice = preparation_service.confirm_preparation(
            paid.id, new_status="READY_FOR_DELIVERY", actor_id=warehouse.id
        )
        assert invoice.status_preparation == "READY_FOR_DELIVERY"
        assert invoice.preparation_notes == "Picking"
        assert [i.id for i in preparation_service.get_ready_for_delivery()] == [paid.id]

    def test_unpaid_invoice_cannot_advance(self, db_session, warehouse, unpaid_invoice):
        with pytest.raises(ConflictError, match="not eligible"):
            preparation_service.confirm_preparation(unpaid_invoice.id, new_status="PREPARING", actor_id=warehouse.id)

    def test_skipping_a_step_conflicts(self, db_session, warehouse, paid):
        with pytest.raises(ConflictError, match="Invalid preparation transition"):
            preparation_service.confirm_preparation(
                paid.id, new_status="READY_FOR_DELIVERY", actor_id=warehouse.id
            )

    def test_initial_state_cannot_be_set(self, db_session, warehouse, paid):
        with pytest.raises(ValidationError):
            preparation_service.confirm_preparation(
                paid.id, new_status="WAITING_PREPARATION", actor_id=warehouse.id
            )

    def test_cancel_preparation_before_delivery(self, db_session, warehouse, unpaid_invoice):
        invoice = preparation_service.confirm_preparation(
            unpaid_invoice.id, new_status="CANCELLED_PREPARATION", actor_id=warehouse.id
        )
        assert invoice.status_preparation == "CANCELLED_PREPARATION"


# =============================================================================
# DELIVERIES
# =============================================================================


class TestDeliveries:

    def test_delivery_requires_ready_invoice(self, db_session, warehouse, paid):
        with pytest.raises(ConflictError, match="not ready for delivery"):
            delivery_service.create_delivery(paid.id, user_id=warehouse.id)

    def test_one_delivery_per_invoice(self, db_session, warehouse, ready):
        delivery = delivery_service.create_delivery(ready.id, user_id=warehouse.id, vehicle_number="B 1234 XY")

        assert delivery.status == "PENDING"
        assert [(i.product_id, i.quantity) for i in delivery.items] == [(i.product_id, i.quantity) for i in ready.items]
        assert preparation_service.get_ready_for_delivery() == []

        with pytest.raises(ConflictError, match="Invoice already has delivery"):
            delivery_service.create_delivery(ready.id, user_id=warehouse.id)

    def test_full_journey_moves_no_stock(self, db_session, warehouse, ready, product_a):
        delivery = delivery_service.create_delivery(ready.id, user_id=warehouse.id)
        delivery_service.update_delivery_status(delivery.id, new_status="IN_TRANSIT", user_id=warehouse.id)
        delivery = delivery_service.update_delivery_status(delivery.id, new_status="DELIVERED", user_id=warehouse.id)

        assert delivery.status == "DELIVERED"
        assert delivery.completed_at is not None
        assert db_session.query(StockMovement).count() == 0
        assert product_a.current_stock == 100

    def test_return_puts_reserved_goods_back(self, db_session, warehouse, ready_from_order, product_a):
        assert product_a.current_stock == 96
        delivery = delivery_service.create_delivery(ready_from_order.id, user_id=warehouse.id)
        delivery_service.update_delivery_status(delivery.id, new_status="IN_TRANSIT", user_id=warehouse.id)

        delivery = delivery_service.update_delivery_status(
            delivery.id, new_status="RETURNED", user_id=warehouse.id, return_reason="Shop closed"
        )

        assert delivery.return_reason == "Shop closed"
        movement = db_session.query(StockMovement).filter_by(delivery_id=delivery.id).one()
        assert (movement.movement_type, movement.direction, movement.quantity) == ("RETURN_IN", "IN", 4)
        assert product_a.current_stock == 100

    def test_standalone_invoice_return_moves_no_stock(self, db_session, warehouse, ready, product_a):
        delivery = delivery_service.create_delivery(ready.id, user_id=warehouse.id)

        delivery = delivery_service.update_delivery_status(
            delivery.id, new_status="RETURNED", user_id=warehouse.id, return_reason="Wrong address"
        )

        assert delivery.status == "RETURNED"
        assert db_session.query(StockMovement).filter_by(delivery_id=delivery.id).count() == 0
        assert product_a.current_stock == 100

    def test_return_requires_reason(self, db_session, warehouse, ready):
        delivery = delivery_service.create_delivery(ready.id, user_id=warehouse.id)

        with pytest.raises(ValidationError, match="return reason is required"):
            delivery_service.update_delivery_status(delivery.id, new_status="RETURNED", user_id=warehouse.id)

    def test_delivered_cannot_go_back_in_transit(self, db_session, warehouse, ready):
        delivery = delivery_service.create_delivery(ready.id, user_id=warehouse.id)
        delivery_service.update_delivery_status(delivery.id, new_status="IN_TRANSIT", user_id=warehouse.id)
        delivery_service.update_delivery_status(delivery.id, new_status="DELIVERED", user_id=warehouse.id)

        with pytest.raises(ConflictError, match="Invalid delivery transition"):
            delivery_service.update_delivery_status(delivery.id, new_status="IN_TRANSIT", user_id=warehouse.id)

    def test_delivery_blocks_preparation_cancel(self, db_session, warehouse, ready):
        delivery_service.create_delivery(ready.id, user_id=warehouse.id)

        with pytest.raises(ConflictError, match="has a delivery"):
            preparation_service.confirm_preparation(
                ready.id, new_status="CANCELLED_PREPARATION", actor_id=warehouse.id
            )
