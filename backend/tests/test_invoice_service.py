"""
Invoice creation from orders and standalone, plus the DRAFT/SENT/CANCELLED
lifecycle and overdue marking.
"""

from datetime import date, timedelta

import pytest

from backoffice.services import invoice_service, order_service, payment_service, purchase_order_service
from backoffice.validation import ConflictError, ValidationError


@pytest.fixture
def completed_order(db_session, sales_rep, warehouse, customer, product_a, product_b):
    order = order_service.create_order(
        sales_user_id=sales_rep.id,
        customer_id=customer.id,
        items=[
            {"product_id": product_a.id, "quantity": 10},
            {"product_id": product_b.id, "quantity": 3},
        ],
        order_date=date(2025, 2, 1),
    )
    return order_service.complete_order(order.id, user_id=warehouse.id)


# =============================================================================
# FROM ORDER
# =============================================================================


class TestCreateInvoiceFromOrder:

    def test_copies_lines_and_totals(self, db_session, admin, completed_order):
        invoice = invoice_service.create_invoice_from_order(
            completed_order.id, user_id=admin.id, invoice_date=date(2025, 2, 3)
        )

        assert invoice.order_id == completed_order.id
        assert invoice.customer_id == completed_order.customer_id
        assert invoice.total_amount_cents == 110000
        assert invoice.remaining_amount_cents == 110000
        assert invoice.status == "DRAFT"
        assert invoice.payment_status == "UNPAID"
        assert invoice.status_preparation == "WAITING_PREPARATION"
        assert [(i.product_id, i.quantity) for i in invoice.items] == [
            (i.product_id, i.quantity) for i in completed_order.items
        ]

    def test_code_format(self, db_session, admin, completed_order):
        invoice = invoice_service.create_invoice_from_order(
            completed_order.id, user_id=admin.id, invoice_date=date(2025, 2, 3)
        )
        assert invoice.code == "INV-202502-0001"

    def test_default_due_date_uses_payment_terms(self, db_session, admin, completed_order):
        invoice = invoice_service.create_invoice_from_order(
            completed_order.id, user_id=admin.id, invoice_date=date(2025, 2, 3)
        )
        assert invoice.due_date == date(2025, 2, 3) + timedelta(days=30)

    def test_explicit_payment_terms(self, db_session, admin, completed_order):
        invoice = invoice_service.create_invoice_from_order(
            completed_order.id, user_id=admin.id, invoice_date=date(2025, 2, 3), payment_terms_days=14
        )
        assert invoice.due_date == date(2025, 2, 17)

    def test_order_must_be_completed(self, db_session, admin, sales_rep, customer, product_a):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 1}],
        )

        with pytest.raises(ConflictError, match="must be COMPLETED"):
            invoice_service.create_invoice_from_order(order.id, user_id=admin.id)

    def test_order_invoiced_once(self, db_session, admin, completed_order):
        invoice_service.create_invoice_from_order(completed_order.id, user_id=admin.id)

        with pytest.raises(ConflictError, match="already invoiced"):
            invoice_service.create_invoice_from_order(completed_order.id, user_id=admin.id)

    def test_unconfirmed_purchase_order_blocks_invoicing(self, db_session, admin, completed_order):
        purchase_order_service.create_purchase_order(completed_order.id, user_id=admin.id)

        with pytest.raises(ConflictError, match="stock is not confirmed"):
            invoice_service.create_invoice_from_order(completed_order.id, user_id=admin.id)

    def test_confirmed_purchase_order_supplies_financials(
        self, db_session, admin, warehouse, sales_rep, customer, product_a
    ):
        order = order_service.create_order(
            sales_user_id=sales_rep.id,
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 20}],
        )
        po = purchase_order_service.create_purchase_order(
            order.id, user_id=admin.id, discount_cents=10000, tax_rate_bps=1100, shipping_cost_cents=2500
        )
        purchase_order_service.confirm_purchase_order_stock(po.id, actor_id=warehouse.id)
        order_service.complete_order(order.id, user_id=warehouse.id)

        invoice = invoice_service.create_invoice_from_order(order.id, user_id=admin.id)

        # (100000 - 10000) * 11% = 9900 tax, plus 2500 shipping
        assert invoice.subtotal_cents == 100000
        assert invoice.tax_cents == 9900
        assert invoice.total_amount_cents == 102400
        assert invoice.purchase_order_id == po.id
        assert po.status == "COMPLETED"


# =============================================================================
# STANDALONE
# =============================================================================


class TestCreateInvoice:

    def test_price_defaults_to_product_price(self, db_session, admin, customer, product_b):
        invoice = invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product_b.id, "quantity": 2}],
            user_id=admin.id,
            invoice_date=date(2025, 2, 1),
        )
        assert invoice.total_amount_cents == 40000

    def test_creating_an_invoice_moves_no_stock(self, db_session, admin, customer, product_b):
        invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product_b.id, "quantity": 2}],
            user_id=admin.id,
        )
        assert product_b.current_stock == 50

    def test_due_date_before_invoice_date_rejected(self, db_session, admin, customer, product_a):
        with pytest.raises(ValidationError, match="Due date cannot be before"):
            invoice_service.create_invoice(
                customer_id=customer.id,
                items=[{"product_id": product_a.id, "quantity": 1}],
                user_id=admin.id,
                invoice_date=date(2025, 2, 10),
                due_date=date(2025, 2, 9),
            )

    def test_discount_larger_than_subtotal_rejected(self, db_session, admin, customer, product_a):
        with pytest.raises(ValidationError, match="Discount cannot exceed"):
            invoice_service.create_invoice(
                customer_id=customer.id,
                items=[{"product_id": product_a.id, "quantity": 1}],
                user_id=admin.id,
                discount_cents=6000,
            )

    def test_zero_total_rejected(self, db_session, admin, customer, product_a):
        with pytest.raises(ValidationError, match="total must be greater than zero"):
            invoice_service.create_invoice(
                customer_id=customer.id,
                items=[{"product_id": product_a.id, "quantity": 1, "price_cents": 0}],
                user_id=admin.id,
            )

        assert invoice_service.list_invoices() == ([], 0)


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestInvoiceLifecycle:

    @pytest.fixture
    def draft(self, db_session, admin, customer, product_a):
        return invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 2}],
            user_id=admin.id,
            invoice_date=date(2025, 1, 2),
            due_date=date(2025, 1, 31),
        )

    def test_send_only_from_draft(self, db_session, admin, draft):
        assert invoice_service.send_invoice(draft.id, user_id=admin.id).status == "SENT"

        with pytest.raises(ConflictError, match="Only DRAFT"):
            invoice_service.send_invoice(draft.id, user_id=admin.id)

    def test_cancel_also_cancels_preparation(self, db_session, admin, draft):
        invoice = invoice_service.cancel_invoice(draft.id, reason="Duplicate", user_id=admin.id)

        assert invoice.status == "CANCELLED"
        assert invoice.status_preparation == "CANCELLED_PREPARATION"
        assert invoice.cancel_reason == "Duplicate"

    def test_cannot_cancel_with_payments(self, db_session, admin, draft):
        payment_service.add_payment(draft.id, amount_cents=1000, user_id=admin.id)

        with pytest.raises(ConflictError, match="has payments"):
            invoice_service.cancel_invoice(draft.id, reason="Duplicate", user_id=admin.id)

    def test_mark_overdue(self, db_session, admin, draft):
        invoice_service.send_invoice(draft.id, user_id=admin.id)

        assert invoice_service.mark_overdue_invoices(today=date(2025, 1, 31)) == []
        assert invoice_service.mark_overdue_invoices(today=date(2025, 2, 1)) == [draft.code]
        assert draft.status == "OVERDUE"

    def test_list_filters_by_payment_status(self, db_session, admin, draft, customer, product_a):
        invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": 1}],
            user_id=admin.id,
        )
        payment_service.add_payment(draft.id, amount_cents=10000, user_id=admin.id)

        invoices, total = invoice_service.list_invoices(payment_status="PAID")

        assert total == 1
        assert invoices[0].id == draft.id
