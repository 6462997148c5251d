"""
Receivables aging with a fixed reference date.
"""

from datetime import date, timedelta

import pytest

from backoffice.services import invoice_service, payment_service
from backoffice.services.receivables_service import categorize_days_overdue, receivables_aging
from backoffice.statuses import ReceivableCategory


@pytest.fixture
def make_invoice(db_session, admin, customer, product_a):
    def _create(*, due_days_ago, quantity=1, paid_cents=0):
        due = date(2025, 2, 15) - timedelta(days=due_days_ago)
        invoice = invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product_a.id, "quantity": quantity}],
            user_id=admin.id,
            invoice_date=min(due, date(2025, 2, 15)) - timedelta(days=30),
            due_date=due,
        )
        if paid_cents:
            payment_service.add_payment(invoice.id, amount_cents=paid_cents, user_id=admin.id)
        return invoice

    return _create


class TestCategorize:

    @pytest.mark.parametrize(
        "days,expected",
        [
            (0, ReceivableCategory.CURRENT),
            (1, ReceivableCategory.OVERDUE_1_30),
            (30, ReceivableCategory.OVERDUE_1_30),
            (31, ReceivableCategory.OVERDUE_31_60),
            (60, ReceivableCategory.OVERDUE_31_60),
            (61, ReceivableCategory.OVERDUE_60_PLUS),
        ],
    )
    def test_bucket_edges(self, days, expected):
        assert categorize_days_overdue(days) is expected


class TestReceivablesAging:

    def test_twenty_days_overdue(self, db_session, make_invoice, today):
        invoice = make_invoice(due_days_ago=20)

        report = receivables_aging(today=today)

        row = report["invoices"][0]
        assert row["invoice_id"] == invoice.id
        assert row["days_overdue"] == 20
        assert row["category"] == "OVERDUE_1_30"
        assert row["customer_name"] == "Toko Maju"

    def test_not_yet_due_is_current(self, db_session, make_invoice, today):
        make_invoice(due_days_ago=-10)

        row = receivables_aging(today=today)["invoices"][0]
        assert row["days_overdue"] == 0
        assert row["category"] == "CURRENT"

    def test_paid_invoices_excluded(self, db_session, make_invoice, today):
        make_invoice(due_days_ago=5, paid_cents=5000)

        assert receivables_aging(today=today)["invoices"] == []

    def test_partial_payment_counts_remaining_only(self, db_session, make_invoice, today):
        make_invoice(due_days_ago=45, quantity=4, paid_cents=5000)

        report = receivables_aging(today=today)

        assert report["invoices"][0]["remaining_amount_cents"] == 15000
        assert report["stats"]["buckets"]["OVERDUE_31_60"] == {"count": 1, "amount_cents": 15000}

    def test_stats_and_ordering(self, db_session, make_invoice, today):
        make_invoice(due_days_ago=10)
        make_invoice(due_days_ago=70, quantity=2)
        make_invoice(due_days_ago=-3)

        report = receivables_aging(today=today)
        stats = report["stats"]

        assert [r["days_overdue"] for r in report["invoices"]] == [70, 10, 0]
        assert stats["invoice_count"] == 3
        assert stats["overdue_count"] == 2
        assert stats["total_receivables_cents"] == 20000
        # average covers overdue invoices only
        assert stats["average_days_overdue"] == 40.0
        assert stats["buckets"]["OVERDUE_60_PLUS"]["amount_cents"] == 10000

    def test_category_filter(self, db_session, make_invoice, today):
        make_invoice(due_days_ago=10)
        make_invoice(due_days_ago=70)

        report = receivables_aging(today=today, category="OVERDUE_60_PLUS")

        assert [r["days_overdue"] for r in report["invoices"]] == [70]

    def test_cancelled_invoices_excluded(self, db_session, admin, make_invoice, today):
        invoice = make_invoice(due_days_ago=10)
        invoice_service.cancel_invoice(invoice.id, reason="Void", user_id=admin.id)

        assert receivables_aging(today=today)["invoices"] == []
