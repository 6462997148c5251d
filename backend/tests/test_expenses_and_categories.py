"""
Operating expenses and product categories.
"""

from datetime import date

import pytest

from backoffice.models import Category
from backoffice.services import category_service, expense_service
from backoffice.validation import ConflictError, NotFoundError, ValidationError


class TestExpenses:

    def test_amount_from_items(self, db_session, admin):
        expense = expense_service.create_expense(
            user_id=admin.id,
            items=[
                {"description": "Diesel", "quantity": 2, "price_cents": 15000},
                {"description": "Toll", "price_cents": 5000},
            ],
            category="Transport",
        )

        assert expense.amount_cents == 35000
        assert expense.transaction_type == "EXPENSE"

    def test_amount_must_match_items(self, db_session, admin):
        with pytest.raises(ValidationError, match="does not match the item total"):
            expense_service.create_expense(
                user_id=admin.id, amount_cents=1, items=[{"description": "Toll", "price_cents": 5000}]
            )

    def test_amount_required_without_items(self, db_session, admin):
        with pytest.raises(ValidationError):
            expense_service.create_expense(user_id=admin.id)

    def test_list_by_date_range(self, db_session, admin):
        for day in (1, 15, 28):
            expense_service.create_expense(user_id=admin.id, amount_cents=100, transaction_date=date(2025, 2, day))

        expenses = expense_service.list_expenses(start_date=date(2025, 2, 10), end_date=date(2025, 2, 20))

        assert [e.transaction_date for e in expenses] == [date(2025, 2, 15)]

    def test_delete(self, db_session, admin):
        expense = expense_service.create_expense(user_id=admin.id, amount_cents=100)
        expense_id = expense.id

        expense_service.delete_expense(expense_id)

        with pytest.raises(NotFoundError):
            expense_service.delete_expense(expense_id)


class TestCategories:

    def test_create_and_list(self, db_session):
        category_service.create_category(name="Snacks")
        category_service.create_category(name="Drinks")

        assert [c.name for c in category_service.list_categories()] == ["Drinks", "Snacks"]

    def test_duplicate_name_conflicts(self, db_session):
        category_service.create_category(name="Snacks")

        with pytest.raises(ConflictError):
            category_service.create_category(name="Snacks")

    def test_category_in_use_cannot_be_deleted(self, db_session, product_a):
        category = category_service.create_category(name="Snacks")
        product_a.category_id = category.id
        db_session.commit()

        with pytest.raises(ConflictError, match="Cannot delete category with existing products"):
            category_service.delete_category(category.id)

    def test_empty_category_deleted(self, db_session):
        category = category_service.create_category(name="Snacks")

        category_service.delete_category(category.id)

        assert db_session.query(Category).count() == 0
