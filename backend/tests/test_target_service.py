"""
Sales target CRUD and period validation.
"""

import pytest

from backoffice.models import SalesTarget
from backoffice.services import target_service
from backoffice.validation import ConflictError, NotFoundError, ValidationError


class TestCreateTarget:

    def test_create(self, db_session, sales_rep):
        target = target_service.create_sales_target(
            user_id=sales_rep.id, target_type="quarterly", target_period="2025-Q1", target_amount_cents=5000000
        )

        assert target.target_type == "QUARTERLY"
        assert target.is_active is True

    def test_duplicate_period_conflicts(self, db_session, sales_rep):
        target_service.create_sales_target(
            user_id=sales_rep.id, target_type="MONTHLY", target_period="2025-02", target_amount_cents=100
        )

        with pytest.raises(ConflictError, match="already exists"):
            target_service.create_sales_target(
                user_id=sales_rep.id, target_type="MONTHLY", target_period="2025-02", target_amount_cents=200
            )

    def test_same_period_for_different_users(self, db_session, sales_rep, second_sales_rep):
        for rep in (sales_rep, second_sales_rep):
            target_service.create_sales_target(
                user_id=rep.id, target_type="MONTHLY", target_period="2025-02", target_amount_cents=100
            )

        assert db_session.query(SalesTarget).count() == 2

    def test_period_must_match_type(self, db_session, sales_rep):
        with pytest.raises(ValidationError, match="Invalid MONTHLY period '2025-Q1': expected format YYYY-MM"):
            target_service.create_sales_target(
                user_id=sales_rep.id, target_type="MONTHLY", target_period="2025-Q1", target_amount_cents=100
            )

    def test_amount_must_be_positive(self, db_session, sales_rep):
        with pytest.raises(ValidationError, match="greater than zero"):
            target_service.create_sales_target(
                user_id=sales_rep.id, target_type="YEARLY", target_period="2025", target_amount_cents=0
            )


class TestModifyTarget:

    @pytest.fixture
    def target(self, db_session, sales_rep):
        return target_service.create_sales_target(
            user_id=sales_rep.id, target_type="MONTHLY", target_period="2025-02", target_amount_cents=100
        )

    def test_update_revalidates_period_against_new_type(self, db_session, target):
        with pytest.raises(ValidationError):
            target_service.update_sales_target(target.id, target_type="YEARLY")

        updated = target_service.update_sales_target(target.id, target_type="YEARLY", target_period="2025")
        assert (updated.target_type, updated.target_period) == ("YEARLY", "2025")

    def test_update_into_existing_period_conflicts(self, db_session, sales_rep, target):
        other = target_service.create_sales_target(
            user_id=sales_rep.id, target_type="MONTHLY", target_period="2025-03", target_amount_cents=100
        )

        with pytest.raises(ConflictError):
            target_service.update_sales_target(other.id, target_period="2025-02")

    def test_toggle_flips_active(self, db_session, target):
        assert target_service.toggle_sales_target(target.id).is_active is False
        assert target_service.toggle_sales_target(target.id).is_active is True

    def test_delete(self, db_session, target):
        target_service.delete_sales_target(target.id)

        with pytest.raises(NotFoundError):
            target_service.delete_sales_target(target.id)

    def test_list_active_only(self, db_session, target):
        target_service.toggle_sales_target(target.id)

        assert target_service.list_sales_targets(active_only=True) == []
        assert len(target_service.list_sales_targets()) == 1
