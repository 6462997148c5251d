"""
Pytest fixtures for the back-office tests.

Provides the application, a fresh database per test, staff users for each
role, a customer and two stocked products.
"""

from datetime import date

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Customer, Product, User
from backoffice.services import invoice_service, payment_service


@pytest.fixture(scope='session')
def app():
    """One app per run on an in-memory SQLite database."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PREPARATION_ELIGIBLE_PAYMENT_STATUSES': ('PAID',),
        'ALLOW_OVERPAYMENT': False,
        'DEFAULT_PAYMENT_TERMS_DAYS': 30,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table, then hand the test the scoped session."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def _make_user(session, username, role, name=None):
    user = User(username=username, name=name or username.title(), role=role, is_active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    return _make_user(db_session, "owner", "OWNER")


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "ADMIN")


@pytest.fixture(scope='function')
def sales_rep(db_session):
    return _make_user(db_session, "sales", "SALES", name="Sari Sales")


@pytest.fixture(scope='function')
def second_sales_rep(db_session):
    return _make_user(db_session, "sales2", "SALES", name="Budi Sales")


@pytest.fixture(scope='function')
def warehouse(db_session):
    return _make_user(db_session, "warehouse", "WAREHOUSE")


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Toko Maju", name_key="toko maju")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product_a(db_session):
    product = Product(code="SKU-A", name="Widget A", price_cents=5000, cost_cents=3000,
                      min_stock=5, current_stock=100)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    product = Product(code="SKU-B", name="Widget B", price_cents=20000, cost_cents=12000,
                      min_stock=5, current_stock=50)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def paid_invoice(db_session, customer, product_a):
    """
    Factory for a fully paid single-line invoice.

    Usage:
        paid_invoice(total_cents=500000, invoice_date=date(2025, 1, 15), user=sales_rep)
    """
    def _create(*, total_cents, invoice_date, user, quantity=1, product=None):
        product = product or product_a
        if total_cents % quantity:
            raise ValueError("total_cents must divide evenly by quantity")
        invoice = invoice_service.create_invoice(
            customer_id=customer.id,
            items=[{"product_id": product.id, "quantity": quantity, "price_cents": total_cents // quantity}],
            user_id=user.id,
            invoice_date=invoice_date,
            due_date=invoice_date,
        )
        payment_service.add_payment(invoice.id, amount_cents=total_cents, user_id=user.id,
                                    payment_date=invoice_date)
        return invoice

    return _create


@pytest.fixture(scope='function')
def today():
    return date(2025, 2, 15)
