# Overview: Service-layer operations for product categories; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import get_session
from ..models import Category, Product
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text
from .concurrency import run_with_retry


def create_category(*, name: str, description: str | None = None, session=None) -> Category:
    session = get_session(session)

    def _op():
        clean_name = clean_text(name, max_length=128)
        if not clean_name:
            raise ValidationError("Category name is required")
        if session.query(Category).filter(Category.name == clean_name).first():
            raise ConflictError(f"Category {clean_name!r} already exists")

        category = Category(name=clean_name, description=clean_text(description))
        session.add(category)
        session.commit()
        return category

    return run_with_retry(_op, session=session)


def delete_category(category_id: int, *, session=None) -> None:
    session = get_session(session)

    def _op():
        category = session.get(Category, category_id)
        if not category:
            raise NotFoundError(f"Category {category_id} not found")

        in_use = session.query(Product.id).filter(Product.category_id == category_id).first()
        if in_use:
            raise ConflictError(
                "Cannot delete category with existing products. Please remove all products first."
            )

        session.delete(category)
        session.commit()

    return run_with_retry(_op, session=session)


def list_categories(*, session=None) -> list[Category]:
    session = get_session(session)
    return session.query(Category).order_by(Category.name.asc()).all()
