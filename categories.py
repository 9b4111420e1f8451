"""Category lookups and the default category set."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Category, TRANSACTION_TYPES
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#007bff"

DEFAULT_CATEGORIES = [
    # Income
    ("Salary", "income", "#28a745"),
    ("Freelance", "income", "#20c997"),
    ("Investment", "income", "#17a2b8"),
    ("Other Income", "income", "#6f42c1"),

    # Expense
    ("Food", "expense", "#dc3545"),
    ("Transportation", "expense", "#fd7e14"),
    ("Entertainment", "expense", "#6f42c1"),
    ("Utilities", "expense", "#6c757d"),
    ("Healthcare", "expense", "#e83e8c"),
    ("Shopping", "expense", "#ffc107"),
    ("Other", "expense", "#343a40"),
]


def _check_type(category_type: str) -> str:
    if category_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Category type must be one of: {', '.join(TRANSACTION_TYPES)}")
    return category_type


def seed_default_categories(db: Session) -> int:
    """Insert the default categories into an empty table."""
    if db.query(Category).count() > 0:
        return 0
    for name, category_type, color in DEFAULT_CATEGORIES:
        db.add(Category(name=name, type=category_type, color=color))
    db.commit()
    logger.info("Default categories created")
    return len(DEFAULT_CATEGORIES)


def get_categories(db: Session) -> List[Category]:
    return db.query(Category).order_by(Category.type, Category.name).all()


def get_categories_by_type(db: Session, category_type: str) -> List[Category]:
    _check_type(category_type)
    return db.query(Category).filter(Category.type == category_type).order_by(Category.name).all()


def create_category(db: Session, name: str, category_type: str, color: Optional[str] = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    _check_type(category_type)

    exists = db.query(Category).filter(Category.name == name, Category.type == category_type).first()
    if exists:
        raise ValidationError(f"Category '{name}' already exists for {category_type}")

    category = Category(name=name, type=category_type, color=color or DEFAULT_COLOR)
    db.add(category)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(f"Category '{name}' already exists for {category_type}") from exc
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category not found")
    db.delete(category)
    db.commit()


def category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "type": category.type,
        "color": category.color,
    }
