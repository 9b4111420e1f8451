"""
transactions.py
---------------
Transaction storage and the aggregate queries behind the analytics views.

All functions take an open SQLAlchemy session and the id of the user who
owns the data; nothing here ever reads another user's transactions.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import desc, extract, func
from sqlalchemy.orm import Session

from database import Transaction, TRANSACTION_TYPES
from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MIN_AMOUNT = 0.01
EDITABLE_FIELDS = ("type", "amount", "category", "description", "date", "receipt_path")


def _parse_type(value) -> str:
    if value not in TRANSACTION_TYPES:
        raise ValidationError(f"Type must be one of: {', '.join(TRANSACTION_TYPES)}")
    return value


def _parse_amount(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a number") from None
    if math.isnan(amount) or math.isinf(amount):
        raise ValidationError("Amount must be a number")
    if amount < MIN_AMOUNT:
        raise ValidationError(f"Amount must be at least {MIN_AMOUNT}")
    return amount


def _parse_category(value) -> str:
    category = (value or "").strip()
    if not category:
        raise ValidationError("Category is required")
    return category


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        # Full timestamps such as 2024-06-30T12:00:00Z keep their calendar date.
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"Invalid date: {value}") from None


def add_transaction(
    db: Session,
    user_id: int,
    type: str,
    amount,
    category: str,
    date,
    description: Optional[str] = "",
    receipt_path: Optional[str] = None,
) -> Transaction:
    """Validate and store a new transaction."""
    if not type or amount in (None, "") or not category or not date:
        raise ValidationError("Type, amount, category, and date are required")

    txn = Transaction(
        user_id=user_id,
        type=_parse_type(type),
        amount=_parse_amount(amount),
        category=_parse_category(category),
        description=(description or "").strip(),
        date=_parse_date(date),
        receipt_path=receipt_path,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    logger.debug("User %s added %s transaction %s", user_id, txn.type, txn.id)
    return txn


def get_transactions(
    db: Session,
    user_id: int,
    start_date=None,
    end_date=None,
) -> List[Transaction]:
    """
    Newest first.  The date range only applies when both bounds are given.
    """
    query = db.query(Transaction).filter(Transaction.user_id == user_id)
    if start_date and end_date:
        query = query.filter(
            Transaction.date >= _parse_date(start_date),
            Transaction.date <= _parse_date(end_date),
        )
    return query.order_by(desc(Transaction.date), desc(Transaction.id)).all()


def get_transaction(db: Session, user_id: int, transaction_id: int) -> Transaction:
    txn = (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
        .first()
    )
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


def update_transaction(db: Session, user_id: int, transaction_id: int, /, **fields) -> Transaction:
    """
    Change some fields of a transaction.  Every value is validated before
    any is applied, so a rejected update leaves the row untouched.
    """
    txn = get_transaction(db, user_id, transaction_id)

    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}")

    parsers = {
        "type": _parse_type,
        "amount": _parse_amount,
        "category": _parse_category,
        "date": _parse_date,
        "description": lambda v: (v or "").strip(),
        "receipt_path": lambda v: v,
    }
    changes = {name: parsers[name](value) for name, value in fields.items()}
    for name, value in changes.items():
        setattr(txn, name, value)

    db.commit()
    db.refresh(txn)
    return txn


def delete_transaction(db: Session, user_id: int, transaction_id: int) -> None:
    txn = get_transaction(db, user_id, transaction_id)
    db.delete(txn)
    db.commit()


# --- Analytics ---

def get_category_stats(db: Session, user_id: int) -> List[dict]:
    """Totals and counts per (type, category), largest total first."""
    total = func.sum(Transaction.amount).label("total")
    rows = (
        db.query(
            Transaction.type,
            Transaction.category,
            total,
            func.count(Transaction.id).label("count"),
        )
        .filter(Transaction.user_id == user_id)
        .group_by(Transaction.type, Transaction.category)
        .order_by(desc(total))
        .all()
    )
    return [
        {"type": r.type, "category": r.category, "total": float(r.total or 0), "count": int(r.count)}
        for r in rows
    ]


def get_monthly_stats(db: Session, user_id: int) -> List[dict]:
    """Totals per calendar month and type, oldest month first."""
    year = extract("year", Transaction.date).label("year")
    month = extract("month", Transaction.date).label("month")
    rows = (
        db.query(year, month, Transaction.type, func.sum(Transaction.amount).label("total"))
        .filter(Transaction.user_id == user_id)
        .group_by(year, month, Transaction.type)
        .all()
    )
    stats = [
        {"month": f"{int(r.year):04d}-{int(r.month):02d}", "type": r.type, "total": float(r.total or 0)}
        for r in rows
    ]
    stats.sort(key=lambda s: (s["month"], s["type"]))
    return stats


def get_transaction_stats(db: Session, user_id: int) -> dict:
    return {
        "stats": get_category_stats(db, user_id),
        "monthly_stats": get_monthly_stats(db, user_id),
    }


def summarize_totals(transactions: Iterable[Transaction]) -> dict:
    """Income, expense and the balance between them."""
    income = 0.0
    expense = 0.0
    for t in transactions:
        if t.type == "income":
            income += t.amount
        else:
            expense += t.amount
    return {"income": income, "expense": expense, "balance": income - expense}


def transaction_to_dict(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "type": txn.type,
        "amount": txn.amount,
        "category": txn.category,
        "description": txn.description or "",
        "date": txn.date.isoformat() if txn.date else None,
        "receipt_path": txn.receipt_path,
    }
