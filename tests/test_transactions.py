"""Tests for transaction storage and analytics queries."""

from datetime import date

import pytest

from errors import NotFoundError, ValidationError
from transactions import (
    add_transaction,
    delete_transaction,
    get_category_stats,
    get_monthly_stats,
    get_transaction,
    get_transaction_stats,
    get_transactions,
    summarize_totals,
    transaction_to_dict,
    update_transaction,
)


@pytest.fixture
def ledger(db, user):
    """A few months of transactions for one user."""
    rows = [
        ("income", 3000, "Salary", date(2024, 1, 1), "January pay"),
        ("expense", 45.5, "Food", date(2024, 1, 3), "Groceries"),
        ("expense", 20, "Food", date(2024, 1, 20), "Lunch"),
        ("expense", 60, "Transportation", date(2024, 2, 2), "Fuel"),
        ("income", 3000, "Salary", date(2024, 2, 1), "February pay"),
        ("expense", 15.25, "Food", date(2024, 2, 14), "Cafe"),
    ]
    return [
        add_transaction(db, user.id, type=t, amount=a, category=c, date=d, description=desc)
        for t, a, c, d, desc in rows
    ]


class TestAddTransaction:

    def test_add(self, db, user):
        txn = add_transaction(db, user.id, type="expense", amount="12.50", category=" Food ",
                              date="2024-03-05", description="  Pizza ")
        assert txn.id is not None
        assert txn.amount == pytest.approx(12.5)
        assert txn.category == "Food"
        assert txn.description == "Pizza"
        assert txn.date == date(2024, 3, 5)
        assert txn.receipt_path is None

    def test_missing_fields(self, db, user):
        with pytest.raises(ValidationError, match="required"):
            add_transaction(db, user.id, type="expense", amount=None, category="Food", date="2024-01-01")

    def test_bad_type(self, db, user):
        with pytest.raises(ValidationError, match="Type"):
            add_transaction(db, user.id, type="transfer", amount=5, category="Food", date="2024-01-01")

    @pytest.mark.parametrize("amount", ["abc", 0, 0.001, -4, "nan"])
    def test_bad_amount(self, db, user, amount):
        with pytest.raises(ValidationError):
            add_transaction(db, user.id, type="expense", amount=amount, category="Food", date="2024-01-01")

    def test_bad_date(self, db, user):
        with pytest.raises(ValidationError, match="Invalid date"):
            add_transaction(db, user.id, type="expense", amount=5, category="Food", date="yesterday")

    def test_datetime_string(self, db, user):
        txn = add_transaction(db, user.id, type="income", amount=5, category="Salary",
                              date="2024-06-30T12:00:00Z")
        assert txn.date == date(2024, 6, 30)

    @pytest.mark.parametrize("value", ["2024-01-15garbage", "2024-01-15 extra", "2024-13-01"])
    def test_trailing_text_rejected(self, db, user, value):
        with pytest.raises(ValidationError, match="Invalid date"):
            add_transaction(db, user.id, type="expense", amount=5, category="Food", date=value)


class TestQueries:

    def test_newest_first(self, db, user, ledger):
        txns = get_transactions(db, user.id)
        assert [t.date for t in txns] == sorted((t.date for t in ledger), reverse=True)

    def test_date_range_inclusive(self, db, user, ledger):
        txns = get_transactions(db, user.id, date(2024, 1, 3), date(2024, 2, 1))
        assert {t.description for t in txns} == {"Groceries", "Lunch", "February pay"}

    def test_single_bound_ignored(self, db, user, ledger):
        assert len(get_transactions(db, user.id, start_date=date(2024, 2, 1))) == len(ledger)

    def test_scoped_to_owner(self, db, user, other_user, ledger):
        assert get_transactions(db, other_user.id) == []
        with pytest.raises(NotFoundError):
            get_transaction(db, other_user.id, ledger[0].id)


class TestUpdateDelete:

    def test_update(self, db, user, ledger):
        txn = update_transaction(db, user.id, ledger[1].id, amount=50, description=" Big shop ")
        assert txn.amount == pytest.approx(50)
        assert txn.description == "Big shop"

    def test_update_validates(self, db, user, ledger):
        with pytest.raises(ValidationError):
            update_transaction(db, user.id, ledger[1].id, type="gift")

    def test_update_unknown_field(self, db, user, ledger):
        with pytest.raises(ValidationError, match="user_id"):
            update_transaction(db, user.id, ledger[1].id, user_id=99)

    @pytest.mark.parametrize("field", ["db", "transaction_id"])
    def test_update_reserved_names(self, db, user, ledger, field):
        with pytest.raises(ValidationError, match=field):
            update_transaction(db, user.id, ledger[1].id, **{field: 1})

    def test_rejected_update_changes_nothing(self, db, user, ledger):
        txn = ledger[1]
        with pytest.raises(ValidationError):
            update_transaction(db, user.id, txn.id, amount=99, description="Changed", date="2024-01-15garbage")
        assert txn.amount == pytest.approx(45.5)
        assert txn.description == "Groceries"
        assert txn.date == date(2024, 1, 3)
        assert not db.is_modified(txn)

    def test_delete(self, db, user, ledger):
        txn_id = ledger[0].id
        delete_transaction(db, user.id, txn_id)
        with pytest.raises(NotFoundError):
            get_transaction(db, user.id, txn_id)

    def test_delete_other_users(self, db, user, other_user, ledger):
        with pytest.raises(NotFoundError):
            delete_transaction(db, other_user.id, ledger[0].id)
        assert get_transaction(db, user.id, ledger[0].id)


class TestStats:

    def test_category_stats(self, db, user, ledger):
        stats = get_category_stats(db, user.id)
        assert stats[0] == {"type": "income", "category": "Salary", "total": 6000.0, "count": 2}
        food = next(s for s in stats if s["category"] == "Food")
        assert food["type"] == "expense"
        assert food["total"] == pytest.approx(80.75)
        assert food["count"] == 3
        totals = [s["total"] for s in stats]
        assert totals == sorted(totals, reverse=True)

    def test_monthly_stats(self, db, user, ledger):
        stats = get_monthly_stats(db, user.id)
        assert [(s["month"], s["type"]) for s in stats] == [
            ("2024-01", "expense"),
            ("2024-01", "income"),
            ("2024-02", "expense"),
            ("2024-02", "income"),
        ]
        assert stats[0]["total"] == pytest.approx(65.5)
        assert stats[2]["total"] == pytest.approx(75.25)

    def test_stats_empty(self, db, user):
        assert get_transaction_stats(db, user.id) == {"stats": [], "monthly_stats": []}

    def test_stats_per_user(self, db, user, other_user, ledger):
        add_transaction(db, other_user.id, type="expense", amount=999, category="Food", date="2024-01-01")
        food = next(s for s in get_category_stats(db, user.id) if s["category"] == "Food")
        assert food["total"] == pytest.approx(80.75)


class TestHelpers:

    def test_summarize_totals(self, ledger):
        summary = summarize_totals(ledger)
        assert summary["income"] == pytest.approx(6000)
        assert summary["expense"] == pytest.approx(140.75)
        assert summary["balance"] == pytest.approx(5859.25)

    def test_summarize_empty(self):
        assert summarize_totals([]) == {"income": 0.0, "expense": 0.0, "balance": 0.0}

    def test_to_dict(self, ledger):
        data = transaction_to_dict(ledger[0])
        assert data["date"] == "2024-01-01"
        assert data["category"] == "Salary"
        assert data["type"] == "income"
