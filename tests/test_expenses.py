from datetime import date

import pytest

from shopledger.services.activity import list_activity
from shopledger.services.expenses import (
    EXPENSE_CATEGORIES,
    add_expense,
    delete_expense,
    get_expense,
    list_expenses,
    total_expenses,
    totals_by_category,
    update_expense,
)


def test_categories():
    assert EXPENSE_CATEGORIES == (
        "Rent", "Utilities", "Supplies", "Marketing", "Salaries", "Shipping", "Equipment", "Other"
    )


def test_add_expense_defaults_date_to_today(conn, user):
    eid = add_expense(conn, user, name="Power bill", category="Utilities", amount=1200)
    expense = get_expense(conn, user.id, eid)
    assert expense.expense_date == date.today().isoformat()
    assert expense.amount == 1200.0
    assert expense.user_name == "Owner"
    assert list_activity(conn, user.id, action="EXPENSE_ADDED")


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"category": "Snacks"}, "Category must be one of"),
        ({"amount": 0}, "Amount must be > 0."),
        ({"name": ""}, "Expense name is required."),
    ],
)
def test_add_expense_validation(conn, user, kwargs, message):
    fields = {"name": "Rent", "category": "Rent", "amount": 100.0, **kwargs}
    with pytest.raises(ValueError, match=message):
        add_expense(conn, user, **fields)


def test_update_and_delete_expense(conn, user):
    eid = add_expense(conn, user, name="Flyers", category="Marketing", amount=300, expense_date=date(2026, 4, 2))
    updated = update_expense(conn, user, eid, amount=350, description="Reprint")
    assert updated.amount == 350.0
    assert updated.description == "Reprint"
    assert updated.expense_date == "2026-04-02"
    assert updated.updated_at is not None

    delete_expense(conn, user, eid)
    assert get_expense(conn, user.id, eid) is None
    assert [l.action for l in list_activity(conn, user.id)][:3] == [
        "EXPENSE_DELETED", "EXPENSE_UPDATED", "EXPENSE_ADDED"
    ]


def test_list_expenses_filters_and_totals(conn, user):
    add_expense(conn, user, name="Shop rent", category="Rent", amount=5000, expense_date="2026-01-01")
    add_expense(conn, user, name="Water", category="Utilities", amount=150.5, expense_date="2026-01-15")
    add_expense(conn, user, name="Power", category="Utilities", amount=849.5, expense_date="2026-02-01")

    everything = list_expenses(conn, user.id)
    assert [e.name for e in everything] == ["Power", "Water", "Shop rent"]
    assert total_expenses(everything) == 6000.0
    assert totals_by_category(everything) == {"Utilities": 1000.0, "Rent": 5000.0}

    assert list_expenses(conn, user.id, category="All") == everything
    assert [e.name for e in list_expenses(conn, user.id, category="Utilities")] == ["Power", "Water"]
    january = list_expenses(conn, user.id, start=date(2026, 1, 1), end=date(2026, 1, 31))
    assert [e.name for e in january] == ["Water", "Shop rent"]


def test_expenses_are_scoped_to_owner(conn, user, other_user):
    eid = add_expense(conn, user, name="Rent", category="Rent", amount=1)
    assert list_expenses(conn, other_user.id) == []
    with pytest.raises(ValueError, match="Expense not found."):
        delete_expense(conn, other_user, eid)
