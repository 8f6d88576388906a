from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from shopledger.db import q, x
from shopledger.services.activity import log_activity
from shopledger.utils import in_range, iso_now, iso_today, parse_ts

if TYPE_CHECKING:
    from shopledger.auth import User

logger = logging.getLogger(__name__)

EXPENSE_CATEGORIES = ("Rent", "Utilities", "Supplies", "Marketing", "Salaries", "Shipping", "Equipment", "Other")


@dataclass
class Expense:
    id: int
    owner_id: int
    name: str
    category: str
    amount: float
    expense_date: str
    description: str = ""
    user_name: str = ""
    created_at: str = ""
    updated_at: Optional[str] = None


def _row_to_expense(r) -> Expense:
    return Expense(
        id=int(r["id"]),
        owner_id=int(r["owner_id"]),
        name=str(r["name"]),
        category=str(r["category"]),
        amount=float(r["amount"]),
        expense_date=str(r["expense_date"]),
        description=str(r["description"] or ""),
        user_name=str(r["user_name"] or ""),
        created_at=str(r["created_at"]),
        updated_at=r["updated_at"],
    )


def _clean(fields: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if "name" in fields:
        name = str(fields["name"] or "").strip()
        if not name:
            raise ValueError("Expense name is required.")
        out["name"] = name
    if "category" in fields:
        if fields["category"] not in EXPENSE_CATEGORIES:
            raise ValueError(f"Category must be one of: {', '.join(EXPENSE_CATEGORIES)}")
        out["category"] = fields["category"]
    if "amount" in fields:
        try:
            amount = float(fields["amount"])
        except (TypeError, ValueError):
            raise ValueError("Amount must be a number.")
        if amount <= 0:
            raise ValueError("Amount must be > 0.")
        out["amount"] = round(amount, 2)
    if "description" in fields:
        out["description"] = str(fields["description"] or "").strip()
    if "expense_date" in fields:
        d = parse_ts(fields["expense_date"]) if fields["expense_date"] else None
        out["expense_date"] = d.date().isoformat() if d else iso_today()
    return out


def add_expense(
    conn,
    user: "User",
    *,
    name: str,
    category: str,
    amount: float,
    description: str = "",
    expense_date: Optional[Union[str, date]] = None,
) -> int:
    f = _clean(
        {"name": name, "category": category, "amount": amount,
         "description": description, "expense_date": expense_date}
    )
    expense_id = x(
        conn,
        """
        INSERT INTO expenses (owner_id, name, category, amount, description, expense_date, user_name, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(user.id),
            f["name"],
            f["category"],
            f["amount"],
            f["description"],
            f["expense_date"],
            user.name,
            iso_now(),
        ),
    )
    log_activity(
        conn, user, "EXPENSE_ADDED", f"Added expense: {f['name']} (RS {f['amount']:.2f})", {"expense_id": expense_id}
    )
    return expense_id


def get_expense(conn, owner_id: int, expense_id: int) -> Optional[Expense]:
    rows = q(conn, "SELECT * FROM expenses WHERE id=? AND owner_id=?", (int(expense_id), int(owner_id)))
    return _row_to_expense(rows[0]) if rows else None


def update_expense(conn, user: "User", expense_id: int, **updates: Any) -> Expense:
    current = get_expense(conn, user.id, expense_id)
    if current is None:
        raise ValueError("Expense not found.")
    f = _clean(updates)
    if f:
        assignments = ", ".join(f"{k}=?" for k in f)
        x(
            conn,
            f"UPDATE expenses SET {assignments}, updated_at=? WHERE id=? AND owner_id=?",
            (*f.values(), iso_now(), int(expense_id), int(user.id)),
        )
        log_activity(
            conn,
            user,
            "EXPENSE_UPDATED",
            f"Updated expense: {f.get('name', current.name)}",
            {"expense_id": int(expense_id)},
        )
    return get_expense(conn, user.id, expense_id)


def delete_expense(conn, user: "User", expense_id: int) -> None:
    current = get_expense(conn, user.id, expense_id)
    if current is None:
        raise ValueError("Expense not found.")
    x(conn, "DELETE FROM expenses WHERE id=? AND owner_id=?", (int(expense_id), int(user.id)))
    log_activity(conn, user, "EXPENSE_DELETED", f"Deleted expense: {current.name}", {"expense_id": int(expense_id)})


def list_expenses(
    conn,
    owner_id: int,
    *,
    category: Optional[str] = None,
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> list[Expense]:
    rows = q(
        conn,
        "SELECT * FROM expenses WHERE owner_id=? ORDER BY expense_date DESC, created_at DESC, id DESC",
        (int(owner_id),),
    )
    out = [_row_to_expense(r) for r in rows]
    if category and category != "All":
        out = [e for e in out if e.category == category]
    if start is not None or end is not None:
        out = [e for e in out if in_range(e.expense_date, start, end)]
    return out


def totals_by_category(expenses: Iterable[Expense]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for e in expenses:
        totals[e.category] = round(totals.get(e.category, 0.0) + float(e.amount), 2)
    return totals


def total_expenses(expenses: Iterable[Expense]) -> float:
    return round(sum(float(e.amount) for e in expenses), 2)
