from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import pandas as pd

from shopledger.services.items import Item, inventory_value
from shopledger.services.sales import Sale
from shopledger.utils import parse_ts, safe_div

DATE_PRESETS = (
    "today",
    "yesterday",
    "this_week",
    "last_week",
    "this_month",
    "last_month",
    "this_year",
    "last_year",
)


@dataclass
class SalesStats:
    total_revenue: float
    transactions: int
    average_transaction: float
    retail_count: int
    wholesale_count: int


@dataclass
class DashboardStats:
    total_items: int
    inventory_value: float
    total_sales: int
    total_revenue: float
    retail_sales: int
    wholesale_sales: int


def sales_stats(sales: Iterable[Sale]) -> SalesStats:
    sales = list(sales)
    revenue = round(sum(s.total_amount for s in sales), 2)
    return SalesStats(
        total_revenue=revenue,
        transactions=len(sales),
        average_transaction=round(safe_div(revenue, len(sales)), 2),
        retail_count=sum(1 for s in sales if s.sale_type == "retail"),
        wholesale_count=sum(1 for s in sales if s.sale_type == "wholesale"),
    )


def dashboard_stats(items: Iterable[Item], sales: Iterable[Sale]) -> DashboardStats:
    items = list(items)
    stats = sales_stats(sales)
    return DashboardStats(
        total_items=len(items),
        inventory_value=inventory_value(items),
        total_sales=stats.transactions,
        total_revenue=stats.total_revenue,
        retail_sales=stats.retail_count,
        wholesale_sales=stats.wholesale_count,
    )


def sales_frame(sales: Iterable[Sale]) -> pd.DataFrame:
    rows = []
    for s in sales:
        payment = []
        if s.payment.pay_cash:
            payment.append(f"Cash {s.payment.cash_amount:.2f}")
        if s.payment.pay_credit:
            payment.append(f"Credit {s.payment.credit_amount:.2f}")
        rows.append(
            {
                "Date": parse_ts(s.transaction_date),
                "Type": s.sale_type.capitalize(),
                "Items": ", ".join(l.item_name for l in s.lines),
                "Quantity": s.total_quantity,
                "Total": s.total_amount,
                "Payment": " / ".join(payment),
                "Purchaser": s.purchaser_name or "",
            }
        )
    return pd.DataFrame(rows, columns=["Date", "Type", "Items", "Quantity", "Total", "Payment", "Purchaser"])


def daily_revenue(sales: Iterable[Sale]) -> pd.DataFrame:
    """Revenue and transaction count per calendar day, oldest first."""
    df = pd.DataFrame(
        [{"date": parse_ts(s.transaction_date).date(), "revenue": s.total_amount} for s in sales],
        columns=["date", "revenue"],
    )
    if df.empty:
        return pd.DataFrame(columns=["date", "revenue", "count"])
    out = df.groupby("date").agg(revenue=("revenue", "sum"), count=("revenue", "size")).reset_index()
    out["revenue"] = out["revenue"].round(2)
    return out.sort_values("date").reset_index(drop=True)


def last_n_days_revenue(sales: Iterable[Sale], days: int = 7, today: Optional[date] = None) -> pd.DataFrame:
    """One row per day for the last `days` days (today included), zero-filled."""
    today = today or date.today()
    window = [today - timedelta(days=i) for i in range(days - 1, -1, -1)]
    daily = daily_revenue(sales)
    by_day = {r["date"]: (float(r["revenue"]), int(r["count"])) for _, r in daily.iterrows()}
    return pd.DataFrame(
        [
            {
                "date": d,
                "day": d.strftime("%a"),
                "revenue": by_day.get(d, (0.0, 0))[0],
                "count": by_day.get(d, (0.0, 0))[1],
            }
            for d in window
        ],
        columns=["date", "day", "revenue", "count"],
    )


def date_range_for_preset(preset: str, today: Optional[date] = None) -> tuple[datetime, datetime]:
    """Inclusive (start, end) datetimes for a named period. Weeks start on Sunday."""
    today = today or date.today()

    def span(start: date, end: date) -> tuple[datetime, datetime]:
        return datetime.combine(start, time.min), datetime.combine(end, time.max)

    if preset == "today":
        return span(today, today)
    if preset == "yesterday":
        y = today - timedelta(days=1)
        return span(y, y)
    if preset in ("this_week", "last_week"):
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        if preset == "last_week":
            start -= timedelta(days=7)
        return span(start, start + timedelta(days=6))
    if preset == "this_month":
        start = today.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        return span(start, next_month - timedelta(days=1))
    if preset == "last_month":
        end = today.replace(day=1) - timedelta(days=1)
        return span(end.replace(day=1), end)
    if preset == "this_year":
        return span(date(today.year, 1, 1), date(today.year, 12, 31))
    if preset == "last_year":
        return span(date(today.year - 1, 1, 1), date(today.year - 1, 12, 31))
    raise ValueError(f"Unknown date preset: {preset}")
