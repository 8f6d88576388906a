"""
Balance sheet: every purchase line (money out, stock in) and sale line
(money in, stock out) on one timeline with a running balance.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Union

import pandas as pd

from shopledger.services.items import Item, inventory_value
from shopledger.services.purchases import Purchase
from shopledger.services.sales import Sale
from shopledger.utils import in_range, parse_ts


@dataclass
class BalanceEntry:
    date: datetime
    entry_type: str  # purchase / sale
    item_name: str
    sku: str
    quantity_change: int
    money_flow: float
    balance: float
    description: str


@dataclass
class BalanceSummary:
    total_purchases: float
    total_sales: float
    net_flow: float
    inventory_value: float


def compute_balance_entries(purchases: Iterable[Purchase], sales: Iterable[Sale]) -> list[BalanceEntry]:
    """
    Entries are ordered newest first; the running balance accumulates in that
    same order, so entries[i].balance is the sum of money_flow over
    entries[0..i].
    """
    entries: list[BalanceEntry] = []

    for p in purchases:
        when = parse_ts(p.purchase_date)
        for l in p.lines:
            entries.append(
                BalanceEntry(
                    date=when,
                    entry_type="purchase",
                    item_name=l.item_name,
                    sku=l.sku or "N/A",
                    quantity_change=int(l.quantity),
                    money_flow=-round(float(l.total_cost), 2),
                    balance=0.0,
                    description=f"Purchased {l.quantity} units @ RS {l.unit_cost:.2f}",
                )
            )

    for s in sales:
        when = parse_ts(s.transaction_date or s.created_at)
        for l in s.lines:
            entries.append(
                BalanceEntry(
                    date=when,
                    entry_type="sale",
                    item_name=l.item_name,
                    sku="N/A",
                    quantity_change=-int(l.quantity),
                    money_flow=round(float(l.line_total), 2),
                    balance=0.0,
                    description=f"Sold {l.quantity} units @ RS {l.unit_price:.2f}",
                )
            )

    entries.sort(key=lambda e: e.date, reverse=True)

    running = 0.0
    for e in entries:
        running = round(running + e.money_flow, 2)
        e.balance = running
    return entries


def balance_summary(items: Iterable[Item], purchases: Iterable[Purchase], sales: Iterable[Sale]) -> BalanceSummary:
    purchase_total = round(sum(p.total_amount for p in purchases), 2)
    sales_total = round(sum(s.total_amount for s in sales), 2)
    return BalanceSummary(
        total_purchases=purchase_total,
        total_sales=sales_total,
        net_flow=round(sales_total - purchase_total, 2),
        inventory_value=inventory_value(items),
    )


def filter_entries(
    entries: Iterable[BalanceEntry],
    *,
    search: str = "",
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> list[BalanceEntry]:
    term = (search or "").strip().lower()
    out = []
    for e in entries:
        if term and not (
            term in e.item_name.lower() or term in e.sku.lower() or term in e.description.lower()
        ):
            continue
        if not in_range(e.date, start, end):
            continue
        out.append(e)
    return out


def entries_frame(entries: Iterable[BalanceEntry]) -> pd.DataFrame:
    rows = [
        {
            "Date": e.date,
            "Type": e.entry_type.upper(),
            "Item": e.item_name,
            "SKU": e.sku,
            "Qty Change": e.quantity_change,
            "Money Flow": e.money_flow,
            "Balance": e.balance,
            "Description": e.description,
        }
        for e in entries
    ]
    return pd.DataFrame(
        rows, columns=["Date", "Type", "Item", "SKU", "Qty Change", "Money Flow", "Balance", "Description"]
    )
