from __future__ import annotations

import io
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

import pandas as pd
from fpdf import FPDF

from shopledger.services.balance import BalanceEntry, BalanceSummary, entries_frame
from shopledger.services.expenses import Expense, total_expenses, totals_by_category
from shopledger.services.items import Item
from shopledger.services.reports import sales_frame, sales_stats
from shopledger.services.sales import Sale
from shopledger.utils import fmt_money, parse_ts

ITEM_COLUMNS = ["Name", "SKU", "Price", "Quantity", "Vendor", "Description"]
EXPENSE_COLUMNS = ["Date", "Name", "Category", "Amount", "Description"]
BALANCE_COLUMNS = ["Date", "Type", "Item", "SKU", "Qty Change", "Money Flow", "Balance"]
SALES_COLUMNS = ["Date", "Type", "Items", "Quantity", "Total", "Payment"]


# -------------------------
# Spreadsheets
# -------------------------

def items_frame(items: Iterable[Item]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Name": i.name,
                "SKU": i.sku,
                "Price": i.price,
                "Quantity": i.quantity,
                "Vendor": i.vendor,
                "Description": i.description,
            }
            for i in items
        ],
        columns=ITEM_COLUMNS,
    )


def expenses_frame(expenses: Iterable[Expense]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": e.expense_date,
                "Name": e.name,
                "Category": e.category,
                "Amount": e.amount,
                "Description": e.description,
            }
            for e in expenses
        ],
        columns=EXPENSE_COLUMNS,
    )


def frame_to_excel(df: pd.DataFrame, sheet_name: str = "Sheet1") -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    return buf.getvalue()


def items_to_excel(items: Iterable[Item]) -> bytes:
    return frame_to_excel(items_frame(items), "Items")


def sales_to_excel(sales: Iterable[Sale]) -> bytes:
    df = sales_frame(sales)
    df["Date"] = df["Date"].astype(str)
    return frame_to_excel(df, "Sales")


def expenses_to_excel(expenses: Iterable[Expense]) -> bytes:
    return frame_to_excel(expenses_frame(expenses), "Expenses")


# -------------------------
# PDF
# -------------------------

def _latin1(value: Any) -> str:
    # Core PDF fonts only cover latin-1
    return str(value).encode("latin-1", "replace").decode("latin-1")


def table_pdf(
    title: str,
    summary_lines: Sequence[str],
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    *,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """Single report: title, generated stamp, summary block, then a grid table."""
    pdf = FPDF(orientation="L" if len(headers) > 6 else "P")
    pdf.set_auto_page_break(auto=True, margin=12)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 18)
    pdf.cell(0, 10, _latin1(title), new_x="LMARGIN", new_y="NEXT")

    pdf.set_font("Helvetica", "", 11)
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M")
    pdf.cell(0, 7, f"Generated: {stamp}", new_x="LMARGIN", new_y="NEXT")
    for line in summary_lines:
        pdf.cell(0, 7, _latin1(line), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    pdf.set_font("Helvetica", "", 8)
    with pdf.table(first_row_as_headings=True) as table:
        head = table.row()
        for h in headers:
            head.cell(_latin1(h))
        for r in rows:
            row = table.row()
            for value in r:
                row.cell(_latin1(value))

    return bytes(pdf.output())


def balance_sheet_pdf(entries: Iterable[BalanceEntry], summary: BalanceSummary, currency: str = "RS") -> bytes:
    df = entries_frame(entries)
    rows = [
        [
            r["Date"].strftime("%Y-%m-%d") if r["Date"] is not None else "",
            r["Type"],
            r["Item"],
            r["SKU"],
            f"+{r['Qty Change']}" if r["Qty Change"] > 0 else str(r["Qty Change"]),
            ("+" if r["Money Flow"] > 0 else "") + fmt_money(r["Money Flow"], currency),
            fmt_money(r["Balance"], currency),
        ]
        for _, r in df.iterrows()
    ]
    return table_pdf(
        "Balance Sheet Report",
        [
            f"Total Purchases: {fmt_money(summary.total_purchases, currency)}",
            f"Total Sales: {fmt_money(summary.total_sales, currency)}",
            f"Net Flow: {fmt_money(summary.net_flow, currency)}",
            f"Inventory Value: {fmt_money(summary.inventory_value, currency)}",
        ],
        BALANCE_COLUMNS,
        rows,
    )


def expenses_pdf(expenses: Iterable[Expense], currency: str = "RS") -> bytes:
    expenses = list(expenses)
    summary = [f"Total Expenses: {fmt_money(total_expenses(expenses), currency)}", "By category:"]
    summary += [f"  {cat}: {fmt_money(amt, currency)}" for cat, amt in sorted(totals_by_category(expenses).items())]
    rows = [
        [e.expense_date, e.name, e.category, fmt_money(e.amount, currency), e.description]
        for e in expenses
    ]
    return table_pdf("Expense Report", summary, EXPENSE_COLUMNS, rows)


def sales_pdf(sales: Iterable[Sale], currency: str = "RS") -> bytes:
    sales = list(sales)
    stats = sales_stats(sales)
    rows = [
        [
            parse_ts(s.transaction_date).strftime("%Y-%m-%d"),
            s.sale_type.capitalize(),
            ", ".join(l.item_name for l in s.lines),
            s.total_quantity,
            fmt_money(s.total_amount, currency),
            " / ".join(
                p for p, on in (("Cash", s.payment.pay_cash), ("Credit", s.payment.pay_credit)) if on
            ),
        ]
        for s in sales
    ]
    return table_pdf(
        "Sales Report",
        [
            f"Total Revenue: {fmt_money(stats.total_revenue, currency)}",
            f"Transactions: {stats.transactions} (retail {stats.retail_count}, wholesale {stats.wholesale_count})",
            f"Average Transaction: {fmt_money(stats.average_transaction, currency)}",
        ],
        SALES_COLUMNS,
        rows,
    )
