from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from shopledger.db import q, x
from shopledger.services.expenses import EXPENSE_CATEGORIES, add_expense
from shopledger.services.items import add_item, get_item, list_items
from shopledger.services.purchases import build_purchase_line, create_purchase
from shopledger.services.sales import Payment, add_to_cart, create_sale

if TYPE_CHECKING:
    from shopledger.auth import User


DEMO_ITEMS = [
    # name, price, vendor
    ("Notebook A5", 120.0, "Paper House"),
    ("Ballpoint Pen Blue", 25.0, "Paper House"),
    ("Stapler", 450.0, "Office Depot"),
    ("Glue Stick", 60.0, "Office Depot"),
    ("Highlighter Set", 280.0, "Color Co"),
    ("Sticky Notes", 90.0, "Color Co"),
]


def wipe_owner_data(conn, owner_id: int) -> None:
    # Activity history is append-only and stays.
    oid = int(owner_id)
    x(conn, "DELETE FROM sale_lines WHERE sale_id IN (SELECT id FROM sales WHERE owner_id=?)", (oid,))
    x(conn, "DELETE FROM sales WHERE owner_id=?", (oid,))
    x(conn, "DELETE FROM purchase_lines WHERE purchase_id IN (SELECT id FROM purchases WHERE owner_id=?)", (oid,))
    x(conn, "DELETE FROM purchases WHERE owner_id=?", (oid,))
    x(conn, "DELETE FROM expenses WHERE owner_id=?", (oid,))
    x(conn, "DELETE FROM items WHERE owner_id=?", (oid,))


def load_demo_data(conn, user: "User", *, seed: int = 7) -> None:
    rng = random.Random(seed)
    now = datetime.now(timezone.utc).replace(microsecond=0)

    existing = {i.name.lower() for i in list_items(conn, user.id)}
    for name, price, vendor in DEMO_ITEMS:
        if name.lower() not in existing:
            add_item(conn, user, name=name, price=price, quantity=0, vendor=vendor, description="Demo item")

    items = list_items(conn, user.id)

    # Stock in: one purchase per supplier mixing box and unit lines, spread over the last week
    for i, vendor in enumerate(sorted({i.vendor for i in items if i.vendor})):
        lines = []
        for n, item in enumerate(it for it in items if it.vendor == vendor):
            if n % 2 == 0:
                lines.append(
                    build_purchase_line(
                        item_id=item.id, item_name=item.name, sku=item.sku,
                        quantity=rng.randint(2, 5), cost=round(item.price * 12 * 0.6, 2), pricing_type="bulk",
                    )
                )
            else:
                lines.append(
                    build_purchase_line(
                        item_id=item.id, item_name=item.name, sku=item.sku,
                        quantity=rng.randint(20, 60), cost=round(item.price * 0.65, 2),
                    )
                )
        create_purchase(
            conn, user, supplier_name=vendor, lines=lines, notes="Demo purchase",
            purchase_date=now - timedelta(days=8 - i),
        )

    # A few retail and wholesale sales
    for day in range(5, -1, -1):
        cart = []
        stocked = [get_item(conn, user.id, it.id) for it in items]
        available = [s for s in stocked if s.quantity >= 3]
        if not available:
            break
        for item in rng.sample(available, k=min(2, len(available))):
            add_to_cart(cart, item, rng.randint(1, 3))
        create_sale(
            conn, user, sale_type="retail", cart=cart, payment=Payment(pay_cash=True),
            purchaser_name="Walk-in", transaction_date=now - timedelta(days=day, hours=2),
        )

        if day % 2 == 0:
            stocked = [get_item(conn, user.id, it.id) for it in items]
            item = max(stocked, key=lambda s: s.quantity)
            if item.quantity >= 12:
                total = round(12 * item.price, 2)
                create_sale(
                    conn, user, sale_type="wholesale", cart=add_to_cart([], item, 12),
                    payment=Payment(pay_cash=True, pay_credit=True, cash_amount=round(total / 2, 2),
                                    credit_amount=round(total - round(total / 2, 2), 2)),
                    purchaser_name="Corner Shop", transaction_date=now - timedelta(days=day, hours=1),
                )

    for i, category in enumerate(EXPENSE_CATEGORIES[:5]):
        add_expense(
            conn, user, name=f"{category} (demo)", category=category,
            amount=round(rng.uniform(500, 5000), 2), expense_date=(now - timedelta(days=i * 3)).date(),
        )


def owner_counts(conn, owner_id: int) -> list[dict]:
    oid = int(owner_id)
    out = []
    for table, extra in (
        ("items", ""),
        ("sales", ""),
        ("purchases", " AND deleted=0"),
        ("expenses", ""),
        ("activity_logs", ""),
    ):
        n = q(conn, f"SELECT COUNT(*) AS n FROM {table} WHERE owner_id=?{extra}", (oid,))[0]["n"]
        out.append({"table_name": table, "n": int(n)})
    return out
