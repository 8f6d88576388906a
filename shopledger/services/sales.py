from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional, Union

from shopledger.db import q, x
from shopledger.services.activity import log_activity
from shopledger.services.items import Item, adjust_quantity
from shopledger.utils import in_range, iso_now, to_iso

if TYPE_CHECKING:
    from shopledger.auth import User

logger = logging.getLogger(__name__)

SALE_TYPES = ("retail", "wholesale")
RETAIL_MAX_QTY = 11
WHOLESALE_MIN_QTY = 12
PAYMENT_TOLERANCE = 0.01


@dataclass
class CartLine:
    item_id: int
    item_name: str
    quantity: int
    unit_price: float
    cash_price: float
    credit_price: float

    @property
    def line_total(self) -> float:
        return round(int(self.quantity) * float(self.unit_price), 2)


@dataclass
class Payment:
    pay_cash: bool = True
    pay_credit: bool = False
    cash_amount: float = 0.0
    credit_amount: float = 0.0


@dataclass
class Sale:
    id: int
    owner_id: int
    sale_type: str
    total_amount: float
    payment: Payment
    transaction_date: str
    created_at: str
    user_name: str = ""
    purchaser_name: Optional[str] = None
    purchaser_contact: Optional[str] = None
    notes: Optional[str] = None
    lines: list[CartLine] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(int(l.quantity) for l in self.lines)


# -------------------------
# Cart
# -------------------------

def add_to_cart(
    cart: list[CartLine],
    item: Item,
    quantity: int,
    *,
    cash_price: Optional[float] = None,
    credit_price: Optional[float] = None,
) -> list[CartLine]:
    """
    Add `quantity` of `item` to the cart, merging with an existing line for
    the same item. The merged quantity may not exceed stock on hand.
    """
    qty = int(quantity)
    if qty <= 0:
        raise ValueError("Please select an item and enter a valid quantity")

    existing = next((c for c in cart if c.item_id == item.id), None)
    already = existing.quantity if existing else 0
    if already + qty > int(item.quantity):
        raise ValueError("Not enough stock available")

    if existing:
        existing.quantity = already + qty
        if cash_price is not None:
            existing.cash_price = float(cash_price)
        if credit_price is not None:
            existing.credit_price = float(credit_price)
        return cart

    price = float(item.price)
    cart.append(
        CartLine(
            item_id=int(item.id),
            item_name=item.name,
            quantity=qty,
            unit_price=price,
            cash_price=float(cash_price) if cash_price is not None else price,
            credit_price=float(credit_price) if credit_price is not None else price,
        )
    )
    return cart


def remove_from_cart(cart: list[CartLine], item_id: int) -> list[CartLine]:
    return [c for c in cart if c.item_id != int(item_id)]


def cart_quantity(cart: list[CartLine]) -> int:
    return sum(int(c.quantity) for c in cart)


def cart_total(cart: list[CartLine]) -> float:
    return round(sum(c.line_total for c in cart), 2)


# -------------------------
# Validation
# -------------------------

def validate_sale_type(sale_type: str, total_quantity: int) -> None:
    if sale_type not in SALE_TYPES:
        raise ValueError("Sale type must be 'retail' or 'wholesale'.")
    if sale_type == "wholesale" and int(total_quantity) < WHOLESALE_MIN_QTY:
        raise ValueError(f"Wholesale sales require minimum {WHOLESALE_MIN_QTY} items")
    if sale_type == "retail" and int(total_quantity) > RETAIL_MAX_QTY:
        raise ValueError(f"Retail sales cannot exceed {RETAIL_MAX_QTY} items")


def validate_payment(total_amount: float, payment: Payment) -> Payment:
    """
    Resolve and check the payment split. A single chosen method with no
    amount entered covers the whole total.
    """
    total = round(float(total_amount), 2)
    if not payment.pay_cash and not payment.pay_credit:
        raise ValueError("Select at least one payment method (cash or credit).")

    cash = float(payment.cash_amount or 0) if payment.pay_cash else 0.0
    credit = float(payment.credit_amount or 0) if payment.pay_credit else 0.0
    if cash < 0 or credit < 0:
        raise ValueError("Payment amounts cannot be negative.")

    if payment.pay_cash and not payment.pay_credit and cash == 0:
        cash = total
    if payment.pay_credit and not payment.pay_cash and credit == 0:
        credit = total

    if round(abs(cash + credit - total), 6) > PAYMENT_TOLERANCE:
        raise ValueError(
            f"Cash ({cash:.2f}) and credit ({credit:.2f}) must add up to the sale total ({total:.2f})."
        )

    return Payment(
        pay_cash=bool(payment.pay_cash),
        pay_credit=bool(payment.pay_credit),
        cash_amount=round(cash, 2),
        credit_amount=round(credit, 2),
    )


# -------------------------
# Writers
# -------------------------

def create_sale(
    conn,
    user: "User",
    *,
    sale_type: str,
    cart: list[CartLine],
    payment: Payment,
    purchaser_name: Optional[str] = None,
    purchaser_contact: Optional[str] = None,
    notes: Optional[str] = None,
    transaction_date: Optional[Union[str, date, datetime]] = None,
) -> int:
    """
    Record a sale, then decrement stock for each line.

    The stock updates are separate writes issued after the sale row; a
    failure between them leaves the sale recorded with stock unchanged.
    """
    if not cart:
        raise ValueError("Cart is empty")
    validate_sale_type(sale_type, cart_quantity(cart))

    total = cart_total(cart)
    paid = validate_payment(total, payment)
    now = iso_now()
    tx_date = to_iso(transaction_date) or now

    sale_id = x(
        conn,
        """
        INSERT INTO sales (
            owner_id, sale_type, total_amount,
            pay_cash, pay_credit, cash_amount, credit_amount,
            purchaser_name, purchaser_contact, notes, user_name,
            created_at, transaction_date
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(user.id),
            sale_type,
            float(total),
            int(paid.pay_cash),
            int(paid.pay_credit),
            paid.cash_amount,
            paid.credit_amount,
            (purchaser_name or "").strip() or None,
            (purchaser_contact or "").strip() or None,
            (notes or "").strip() or None,
            user.name,
            now,
            tx_date,
        ),
    )

    for line in cart:
        x(
            conn,
            """
            INSERT INTO sale_lines (
                sale_id, item_id, item_name, quantity,
                unit_price, cash_price, credit_price, line_total
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(sale_id),
                int(line.item_id),
                line.item_name,
                int(line.quantity),
                float(line.unit_price),
                float(line.cash_price),
                float(line.credit_price),
                float(line.line_total),
            ),
        )

    for line in cart:
        adjust_quantity(conn, user.id, line.item_id, -int(line.quantity), user.id)

    logger.info("Sale %s recorded: %s, %d line(s), total %.2f", sale_id, sale_type, len(cart), total)
    log_activity(
        conn,
        user,
        "SALE_COMPLETED",
        f"Completed {sale_type} sale with {len(cart)} items",
        {"sale_id": int(sale_id), "changes": f"Total: RS {total:.2f}"},
    )
    return int(sale_id)


def delete_sale(conn, user: "User", sale_id: int) -> None:
    sale = get_sale(conn, user.id, sale_id)
    if sale is None:
        raise ValueError("Sale not found.")

    for line in sale.lines:
        adjust_quantity(conn, user.id, line.item_id, int(line.quantity), user.id)

    x(conn, "DELETE FROM sale_lines WHERE sale_id=?", (int(sale_id),))
    x(conn, "DELETE FROM sales WHERE id=? AND owner_id=?", (int(sale_id), int(user.id)))
    log_activity(
        conn,
        user,
        "SALE_DELETED",
        f"Deleted {sale.sale_type} sale with {len(sale.lines)} items",
        {"sale_id": int(sale_id), "changes": f"Total: RS {sale.total_amount:.2f}"},
    )


# -------------------------
# Readers
# -------------------------

def _lines_for(conn, sale_ids: list[int]) -> dict[int, list[CartLine]]:
    out: dict[int, list[CartLine]] = {sid: [] for sid in sale_ids}
    if not sale_ids:
        return out
    marks = ",".join("?" for _ in sale_ids)
    rows = q(conn, f"SELECT * FROM sale_lines WHERE sale_id IN ({marks}) ORDER BY id", sale_ids)
    for r in rows:
        out[int(r["sale_id"])].append(
            CartLine(
                item_id=int(r["item_id"]),
                item_name=str(r["item_name"]),
                quantity=int(r["quantity"]),
                unit_price=float(r["unit_price"]),
                cash_price=float(r["cash_price"]),
                credit_price=float(r["credit_price"]),
            )
        )
    return out


def _row_to_sale(r, lines: list[CartLine]) -> Sale:
    return Sale(
        id=int(r["id"]),
        owner_id=int(r["owner_id"]),
        sale_type=str(r["sale_type"]),
        total_amount=float(r["total_amount"]),
        payment=Payment(
            pay_cash=bool(r["pay_cash"]),
            pay_credit=bool(r["pay_credit"]),
            cash_amount=float(r["cash_amount"]),
            credit_amount=float(r["credit_amount"]),
        ),
        transaction_date=str(r["transaction_date"]),
        created_at=str(r["created_at"]),
        user_name=str(r["user_name"] or ""),
        purchaser_name=r["purchaser_name"],
        purchaser_contact=r["purchaser_contact"],
        notes=r["notes"],
        lines=lines,
    )


def get_sale(conn, owner_id: int, sale_id: int) -> Optional[Sale]:
    rows = q(conn, "SELECT * FROM sales WHERE id=? AND owner_id=?", (int(sale_id), int(owner_id)))
    if not rows:
        return None
    return _row_to_sale(rows[0], _lines_for(conn, [int(sale_id)])[int(sale_id)])


def list_sales(
    conn,
    owner_id: int,
    *,
    sale_type: Optional[str] = None,
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> list[Sale]:
    rows = q(
        conn,
        "SELECT * FROM sales WHERE owner_id=? ORDER BY transaction_date DESC, id DESC",
        (int(owner_id),),
    )
    if sale_type and sale_type != "all":
        rows = [r for r in rows if r["sale_type"] == sale_type]
    if start is not None or end is not None:
        rows = [r for r in rows if in_range(r["transaction_date"], start, end)]

    lines = _lines_for(conn, [int(r["id"]) for r in rows])
    return [_row_to_sale(r, lines[int(r["id"])]) for r in rows]
