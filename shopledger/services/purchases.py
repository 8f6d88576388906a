from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional, Union

from shopledger.db import q, x
from shopledger.services.activity import log_activity
from shopledger.services.items import add_item, adjust_quantity, get_item
from shopledger.utils import in_range, iso_now, safe_div, to_iso

if TYPE_CHECKING:
    from shopledger.auth import User

logger = logging.getLogger(__name__)

BOX_SIZE = 12
PRICING_TYPES = ("unit", "bulk")


@dataclass
class PurchaseLine:
    item_id: int
    item_name: str
    sku: str
    quantity: int
    unit_cost: float
    total_cost: float
    pricing_type: str = "unit"
    bulk_price: Optional[float] = None
    boxes: Optional[int] = None


@dataclass
class Purchase:
    id: int
    owner_id: int
    supplier_name: str
    total_amount: float
    purchase_date: str
    created_at: str
    supplier_contact: str = ""
    notes: str = ""
    updated_at: Optional[str] = None
    lines: list[PurchaseLine] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(int(l.quantity) for l in self.lines)


def expand_bulk(boxes: int, box_price: float) -> tuple[int, float]:
    """
    Convert a box order into units: `boxes` cartons of BOX_SIZE units each,
    priced at `box_price` per carton. Returns (units, unit_cost).
    """
    return int(boxes) * BOX_SIZE, safe_div(float(box_price), BOX_SIZE)


def build_purchase_line(
    *,
    item_id: int,
    item_name: str,
    sku: str,
    quantity: int,
    cost: float,
    pricing_type: str = "unit",
) -> PurchaseLine:
    """
    For `bulk` lines, `quantity` is the number of boxes and `cost` the box
    price; for `unit` lines they are units and cost per unit.
    """
    if pricing_type not in PRICING_TYPES:
        raise ValueError("Pricing type must be 'unit' or 'bulk'.")
    try:
        qty = int(quantity)
        c = float(cost)
    except (TypeError, ValueError):
        raise ValueError("Quantity and cost must be numbers.")
    if qty <= 0:
        raise ValueError("Quantity must be > 0.")
    if c <= 0:
        raise ValueError("Cost must be > 0.")

    if pricing_type == "bulk":
        units, unit_cost = expand_bulk(qty, c)
        return PurchaseLine(
            item_id=int(item_id),
            item_name=str(item_name),
            sku=str(sku or ""),
            quantity=units,
            unit_cost=unit_cost,
            total_cost=round(qty * c, 2),
            pricing_type="bulk",
            bulk_price=c,
            boxes=qty,
        )

    return PurchaseLine(
        item_id=int(item_id),
        item_name=str(item_name),
        sku=str(sku or ""),
        quantity=qty,
        unit_cost=c,
        total_cost=round(qty * c, 2),
    )


def intake_new_item(
    conn,
    user: "User",
    *,
    name: str,
    quantity: int,
    cost: float,
    price: float,
    pricing_type: str = "unit",
    sku: Optional[str] = None,
    description: str = "",
    vendor: str = "",
) -> PurchaseLine:
    """
    Create a catalog item for stock that has never been bought before.

    The item starts at zero stock; its units arrive when the purchase holding
    the returned line is recorded. `price` is the selling price per unit.
    """
    if pricing_type not in PRICING_TYPES:
        raise ValueError("Pricing type must be 'unit' or 'bulk'.")
    if float(price or 0) <= 0:
        raise ValueError("Selling price must be > 0.")
    # Validate quantities before the item is written
    build_purchase_line(item_id=0, item_name=name, sku="", quantity=quantity, cost=cost, pricing_type=pricing_type)

    item_id = add_item(
        conn, user, name=name, price=float(price), quantity=0, sku=sku, description=description, vendor=vendor
    )
    item = get_item(conn, user.id, item_id)
    return build_purchase_line(
        item_id=item_id,
        item_name=item.name,
        sku=item.sku,
        quantity=quantity,
        cost=cost,
        pricing_type=pricing_type,
    )


def purchase_total(lines: list[PurchaseLine]) -> float:
    return round(sum(float(l.total_cost) for l in lines), 2)


def _validate_header(supplier_name: str, lines: list[PurchaseLine]) -> str:
    supplier = str(supplier_name or "").strip()
    if not supplier:
        raise ValueError("Please enter supplier name")
    if not lines:
        raise ValueError("Please add items to purchase")
    return supplier


def _insert_lines(conn, purchase_id: int, lines: list[PurchaseLine]) -> None:
    for l in lines:
        x(
            conn,
            """
            INSERT INTO purchase_lines (
                purchase_id, item_id, item_name, sku, quantity,
                unit_cost, total_cost, pricing_type, bulk_price, boxes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(purchase_id),
                int(l.item_id),
                l.item_name,
                l.sku,
                int(l.quantity),
                float(l.unit_cost),
                float(l.total_cost),
                l.pricing_type,
                float(l.bulk_price) if l.bulk_price is not None else None,
                int(l.boxes) if l.boxes is not None else None,
            ),
        )


def _refresh_skus(conn, owner_id: int, lines: list[PurchaseLine]) -> None:
    for l in lines:
        if not l.sku:
            item = get_item(conn, owner_id, l.item_id)
            if item is not None:
                l.sku = item.sku


def create_purchase(
    conn,
    user: "User",
    *,
    supplier_name: str,
    lines: list[PurchaseLine],
    supplier_contact: str = "",
    notes: str = "",
    purchase_date: Optional[Union[str, date, datetime]] = None,
) -> int:
    supplier = _validate_header(supplier_name, lines)

    # Stock first, then the purchase record
    for l in lines:
        adjust_quantity(conn, user.id, l.item_id, int(l.quantity), user.id)
    _refresh_skus(conn, user.id, lines)

    now = iso_now()
    total = purchase_total(lines)
    purchase_id = x(
        conn,
        """
        INSERT INTO purchases (
            owner_id, supplier_name, supplier_contact, total_amount, notes,
            purchase_date, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(user.id),
            supplier,
            str(supplier_contact or "").strip(),
            total,
            str(notes or "").strip(),
            to_iso(purchase_date) or now,
            now,
        ),
    )
    _insert_lines(conn, purchase_id, lines)

    logger.info("Purchase %s recorded: %d line(s), total %.2f", purchase_id, len(lines), total)
    log_activity(
        conn,
        user,
        "PURCHASE_RECORDED",
        f"Purchased {len(lines)} items from {supplier}",
        {"purchase_id": int(purchase_id), "changes": f"Total: RS {total:.2f}"},
    )
    return int(purchase_id)


def update_purchase(
    conn,
    user: "User",
    purchase_id: int,
    *,
    supplier_name: str,
    lines: list[PurchaseLine],
    supplier_contact: str = "",
    notes: str = "",
) -> None:
    """Replace a purchase's lines; stock moves by the difference."""
    old = get_purchase(conn, user.id, purchase_id)
    if old is None:
        raise ValueError("Purchase not found")
    supplier = _validate_header(supplier_name, lines)

    for l in old.lines:
        adjust_quantity(conn, user.id, l.item_id, -int(l.quantity), user.id)
    for l in lines:
        adjust_quantity(conn, user.id, l.item_id, int(l.quantity), user.id)
    _refresh_skus(conn, user.id, lines)

    total = purchase_total(lines)
    x(
        conn,
        """
        UPDATE purchases
        SET supplier_name=?, supplier_contact=?, total_amount=?, notes=?, updated_at=?
        WHERE id=? AND owner_id=?
        """,
        (
            supplier,
            str(supplier_contact or "").strip(),
            total,
            str(notes or "").strip(),
            iso_now(),
            int(purchase_id),
            int(user.id),
        ),
    )
    x(conn, "DELETE FROM purchase_lines WHERE purchase_id=?", (int(purchase_id),))
    _insert_lines(conn, purchase_id, lines)

    log_activity(
        conn,
        user,
        "PURCHASE_UPDATED",
        f"Updated purchase with {len(lines)} items",
        {"purchase_id": int(purchase_id), "changes": f"Total: RS {old.total_amount:.2f} -> RS {total:.2f}"},
    )


def delete_purchase(conn, user: "User", purchase_id: int) -> None:
    """Soft delete: the row stays (flagged) and its stock is taken back out."""
    purchase = get_purchase(conn, user.id, purchase_id)
    if purchase is None:
        raise ValueError("Purchase not found")

    for l in purchase.lines:
        adjust_quantity(conn, user.id, l.item_id, -int(l.quantity), user.id)

    x(
        conn,
        "UPDATE purchases SET deleted=1, deleted_at=?, deleted_by=? WHERE id=? AND owner_id=?",
        (iso_now(), int(user.id), int(purchase_id), int(user.id)),
    )
    log_activity(
        conn,
        user,
        "PURCHASE_DELETED",
        f"Deleted purchase with {len(purchase.lines)} items",
        {"purchase_id": int(purchase_id)},
    )


def _lines_for(conn, purchase_ids: list[int]) -> dict[int, list[PurchaseLine]]:
    out: dict[int, list[PurchaseLine]] = {pid: [] for pid in purchase_ids}
    if not purchase_ids:
        return out
    marks = ",".join("?" for _ in purchase_ids)
    rows = q(conn, f"SELECT * FROM purchase_lines WHERE purchase_id IN ({marks}) ORDER BY id", purchase_ids)
    for r in rows:
        out[int(r["purchase_id"])].append(
            PurchaseLine(
                item_id=int(r["item_id"]),
                item_name=str(r["item_name"]),
                sku=str(r["sku"] or ""),
                quantity=int(r["quantity"]),
                unit_cost=float(r["unit_cost"]),
                total_cost=float(r["total_cost"]),
                pricing_type=str(r["pricing_type"]),
                bulk_price=float(r["bulk_price"]) if r["bulk_price"] is not None else None,
                boxes=int(r["boxes"]) if r["boxes"] is not None else None,
            )
        )
    return out


def _row_to_purchase(r, lines: list[PurchaseLine]) -> Purchase:
    return Purchase(
        id=int(r["id"]),
        owner_id=int(r["owner_id"]),
        supplier_name=str(r["supplier_name"]),
        supplier_contact=str(r["supplier_contact"] or ""),
        total_amount=float(r["total_amount"]),
        notes=str(r["notes"] or ""),
        purchase_date=str(r["purchase_date"]),
        created_at=str(r["created_at"]),
        updated_at=r["updated_at"],
        lines=lines,
    )


def get_purchase(conn, owner_id: int, purchase_id: int) -> Optional[Purchase]:
    rows = q(
        conn,
        "SELECT * FROM purchases WHERE id=? AND owner_id=? AND deleted=0",
        (int(purchase_id), int(owner_id)),
    )
    if not rows:
        return None
    return _row_to_purchase(rows[0], _lines_for(conn, [int(purchase_id)])[int(purchase_id)])


def list_purchases(
    conn,
    owner_id: int,
    *,
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> list[Purchase]:
    rows = q(
        conn,
        "SELECT * FROM purchases WHERE owner_id=? AND deleted=0 ORDER BY purchase_date DESC, id DESC",
        (int(owner_id),),
    )
    if start is not None or end is not None:
        rows = [r for r in rows if in_range(r["purchase_date"], start, end)]
    lines = _lines_for(conn, [int(r["id"]) for r in rows])
    return [_row_to_purchase(r, lines[int(r["id"])]) for r in rows]


def total_purchases(
    conn,
    owner_id: int,
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> float:
    return round(sum(p.total_amount for p in list_purchases(conn, owner_id, start=start, end=end)), 2)
