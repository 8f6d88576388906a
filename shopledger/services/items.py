from __future__ import annotations

import json
import logging
import re
import sqlite3
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Iterable, Optional

from shopledger.db import q, x
from shopledger.services.activity import log_activity
from shopledger.utils import iso_now

if TYPE_CHECKING:
    from shopledger.auth import User

logger = logging.getLogger(__name__)

SKU_PREFIX = "SKU-"
_SKU_NUM_RE = re.compile(r"^SKU-(\d+)$")

EDITABLE_FIELDS = ("name", "price", "quantity", "sku", "description", "vendor")


class DuplicateSKUError(ValueError):
    def __init__(self, sku: str):
        super().__init__(f'SKU "{sku}" already exists. Please use a different SKU.')
        self.sku = sku


@dataclass
class Item:
    id: int
    owner_id: int
    name: str
    price: float
    quantity: int
    sku: str
    description: str = ""
    vendor: str = ""
    created_at: str = ""
    created_by: int = 0
    updated_at: str = ""
    updated_by: int = 0


def _row_to_item(r) -> Item:
    return Item(
        id=int(r["id"]),
        owner_id=int(r["owner_id"]),
        name=str(r["name"]),
        price=float(r["price"]),
        quantity=int(r["quantity"]),
        sku=str(r["sku"]),
        description=str(r["description"] or ""),
        vendor=str(r["vendor"] or ""),
        created_at=str(r["created_at"]),
        created_by=int(r["created_by"]),
        updated_at=str(r["updated_at"]),
        updated_by=int(r["updated_by"]),
    )


def normalize_sku(sku: Optional[str]) -> str:
    return str(sku or "").strip().upper()


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if "name" in fields:
        name = str(fields["name"] or "").strip()
        if not name:
            raise ValueError("Item name is required.")
        out["name"] = name
    if "price" in fields:
        try:
            price = float(fields["price"])
        except (TypeError, ValueError):
            raise ValueError("Price must be a number.")
        if price < 0:
            raise ValueError("Price cannot be negative.")
        out["price"] = round(price, 2)
    if "quantity" in fields:
        try:
            qty = int(fields["quantity"])
        except (TypeError, ValueError):
            raise ValueError("Quantity must be a whole number.")
        if qty < 0:
            raise ValueError("Quantity cannot be negative.")
        out["quantity"] = qty
    if "sku" in fields:
        out["sku"] = normalize_sku(fields["sku"])
    for key in ("description", "vendor"):
        if key in fields:
            out[key] = str(fields[key] or "").strip()
    return out


def list_items(conn, owner_id: int, *, search: Optional[str] = None, in_stock_only: bool = False) -> list[Item]:
    rows = q(conn, "SELECT * FROM items WHERE owner_id=? ORDER BY name COLLATE NOCASE, id", (int(owner_id),))
    items = [_row_to_item(r) for r in rows]
    if in_stock_only:
        items = [i for i in items if i.quantity > 0]
    if search:
        term = search.strip().lower()
        items = [i for i in items if term in i.name.lower() or term in i.sku.lower()]
    return items


def get_item(conn, owner_id: int, item_id: int) -> Optional[Item]:
    rows = q(conn, "SELECT * FROM items WHERE id=? AND owner_id=?", (int(item_id), int(owner_id)))
    return _row_to_item(rows[0]) if rows else None


def sku_exists(conn, owner_id: int, sku: str, exclude_id: Optional[int] = None) -> bool:
    rows = q(
        conn,
        "SELECT id FROM items WHERE owner_id=? AND UPPER(sku)=? AND id IS NOT ?",
        (int(owner_id), normalize_sku(sku), exclude_id),
    )
    return bool(rows)


def _is_sku_conflict(error: sqlite3.IntegrityError) -> bool:
    return "items.sku" in str(error)


def sku_number(sku: str) -> int:
    """The N of a `SKU-NNNN` code, 0 for any other SKU."""
    m = _SKU_NUM_RE.match(str(sku).upper())
    return int(m.group(1)) if m else 0


def generate_next_sku(conn, owner_id: int) -> str:
    """Next `SKU-NNNN` after the highest numbered SKU this owner has."""
    rows = q(conn, "SELECT sku FROM items WHERE owner_id=?", (int(owner_id),))
    highest = max((sku_number(r["sku"]) for r in rows), default=0)
    return f"{SKU_PREFIX}{highest + 1:04d}"


def add_item(
    conn,
    user: "User",
    *,
    name: str,
    price: float,
    quantity: int = 0,
    sku: Optional[str] = None,
    description: str = "",
    vendor: str = "",
) -> int:
    fields = _clean_fields(
        {"name": name, "price": price, "quantity": quantity, "sku": sku,
         "description": description, "vendor": vendor}
    )
    if not fields["sku"]:
        fields["sku"] = generate_next_sku(conn, user.id)
    if sku_exists(conn, user.id, fields["sku"]):
        raise DuplicateSKUError(fields["sku"])

    now = iso_now()
    try:
        item_id = x(
            conn,
            """
            INSERT INTO items (
                owner_id, name, price, quantity, sku, description, vendor,
                created_at, created_by, updated_at, updated_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(user.id),
                fields["name"],
                fields["price"],
                fields["quantity"],
                fields["sku"],
                fields["description"],
                fields["vendor"],
                now,
                int(user.id),
                now,
                int(user.id),
            ),
        )
    except sqlite3.IntegrityError as e:
        # Another session took the SKU between the check and the write
        if _is_sku_conflict(e):
            raise DuplicateSKUError(fields["sku"])
        raise

    logger.info("Item %s added (%s)", item_id, fields["sku"])
    log_activity(
        conn, user, "ITEM_ADDED", f"Added new item: {fields['name']} ({fields['sku']})", {"item_id": item_id}
    )
    return item_id


def update_item(conn, user: "User", item_id: int, **updates: Any) -> Item:
    unknown = set(updates) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    current = get_item(conn, user.id, item_id)
    if current is None:
        raise ValueError("Item not found.")

    fields = _clean_fields(updates)
    if "sku" in fields:
        if not fields["sku"]:
            raise ValueError("SKU is required.")
        if sku_exists(conn, user.id, fields["sku"], exclude_id=int(item_id)):
            raise DuplicateSKUError(fields["sku"])
    if not fields:
        return current

    assignments = ", ".join(f"{k}=?" for k in fields)
    try:
        x(
            conn,
            f"UPDATE items SET {assignments}, updated_at=?, updated_by=? WHERE id=? AND owner_id=?",
            (*fields.values(), iso_now(), int(user.id), int(item_id), int(user.id)),
        )
    except sqlite3.IntegrityError as e:
        if "sku" in fields and _is_sku_conflict(e):
            raise DuplicateSKUError(fields["sku"])
        raise

    changes = {k: v for k, v in fields.items() if getattr(current, k) != v}
    log_activity(
        conn,
        user,
        "ITEM_UPDATED",
        f"Updated item: {fields.get('name', current.name)}",
        {"item_id": int(item_id), "changes": json.dumps(changes)},
    )
    return get_item(conn, user.id, item_id)


def delete_item(conn, user: "User", item_id: int) -> None:
    item = get_item(conn, user.id, item_id)
    if item is None:
        raise ValueError("Item not found.")
    x(conn, "DELETE FROM items WHERE id=? AND owner_id=?", (int(item_id), int(user.id)))
    log_activity(
        conn, user, "ITEM_DELETED", f"Deleted item: {item.name} ({item.sku})", {"item_id": int(item_id)}
    )


def adjust_quantity(conn, owner_id: int, item_id: int, delta: int, updated_by: int) -> Optional[int]:
    """
    Read-modify-write of one item's stock. Returns the new quantity, or None
    when the item no longer exists (the line is skipped, not an error).
    """
    rows = q(conn, "SELECT quantity FROM items WHERE id=? AND owner_id=?", (int(item_id), int(owner_id)))
    if not rows:
        logger.warning("Stock adjustment skipped: item %s not found", item_id)
        return None
    new_qty = int(rows[0]["quantity"]) + int(delta)
    x(
        conn,
        "UPDATE items SET quantity=?, updated_at=?, updated_by=? WHERE id=? AND owner_id=?",
        (new_qty, iso_now(), int(updated_by), int(item_id), int(owner_id)),
    )
    return new_qty


def inventory_value(items: Iterable[Item]) -> float:
    return round(sum(float(i.price) * int(i.quantity) for i in items), 2)


def items_to_records(items: Iterable[Item]) -> list[dict]:
    return [asdict(i) for i in items]
