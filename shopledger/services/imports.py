"""
Spreadsheet import of catalog rows.

Rows are reconciled against the existing catalog by case-insensitive name:

- same name, same price: the quantities are added together;
- same name, different price: the row is renamed "Name (1)", "Name (2)", ...
  until a free name (or a same-priced variant) is found.

An item is never overwritten with a different price. SKUs carried by the file
are claimed first; rows without one (or whose SKU is taken) are numbered
`SKU-NNNN` after every claimed SKU, so applying a plan never collides.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING, Iterable, Optional, Union

import pandas as pd

from shopledger.services.activity import log_activity
from shopledger.services.items import SKU_PREFIX, Item, add_item, adjust_quantity, normalize_sku, sku_number

if TYPE_CHECKING:
    from shopledger.auth import User

logger = logging.getLogger(__name__)

MAX_SUFFIX_ATTEMPTS = 100
PRICE_EPSILON = 0.005
IMPORT_COLUMNS = ("Name", "Price", "Quantity", "SKU", "Description", "Vendor")


@dataclass
class ImportRow:
    name: str
    price: float
    quantity: int = 0
    sku: str = ""
    description: str = ""
    vendor: str = ""


@dataclass
class ImportMerge:
    item_id: int
    name: str
    add_quantity: int


@dataclass
class ImportPlan:
    merges: list[ImportMerge] = field(default_factory=list)
    creates: list[ImportRow] = field(default_factory=list)
    renamed: dict[str, str] = field(default_factory=dict)  # final name -> name in the file

    @property
    def is_empty(self) -> bool:
        return not self.merges and not self.creates


def _cell(value, default=""):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    return value


def read_item_rows(file: Union[str, Path, IO], filename: Optional[str] = None) -> list[ImportRow]:
    """
    Read Name/Price/Quantity/SKU/Description/Vendor rows from an .xlsx/.xls or
    .csv file. Header matching is case-insensitive; Name and Price are
    required columns. Blank rows are skipped.
    """
    name = str(filename or getattr(file, "name", file) or "")
    if name.lower().endswith(".csv"):
        df = pd.read_csv(file)
    else:
        df = pd.read_excel(file)

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in ("name", "price") if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required column(s): {', '.join(c.capitalize() for c in missing)}")

    rows: list[ImportRow] = []
    for i, r in df.iterrows():
        item_name = str(_cell(r.get("name"))).strip()
        if not item_name:
            continue
        raw_price = _cell(r.get("price"))
        if isinstance(raw_price, str) and not raw_price.strip():
            raise ValueError(f"Row {int(i) + 2}: price is required.")
        try:
            price = float(raw_price)
            qty = int(float(_cell(r.get("quantity"), 0)))
        except (TypeError, ValueError):
            raise ValueError(f"Row {int(i) + 2}: price and quantity must be numbers.")
        if price < 0 or qty < 0:
            raise ValueError(f"Row {int(i) + 2}: price and quantity cannot be negative.")
        rows.append(
            ImportRow(
                name=item_name,
                price=round(price, 2),
                quantity=qty,
                sku=normalize_sku(_cell(r.get("sku"))),
                description=str(_cell(r.get("description"))).strip(),
                vendor=str(_cell(r.get("vendor"))).strip(),
            )
        )
    return rows


def _same_price(a: float, b: float) -> bool:
    return abs(float(a) - float(b)) < PRICE_EPSILON


def reconcile_import(existing: Iterable[Item], rows: Iterable[ImportRow]) -> ImportPlan:
    plan = ImportPlan()

    # name.lower() -> ("item", Item) for catalog entries, ("new", index) for rows created by this import
    by_name: dict[str, tuple[str, object]] = {}
    skus: set[str] = set()
    for item in existing:
        by_name.setdefault(item.name.lower(), ("item", item))
        skus.add(item.sku.upper())

    merge_idx: dict[int, ImportMerge] = {}

    def price_of(entry: tuple[str, object]) -> float:
        kind, ref = entry
        return ref.price if kind == "item" else plan.creates[ref].price

    def merge(entry: tuple[str, object], qty: int) -> None:
        kind, ref = entry
        if kind == "new":
            plan.creates[ref].quantity += qty
            return
        if ref.id in merge_idx:
            merge_idx[ref.id].add_quantity += qty
        else:
            m = ImportMerge(item_id=ref.id, name=ref.name, add_quantity=qty)
            merge_idx[ref.id] = m
            plan.merges.append(m)

    def create(row: ImportRow, final_name: str) -> None:
        sku = row.sku if row.sku and row.sku not in skus else ""
        if sku:
            skus.add(sku)
        new = ImportRow(
            name=final_name,
            price=row.price,
            quantity=row.quantity,
            sku=sku,
            description=row.description,
            vendor=row.vendor,
        )
        plan.creates.append(new)
        by_name[final_name.lower()] = ("new", len(plan.creates) - 1)
        if final_name != row.name:
            plan.renamed[final_name] = row.name

    for row in rows:
        entry = by_name.get(row.name.lower())
        if entry is None:
            create(row, row.name)
            continue
        if _same_price(price_of(entry), row.price):
            merge(entry, row.quantity)
            continue

        for n in range(1, MAX_SUFFIX_ATTEMPTS + 1):
            candidate = f"{row.name} ({n})"
            taken = by_name.get(candidate.lower())
            if taken is None:
                create(row, candidate)
                break
            if _same_price(price_of(taken), row.price):
                merge(taken, row.quantity)
                break
        else:
            raise ValueError(
                f'Could not find a free name for "{row.name}" after {MAX_SUFFIX_ATTEMPTS} attempts.'
            )

    # Explicit SKUs are all claimed by now; number the blank ones after every taken SKU
    next_num = max((sku_number(s) for s in skus), default=0) + 1
    for new in plan.creates:
        if not new.sku:
            new.sku = f"{SKU_PREFIX}{next_num:04d}"
            next_num += 1

    return plan


def apply_import(conn, user: "User", plan: ImportPlan) -> dict[str, int]:
    for m in plan.merges:
        if m.add_quantity:
            adjust_quantity(conn, user.id, m.item_id, m.add_quantity, user.id)

    for row in plan.creates:
        add_item(
            conn,
            user,
            name=row.name,
            price=row.price,
            quantity=row.quantity,
            sku=row.sku,
            description=row.description,
            vendor=row.vendor,
        )

    summary = {"merged": len(plan.merges), "created": len(plan.creates), "renamed": len(plan.renamed)}
    logger.info("Import applied: %s", summary)
    log_activity(
        conn,
        user,
        "ITEMS_IMPORTED",
        f"Imported items: {summary['created']} new, {summary['merged']} merged, {summary['renamed']} renamed",
        {"changes": ", ".join(f"{new} <- {old}" for new, old in plan.renamed.items()) or None},
    )
    return summary
