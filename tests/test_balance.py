from datetime import date

from shopledger.services.balance import balance_summary, compute_balance_entries, entries_frame, filter_entries
from shopledger.services.items import get_item
from shopledger.services.purchases import build_purchase_line, create_purchase, list_purchases
from shopledger.services.sales import Payment, add_to_cart, create_sale, list_sales


def _seed(conn, user, make_item):
    pen = make_item("Pen", price=3.0, sku="PEN")
    create_purchase(
        conn,
        user,
        supplier_name="Acme",
        lines=[build_purchase_line(item_id=pen.id, item_name="Pen", sku="PEN", quantity=1, cost=24.0,
                                   pricing_type="bulk")],
        purchase_date="2026-01-01T09:00:00",
    )
    pen = get_item(conn, user.id, pen.id)
    create_sale(conn, user, sale_type="retail", cart=add_to_cart([], pen, 5), payment=Payment(),
                transaction_date="2026-01-02T09:00:00")
    create_sale(conn, user, sale_type="retail", cart=add_to_cart([], pen, 2), payment=Payment(),
                transaction_date="2026-01-03T09:00:00")
    return list_purchases(conn, user.id), list_sales(conn, user.id)


def test_entries_newest_first_with_running_balance(conn, user, make_item):
    purchases, sales = _seed(conn, user, make_item)
    entries = compute_balance_entries(purchases, sales)

    assert [e.entry_type for e in entries] == ["sale", "sale", "purchase"]
    assert [e.money_flow for e in entries] == [6.0, 15.0, -24.0]
    assert [e.quantity_change for e in entries] == [-2, -5, 12]
    # accumulated in display order
    assert [e.balance for e in entries] == [6.0, 21.0, -3.0]
    assert entries[2].sku == "PEN"
    assert entries[0].sku == "N/A"
    assert entries[2].description == "Purchased 12 units @ RS 2.00"


def test_summary(conn, user, make_item):
    purchases, sales = _seed(conn, user, make_item)
    items = [get_item(conn, user.id, 1)]
    summary = balance_summary(items, purchases, sales)
    assert summary.total_purchases == 24.0
    assert summary.total_sales == 21.0
    assert summary.net_flow == -3.0
    assert summary.inventory_value == 15.0


def test_filter_entries(conn, user, make_item):
    entries = compute_balance_entries(*_seed(conn, user, make_item))
    assert len(filter_entries(entries, search="pen")) == 3
    assert [e.entry_type for e in filter_entries(entries, search="purchased")] == ["purchase"]
    assert len(filter_entries(entries, start=date(2026, 1, 2), end=date(2026, 1, 2))) == 1
    assert filter_entries(entries, search="stapler") == []


def test_entries_frame_columns(conn, user, make_item):
    df = entries_frame(compute_balance_entries(*_seed(conn, user, make_item)))
    assert list(df.columns) == ["Date", "Type", "Item", "SKU", "Qty Change", "Money Flow", "Balance", "Description"]
    assert list(df["Type"]) == ["SALE", "SALE", "PURCHASE"]


def test_no_activity():
    assert compute_balance_entries([], []) == []
