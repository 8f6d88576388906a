import pytest

from shopledger.services.activity import list_activity
from shopledger.services.items import get_item, list_items
from shopledger.services.purchases import (
    BOX_SIZE,
    build_purchase_line,
    create_purchase,
    delete_purchase,
    expand_bulk,
    get_purchase,
    intake_new_item,
    list_purchases,
    total_purchases,
    update_purchase,
)


def _line(item, quantity, cost, pricing_type="unit"):
    return build_purchase_line(
        item_id=item.id, item_name=item.name, sku=item.sku, quantity=quantity, cost=cost, pricing_type=pricing_type
    )


def test_expand_bulk():
    assert expand_bulk(3, 60.0) == (36, 5.0)


def test_bulk_line_counts_boxes_of_twelve():
    line = build_purchase_line(item_id=1, item_name="Pen", sku="P", quantity=2, cost=30.0, pricing_type="bulk")
    assert BOX_SIZE == 12
    assert line.quantity == 24
    assert line.unit_cost == 2.5
    assert line.total_cost == 60.0
    assert line.boxes == 2
    assert line.bulk_price == 30.0


def test_bulk_unit_cost_is_not_rounded():
    line = build_purchase_line(item_id=1, item_name="Pen", sku="P", quantity=1, cost=10.0, pricing_type="bulk")
    assert line.unit_cost == pytest.approx(10.0 / 12)
    assert line.total_cost == 10.0


def test_unit_line():
    line = build_purchase_line(item_id=1, item_name="Pen", sku="P", quantity=7, cost=1.25)
    assert (line.quantity, line.unit_cost, line.total_cost) == (7, 1.25, 8.75)
    assert line.boxes is None


@pytest.mark.parametrize(
    "quantity, cost, message",
    [(0, 1.0, "Quantity must be > 0."), (1, 0, "Cost must be > 0.")],
)
def test_build_purchase_line_rejects(quantity, cost, message):
    with pytest.raises(ValueError, match=message):
        build_purchase_line(item_id=1, item_name="Pen", sku="P", quantity=quantity, cost=cost)


def test_create_purchase_adds_stock(conn, user, make_item):
    pen = make_item("Pen", quantity=1)
    pad = make_item("Pad", quantity=0)

    pid = create_purchase(
        conn,
        user,
        supplier_name=" Paper House ",
        lines=[_line(pen, 2, 24.0, "bulk"), _line(pad, 5, 3.0)],
        purchase_date="2026-03-01",
    )

    assert get_item(conn, user.id, pen.id).quantity == 25
    assert get_item(conn, user.id, pad.id).quantity == 5
    purchase = get_purchase(conn, user.id, pid)
    assert purchase.supplier_name == "Paper House"
    assert purchase.total_amount == 63.0
    assert [l.pricing_type for l in purchase.lines] == ["bulk", "unit"]
    log = list_activity(conn, user.id, action="PURCHASE_RECORDED")[0]
    assert log.details == "Purchased 2 items from Paper House"
    assert log.metadata["changes"] == "Total: RS 63.00"


@pytest.mark.parametrize(
    "supplier, with_lines, message",
    [("", True, "Please enter supplier name"), ("Acme", False, "Please add items to purchase")],
)
def test_create_purchase_requires_supplier_and_lines(conn, user, make_item, supplier, with_lines, message):
    pen = make_item("Pen")
    lines = [_line(pen, 1, 1.0)] if with_lines else []
    with pytest.raises(ValueError, match=message):
        create_purchase(conn, user, supplier_name=supplier, lines=lines)
    assert get_item(conn, user.id, pen.id).quantity == 0


def test_intake_new_item_creates_item_with_zero_stock(conn, user):
    line = intake_new_item(conn, user, name="Eraser", quantity=1, cost=12.0, price=2.0, pricing_type="bulk")

    item = get_item(conn, user.id, line.item_id)
    assert item.quantity == 0
    assert item.price == 2.0
    assert line.sku == item.sku == "SKU-0001"
    assert line.quantity == 12

    create_purchase(conn, user, supplier_name="Acme", lines=[line])
    assert get_item(conn, user.id, line.item_id).quantity == 12


def test_intake_new_item_requires_selling_price(conn, user):
    with pytest.raises(ValueError, match="Selling price must be > 0."):
        intake_new_item(conn, user, name="Eraser", quantity=1, cost=1.0, price=0)
    assert list_items(conn, user.id) == []


def test_update_purchase_moves_stock_by_difference(conn, user, make_item):
    pen = make_item("Pen", quantity=0)
    pad = make_item("Pad", quantity=0)
    pid = create_purchase(conn, user, supplier_name="Acme", lines=[_line(pen, 10, 1.0)])

    update_purchase(
        conn, user, pid, supplier_name="Acme Ltd", lines=[_line(pen, 4, 1.0), _line(pad, 1, 2.0, "bulk")]
    )

    assert get_item(conn, user.id, pen.id).quantity == 4
    assert get_item(conn, user.id, pad.id).quantity == 12
    purchase = get_purchase(conn, user.id, pid)
    assert purchase.supplier_name == "Acme Ltd"
    assert purchase.total_amount == 6.0
    assert purchase.updated_at is not None
    assert len(purchase.lines) == 2


def test_delete_purchase_is_soft_and_reverts_stock(conn, user, make_item):
    pen = make_item("Pen", quantity=3)
    pid = create_purchase(conn, user, supplier_name="Acme", lines=[_line(pen, 10, 1.0)])

    delete_purchase(conn, user, pid)

    assert get_item(conn, user.id, pen.id).quantity == 3
    assert get_purchase(conn, user.id, pid) is None
    assert list_purchases(conn, user.id) == []
    row = conn.execute("SELECT deleted, deleted_by FROM purchases WHERE id=?", (pid,)).fetchone()
    assert row["deleted"] == 1
    assert row["deleted_by"] == user.id

    with pytest.raises(ValueError, match="Purchase not found"):
        delete_purchase(conn, user, pid)


def test_list_and_total_purchases_by_date(conn, user, make_item):
    pen = make_item("Pen")
    create_purchase(conn, user, supplier_name="A", lines=[_line(pen, 1, 10.0)], purchase_date="2026-01-10")
    create_purchase(conn, user, supplier_name="B", lines=[_line(pen, 1, 20.0)], purchase_date="2026-02-10")

    assert [p.supplier_name for p in list_purchases(conn, user.id)] == ["B", "A"]
    assert total_purchases(conn, user.id) == 30.0
    assert total_purchases(conn, user.id, start="2026-02-01", end="2026-02-28") == 20.0
