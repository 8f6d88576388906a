from datetime import date

import pytest

from shopledger.services.activity import list_activity
from shopledger.services.items import get_item
from shopledger.services.sales import (
    Payment,
    add_to_cart,
    cart_quantity,
    cart_total,
    create_sale,
    delete_sale,
    get_sale,
    list_sales,
    remove_from_cart,
    validate_payment,
    validate_sale_type,
)


def test_add_to_cart_merges_same_item(make_item):
    pen = make_item("Pen", price=2.5, quantity=10)
    cart = add_to_cart([], pen, 3)
    add_to_cart(cart, pen, 4)
    assert len(cart) == 1
    assert cart[0].quantity == 7
    assert cart_total(cart) == 17.5


def test_add_to_cart_checks_merged_quantity_against_stock(make_item):
    pen = make_item("Pen", quantity=5)
    cart = add_to_cart([], pen, 3)
    with pytest.raises(ValueError, match="Not enough stock available"):
        add_to_cart(cart, pen, 3)
    assert cart[0].quantity == 3


def test_add_to_cart_rejects_non_positive_quantity(make_item):
    pen = make_item("Pen", quantity=5)
    with pytest.raises(ValueError, match="valid quantity"):
        add_to_cart([], pen, 0)


def test_remove_from_cart(make_item):
    pen = make_item("Pen", quantity=5)
    pad = make_item("Pad", quantity=5)
    cart = add_to_cart(add_to_cart([], pen, 1), pad, 2)
    cart = remove_from_cart(cart, pen.id)
    assert [c.item_name for c in cart] == ["Pad"]
    assert cart_quantity(cart) == 2


@pytest.mark.parametrize(
    "sale_type, qty, message",
    [
        ("retail", 12, "Retail sales cannot exceed 11 items"),
        ("wholesale", 11, "Wholesale sales require minimum 12 items"),
        ("layaway", 1, "Sale type must be"),
    ],
)
def test_validate_sale_type_rejects(sale_type, qty, message):
    with pytest.raises(ValueError, match=message):
        validate_sale_type(sale_type, qty)


@pytest.mark.parametrize("sale_type, qty", [("retail", 1), ("retail", 11), ("wholesale", 12), ("wholesale", 40)])
def test_validate_sale_type_accepts(sale_type, qty):
    validate_sale_type(sale_type, qty)


def test_single_payment_method_defaults_to_total():
    paid = validate_payment(50.0, Payment(pay_cash=False, pay_credit=True))
    assert paid.credit_amount == 50.0
    assert paid.cash_amount == 0.0


def test_split_payment_must_match_total():
    ok = validate_payment(100.0, Payment(pay_cash=True, pay_credit=True, cash_amount=60, credit_amount=40.005))
    assert ok.cash_amount == 60.0
    with pytest.raises(ValueError, match="must add up to the sale total"):
        validate_payment(100.0, Payment(pay_cash=True, pay_credit=True, cash_amount=60, credit_amount=30))


def test_payment_requires_a_method():
    with pytest.raises(ValueError, match="Select at least one payment method"):
        validate_payment(10.0, Payment(pay_cash=False, pay_credit=False))


def test_create_sale_records_lines_and_decrements_stock(conn, user, make_item):
    pen = make_item("Pen", price=2.5, quantity=10)
    pad = make_item("Pad", price=4.0, quantity=5)
    cart = add_to_cart(add_to_cart([], pen, 4), pad, 2)

    sale_id = create_sale(
        conn, user, sale_type="retail", cart=cart, payment=Payment(), purchaser_name=" Walk-in "
    )

    sale = get_sale(conn, user.id, sale_id)
    assert sale.total_amount == 18.0
    assert sale.total_quantity == 6
    assert sale.payment.cash_amount == 18.0
    assert sale.purchaser_name == "Walk-in"
    assert [l.item_name for l in sale.lines] == ["Pen", "Pad"]
    assert get_item(conn, user.id, pen.id).quantity == 6
    assert get_item(conn, user.id, pad.id).quantity == 3

    log = list_activity(conn, user.id, action="SALE_COMPLETED")[0]
    assert log.metadata == {"sale_id": sale_id, "changes": "Total: RS 18.00"}


def test_create_sale_validates_before_writing(conn, user, make_item):
    pen = make_item("Pen", quantity=20)
    cart = add_to_cart([], pen, 5)
    with pytest.raises(ValueError, match="Wholesale sales require minimum 12 items"):
        create_sale(conn, user, sale_type="wholesale", cart=cart, payment=Payment())
    with pytest.raises(ValueError, match="Cart is empty"):
        create_sale(conn, user, sale_type="retail", cart=[], payment=Payment())
    assert list_sales(conn, user.id) == []
    assert get_item(conn, user.id, pen.id).quantity == 20


def test_delete_sale_restores_stock(conn, user, make_item):
    pen = make_item("Pen", quantity=30)
    sale_id = create_sale(conn, user, sale_type="wholesale", cart=add_to_cart([], pen, 12), payment=Payment())
    assert get_item(conn, user.id, pen.id).quantity == 18

    delete_sale(conn, user, sale_id)
    assert get_item(conn, user.id, pen.id).quantity == 30
    assert get_sale(conn, user.id, sale_id) is None
    assert list_activity(conn, user.id, action="SALE_DELETED")


def test_list_sales_filters(conn, user, make_item):
    pen = make_item("Pen", quantity=100)
    create_sale(conn, user, sale_type="retail", cart=add_to_cart([], pen, 1), payment=Payment(),
                transaction_date="2026-01-05T10:00:00")
    create_sale(conn, user, sale_type="wholesale", cart=add_to_cart([], pen, 12), payment=Payment(),
                transaction_date="2026-02-05T10:00:00")

    assert [s.sale_type for s in list_sales(conn, user.id)] == ["wholesale", "retail"]
    assert [s.sale_type for s in list_sales(conn, user.id, sale_type="retail")] == ["retail"]
    jan = list_sales(conn, user.id, start=date(2026, 1, 1), end=date(2026, 1, 31))
    assert [s.sale_type for s in jan] == ["retail"]
