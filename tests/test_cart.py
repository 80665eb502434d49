import pytest

from smart_inventory.cart import Cart
from smart_inventory.exceptions import OutOfStock, StockLimitReached
from smart_inventory.schemas import Product


def make_product(stock=10, price=5.0, product_id='p1'):
    return Product(
        id=product_id, name='Coffee', price=price, stock=stock, threshold=2
    )


def test_add_creates_line_with_frozen_price():
    cart = Cart()
    product = make_product(price=2.5)

    line = cart.add(product)

    assert line.quantity == 1
    assert line.price == 2.5
    assert line.total == 2.5
    assert line.product_name == 'Coffee'


def test_adding_same_product_twice_merges_lines():
    cart = Cart()
    product = make_product()

    cart.add(product)
    cart.add(product)

    assert len(cart) == 1
    assert cart.lines[0].quantity == 2
    assert cart.lines[0].total == 10.0


def test_add_rejects_out_of_stock_product():
    cart = Cart()

    with pytest.raises(OutOfStock):
        cart.add(make_product(stock=0))

    assert len(cart) == 0


def test_add_rejects_increment_beyond_stock():
    cart = Cart()
    product = make_product(stock=1)
    cart.add(product)

    with pytest.raises(StockLimitReached, match='Only 1 units'):
        cart.add(product)

    assert cart.lines[0].quantity == 1


def test_set_quantity_recomputes_total():
    cart = Cart()
    line = cart.add(make_product(price=1.25))

    updated = cart.set_quantity(line.id, 4)

    assert updated.quantity == 4
    assert updated.total == 4 * 1.25
    assert cart.total == 5.0


def test_set_quantity_to_zero_removes_line():
    cart = Cart()
    line = cart.add(make_product())

    assert cart.set_quantity(line.id, 0) is None
    assert len(cart) == 0


def test_line_totals_hold_after_every_mutation():
    cart = Cart()
    first = make_product(product_id='p1', price=0.1)
    second = make_product(product_id='p2', price=0.2)
    cart.add(first)
    cart.add(second)
    cart.add(first)
    cart.set_quantity(cart.lines[1].id, 7)

    for line in cart.lines:
        assert line.total == line.quantity * line.price
    assert cart.total == sum(line.total for line in cart.lines)


def test_snapshot_is_a_copy():
    cart = Cart()
    cart.add(make_product())

    snapshot = cart.snapshot()
    cart.clear()

    assert len(snapshot) == 1
    assert len(cart) == 0
