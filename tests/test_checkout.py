import asyncio
from uuid import uuid4

import pytest

from smart_inventory.cart import PointOfSale
from smart_inventory.exceptions import (
    InvalidCart,
    OutOfStock,
    RemoteOperationError,
    StockLimitReached,
    ValidationFailed,
)
from smart_inventory.schemas import ProductUpdate, User


@pytest.fixture
def cashier_user():
    return User(
        id=str(uuid4()),
        name='John Cashier',
        email='john@example.com',
        role='cashier',
    )


@pytest.fixture
def register(store):
    return PointOfSale(store)


async def test_checkout_records_sale_and_returns_change(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data())
    line = register.add_to_cart(product.id)
    register.update_quantity(line.id, 3)
    register.begin_checkout()

    receipt = await register.complete_payment(20, cashier_user)

    assert receipt.total == 15.0
    assert receipt.change == 5.0
    assert receipt.cashier_name == 'John Cashier'
    assert store.get_product(product.id).stock == 7
    assert len(register.cart) == 0
    assert register.checkout_open is False
    assert register.receipt == receipt
    sale = store.get_sale(receipt.sale_id)
    assert sale.cashier_id == cashier_user.id
    assert [(i.quantity, i.total) for i in sale.items] == [(3, 15.0)]


async def test_payment_accepts_numeric_strings(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)

    receipt = await register.complete_payment('5.00', cashier_user)

    assert receipt.change == 0


@pytest.mark.parametrize('payment', [4.99, 'abc', float('nan'), None])
async def test_invalid_payment_leaves_cart(
    store, service, register, product_data, cashier_user, payment
):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)

    with pytest.raises(ValidationFailed, match='at least \\$5.00'):
        await register.complete_payment(payment, cashier_user)

    assert len(register.cart) == 1
    assert ('insert', 'sales') not in service.calls


async def test_cashier_id_must_be_a_uuid(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)
    cashier = cashier_user.model_copy(update={'id': 'not-a-uuid'})

    with pytest.raises(ValidationFailed, match='invalid'):
        await register.complete_payment(20, cashier)

    assert len(register.cart) == 1


async def test_payment_requires_signed_in_cashier(
    store, register, product_data
):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)

    with pytest.raises(ValidationFailed, match='no cashier'):
        await register.complete_payment(20, None)


async def test_deleted_product_blocks_checkout(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)
    register.begin_checkout()
    await store.delete_product(product.id)

    assert register.view().has_invalid_products is True
    with pytest.raises(InvalidCart):
        await register.complete_payment(20, cashier_user)

    assert register.checkout_open is False
    assert len(register.cart) == 1


async def test_begin_checkout_requires_items(register):
    with pytest.raises(InvalidCart):
        register.begin_checkout()

    assert register.checkout_open is False


async def test_stock_drop_after_adding_blocks_payment(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data())
    line = register.add_to_cart(product.id)
    register.update_quantity(line.id, 3)
    await store.update_product(product.id, ProductUpdate(stock=2))

    with pytest.raises(StockLimitReached):
        await register.complete_payment(20, cashier_user)


async def test_remote_failure_keeps_cart(
    store, service, register, product_data, cashier_user
):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)
    service.fail.add(('insert', 'sales'))

    with pytest.raises(RemoteOperationError):
        await register.complete_payment(20, cashier_user)

    assert len(register.cart) == 1
    assert register.receipt is None
    assert register.paying is False
    assert store.get_product(product.id).stock == 10


async def test_quantity_is_clamped_to_stock(store, register, product_data):
    product = await store.add_product(product_data(stock=4))
    line = register.add_to_cart(product.id)

    updated = register.update_quantity(line.id, 9)

    assert updated.quantity == 4
    assert updated.total == 20.0
    assert register.warning == 'Only 4 units of Coffee Beans are available.'


async def test_add_out_of_stock_product_notifies(
    store, register, product_data
):
    product = await store.add_product(product_data(stock=0))

    with pytest.raises(OutOfStock):
        register.add_to_cart(product.id)

    assert store.notifier.recent(1)[0].title == 'Out of Stock'


async def test_clear_cart_needs_confirmation(store, register, product_data):
    product = await store.add_product(product_data())
    register.add_to_cart(product.id)

    with pytest.raises(ValidationFailed):
        register.clear_cart()
    assert len(register.cart) == 1

    register.clear_cart(confirmed=True)
    assert len(register.cart) == 0


async def wait_for_call(service, call):
    for _ in range(500):
        if call in service.calls:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f'{call} was never made')


async def test_cart_is_locked_while_sale_is_written(
    store, service, register, product_data, cashier_user
):
    coffee = await store.add_product(product_data())
    tea = await store.add_product(product_data(name='Tea'))
    register.add_to_cart(coffee.id)
    gate = asyncio.Event()
    service.gates[('insert', 'sale_items')] = gate

    payment = asyncio.create_task(register.complete_payment(20, cashier_user))
    await wait_for_call(service, ('insert', 'sale_items'))

    with pytest.raises(ValidationFailed, match='payment is being processed'):
        register.add_to_cart(tea.id)
    with pytest.raises(ValidationFailed, match='payment is being processed'):
        register.remove_from_cart(register.cart.lines[0].id)
    with pytest.raises(ValidationFailed, match='payment is being processed'):
        await register.complete_payment(20, cashier_user)

    gate.set()
    receipt = await payment

    assert [item.product_id for item in receipt.items] == [coffee.id]
    assert len(register.cart) == 0
    assert register.paying is False
    assert store.get_product(tea.id).stock == 10

    register.add_to_cart(tea.id)
    assert [line.product_id for line in register.cart.lines] == [tea.id]


async def test_payment_is_compared_in_cents(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data(price=0.1))
    line = register.add_to_cart(product.id)
    register.update_quantity(line.id, 3)

    receipt = await register.complete_payment(0.3, cashier_user)

    assert receipt.change == 0
    assert store.get_product(product.id).stock == 7


async def test_change_is_rounded_to_cents(
    store, register, product_data, cashier_user
):
    product = await store.add_product(product_data(price=0.1))
    line = register.add_to_cart(product.id)
    register.update_quantity(line.id, 3)

    receipt = await register.complete_payment('1.00', cashier_user)

    assert receipt.change == 0.7
