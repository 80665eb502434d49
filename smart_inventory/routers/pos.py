import threading
from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request

from .. import schemas
from ..cart import PointOfSale
from ..security import T_Cashier
from ..store import StoreData, get_store

T_Store = Annotated[StoreData, Depends(get_store)]

router = APIRouter(prefix='/pos', tags=['pos'])

_registers_lock = threading.Lock()


def get_register(
    request: Request, store: T_Store, cashier: T_Cashier
) -> PointOfSale:
    """One register per signed-in cashier, kept for the app's lifetime."""
    registers = request.app.state.registers
    with _registers_lock:
        register = registers.get(cashier.id)
        if register is None or register.store is not store:
            register = registers[cashier.id] = PointOfSale(store)
    return register


T_Register = Annotated[PointOfSale, Depends(get_register)]


@router.get('/cart', response_model=schemas.CartView)
def read_cart(register: T_Register):
    return register.view()


@router.post(
    '/cart/items',
    status_code=HTTPStatus.CREATED,
    response_model=schemas.CartView,
)
def add_cart_item(item: schemas.CartItemAdd, register: T_Register):
    register.add_to_cart(item.product_id)
    return register.view()


@router.patch('/cart/items/{line_id}', response_model=schemas.CartView)
def update_cart_item(
    line_id: str, item: schemas.CartItemQuantity, register: T_Register
):
    if register.cart.find(line_id) is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail='Cart line not found',
        )
    register.update_quantity(line_id, item.quantity)
    return register.view()


@router.delete('/cart/items/{line_id}', response_model=schemas.CartView)
def remove_cart_item(line_id: str, register: T_Register):
    register.remove_from_cart(line_id)
    return register.view()


@router.delete('/cart', response_model=schemas.CartView)
def clear_cart(register: T_Register, confirm: bool = False):
    register.clear_cart(confirmed=confirm)
    return register.view()


@router.post('/checkout', response_model=schemas.CartView)
def begin_checkout(register: T_Register):
    register.begin_checkout()
    return register.view()


@router.post('/payment', response_model=schemas.Receipt)
async def complete_payment(
    payment: schemas.PaymentRequest,
    register: T_Register,
    cashier: T_Cashier,
):
    return await register.complete_payment(payment.payment, cashier)


@router.get('/receipt', response_model=schemas.Receipt)
def read_receipt(register: T_Register):
    if register.receipt is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail='No receipt yet',
        )
    return register.receipt
