from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from .. import schemas
from ..security import T_Admin, T_CurrentUser
from ..store import StoreData, get_store

T_Store = Annotated[StoreData, Depends(get_store)]

router = APIRouter(prefix='/products', tags=['products'])


@router.get('/', response_model=list[schemas.Product])
def read_products(
    store: T_Store,
    current_user: T_CurrentUser,
    q: str | None = Query(None, description='Search name or description'),
    category: str | None = Query(None),
):
    products = store.products
    if q:
        term = q.lower()
        products = [
            p for p in products
            if term in p.name.lower()
            or term in p.description.lower()
            or term in p.category.lower()
        ]
    if category and category != 'all':
        products = [p for p in products if p.category == category]
    return products


@router.get('/categories', response_model=list[str])
def read_categories(store: T_Store, current_user: T_CurrentUser):
    return list(dict.fromkeys(p.category for p in store.products))


@router.get('/alerts', response_model=list[schemas.StockAlert])
def read_stock_alerts(store: T_Store, current_user: T_CurrentUser):
    return store.stock_alerts


@router.post('/alerts/refresh', response_model=list[schemas.StockAlert])
async def refresh_stock_alerts(store: T_Store, admin: T_Admin):
    await store.update_stock_alerts()
    return store.stock_alerts


@router.get('/{product_id}', response_model=schemas.Product)
def get_product_by_id(
    product_id: str, store: T_Store, current_user: T_CurrentUser
):
    product = store.get_product(product_id)
    if not product:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail='Product not found',
        )
    return product


@router.post(
    '/', status_code=HTTPStatus.CREATED, response_model=schemas.Product
)
async def create_product(
    product: schemas.ProductCreate, store: T_Store, admin: T_Admin
):
    return await store.add_product(product)


@router.put('/', response_model=schemas.BulkResult)
async def update_products(
    products: list[schemas.Product], store: T_Store, admin: T_Admin
):
    return await store.update_products(products)


@router.put('/{product_id}', response_model=schemas.Product)
async def update_product(
    product_id: str,
    product: schemas.ProductUpdate,
    store: T_Store,
    admin: T_Admin,
):
    if not store.get_product(product_id):
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail='Product not found',
        )
    return await store.update_product(product_id, product)


@router.delete('/{product_id}', response_model=schemas.Message)
async def delete_product(
    product_id: str,
    store: T_Store,
    admin: T_Admin,
    confirm: bool = False,
):
    if not confirm:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail='Deleting a product must be confirmed',
        )
    await store.delete_product(product_id)
    return {'message': 'Product deleted'}
