from http import HTTPStatus
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from .. import analytics, schemas
from ..security import T_Admin, T_CurrentUser
from ..store import StoreData, get_store

T_Store = Annotated[StoreData, Depends(get_store)]

router = APIRouter(prefix='/sales', tags=['sales'])


def _visible_to(current_user) -> str | None:
    # cashiers only ever see their own sales
    return None if current_user.role == 'admin' else current_user.id


@router.get('/', response_model=list[schemas.Sale])
def read_sales(
    store: T_Store,
    current_user: T_CurrentUser,
    q: str = Query('', description='Sale id, cashier or product name'),
    time_range: Literal['all', 'today', 'week', 'month'] = Query(
        'all', alias='range'
    ),
):
    return analytics.filter_sales(
        store.sales,
        search=q,
        time_range=time_range,
        cashier_id=_visible_to(current_user),
    )


@router.get('/{sale_id}', response_model=schemas.Sale)
def read_sale(sale_id: str, store: T_Store, current_user: T_CurrentUser):
    sale = store.get_sale(sale_id)
    owner = _visible_to(current_user)
    if not sale or (owner is not None and sale.cashier_id != owner):
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail='Sale not found',
        )
    return sale


@router.put('/', response_model=list[schemas.Sale])
async def replace_sales(
    sales: list[schemas.Sale], store: T_Store, admin: T_Admin
):
    await store.update_sales(sales)
    return store.sales
