from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from .. import analytics, schemas
from ..security import T_Admin, T_CurrentUser, get_password_hash
from ..store import StoreData, get_store

T_Store = Annotated[StoreData, Depends(get_store)]

router = APIRouter(prefix='/users', tags=['users'])


@router.get('/me', response_model=schemas.User)
def read_users_me(current_user: T_CurrentUser):
    return current_user


@router.get('/', response_model=list[schemas.User])
def list_users(store: T_Store, admin: T_Admin):
    return store.users


@router.post('/', status_code=HTTPStatus.CREATED, response_model=schemas.User)
async def create_user(user: schemas.UserCreate, store: T_Store, admin: T_Admin):
    if await store.data.get_user_by_email(user.email):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail='Email already registered',
        )
    return await store.add_user(
        name=user.name,
        email=user.email,
        role=user.role,
        password_hash=get_password_hash(user.password),
    )


@router.delete('/{user_id}', response_model=schemas.Message)
async def delete_user(user_id: str, store: T_Store, admin: T_Admin):
    if user_id == admin.id:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail='You cannot delete your own account',
        )
    await store.delete_user(user_id)
    return {'message': 'User deleted'}


@router.get('/cashiers', response_model=list[schemas.CashierSummary])
async def list_cashiers(store: T_Store, admin: T_Admin):
    cashiers = await store.data.users.list(filters={'role': 'cashier'})
    sales = await store.data.sales.list()
    return analytics.cashier_summaries(cashiers, sales)


@router.get(
    '/cashiers/{cashier_id}/sales', response_model=schemas.CashierSalesHistory
)
async def cashier_sales_history(
    cashier_id: str, store: T_Store, admin: T_Admin
):
    cashier = await store.data.users.get(cashier_id)
    sales = await store.data.list_sales(cashier_id=cashier_id)
    return schemas.CashierSalesHistory(
        cashier=cashier,
        sales=sales,
        daily_totals=analytics.sales_over_time(sales),
    )
