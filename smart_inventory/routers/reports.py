from typing import Annotated

from fastapi import APIRouter, Depends

from .. import analytics, schemas
from ..security import T_Admin, T_CurrentUser
from ..store import StoreData, get_store

T_Store = Annotated[StoreData, Depends(get_store)]

router = APIRouter(prefix='/reports', tags=['reports'])


@router.get('/dashboard', response_model=schemas.DashboardSummary)
def dashboard(store: T_Store, current_user: T_CurrentUser):
    sales = store.sales
    if current_user.role != 'admin':
        sales = [s for s in sales if s.cashier_id == current_user.id]
    return analytics.dashboard_summary(
        sales, store.products, store.stock_alerts
    )


@router.get('/sales-by-category', response_model=list[schemas.ChartData])
def sales_by_category(store: T_Store, admin: T_Admin):
    return analytics.sales_by_category(store.sales, store.products)


@router.get('/sales-by-product', response_model=list[schemas.ProductSales])
def sales_by_product(store: T_Store, admin: T_Admin):
    return analytics.sales_by_product(store.sales, store.products)


@router.get('/sales-over-time', response_model=list[schemas.TimeSeriesData])
def sales_over_time(store: T_Store, admin: T_Admin):
    return analytics.sales_over_time(store.sales)


@router.get('/inventory', response_model=schemas.InventorySummary)
def inventory(store: T_Store, admin: T_Admin):
    return analytics.inventory_summary(store.products)


@router.get('/top-sellers', response_model=list[schemas.ProductSales])
def top_sellers(store: T_Store, admin: T_Admin, limit: int = 10):
    return analytics.top_selling(store.sales, store.products, limit)


@router.get('/low-sellers', response_model=list[schemas.ProductSales])
def low_sellers(store: T_Store, admin: T_Admin, limit: int = 10):
    return analytics.lowest_selling(store.sales, store.products, limit)


@router.get('/profitability', response_model=list[schemas.ProductProfit])
def profitability(store: T_Store, admin: T_Admin, limit: int = 10):
    return analytics.most_profitable(store.sales, store.products, limit)


@router.get('/low-stock', response_model=list[schemas.Product])
def low_stock(store: T_Store, admin: T_Admin):
    return analytics.low_stock_products(store.products)


@router.get('/out-of-stock', response_model=list[schemas.Product])
def out_of_stock(store: T_Store, admin: T_Admin):
    return analytics.out_of_stock_products(store.products)
