from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Role = Literal['admin', 'cashier']
AlertStatus = Literal['warning', 'critical']


class Schema(BaseModel):
    # camelCase on the wire, snake_case in Python and in the data service
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


# --- Products --------------------------------------------------------------


class Product(Schema):
    id: str
    name: str
    description: str = ''
    category: str = ''
    price: float
    stock: int
    threshold: int
    image: str = ''
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductCreate(Schema):
    name: str = Field(..., min_length=1)
    description: str = ''
    category: str = ''
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    threshold: int = Field(..., ge=0)
    image: str = ''


class ProductUpdate(Schema):
    name: str | None = Field(None, min_length=1)
    description: str | None = None
    category: str | None = None
    price: float | None = Field(None, ge=0)
    stock: int | None = Field(None, ge=0)
    threshold: int | None = Field(None, ge=0)
    image: str | None = None


# --- Sales -----------------------------------------------------------------


class SaleItem(Schema):
    id: str
    product_id: str
    product_name: str
    quantity: int = Field(..., gt=0)
    price: float
    total: float


class CartLine(SaleItem):
    """A sale item that has not been recorded yet."""

    def with_quantity(self, quantity: int) -> 'CartLine':
        return self.model_copy(
            update={'quantity': quantity, 'total': quantity * self.price}
        )


class SaleCreate(Schema):
    items: list[SaleItem]
    total_amount: float
    cashier_id: str
    cashier_name: str
    timestamp: datetime


class Sale(SaleCreate):
    id: str


class BulkFailure(Schema):
    id: str
    error: str


class BulkResult(Schema):
    succeeded: list[str] = []
    failed: list[BulkFailure] = []
    skipped: list[str] = []

    @property
    def ok(self) -> bool:
        return not self.failed


# --- Alerts, users, settings -----------------------------------------------


class StockAlert(Schema):
    id: str
    product_id: str
    product_name: str
    current_stock: int
    threshold: int
    status: AlertStatus


class User(Schema):
    id: str
    name: str
    email: str
    role: Role


class UserRecord(User):
    password_hash: str = Field('', exclude=True)


class UserCreate(Schema):
    name: str = Field(..., min_length=1)
    email: EmailStr
    role: Role = 'cashier'
    password: str = Field(..., min_length=6)


class Setting(Schema):
    key: str
    value: str | None = None


class SettingUpdate(Schema):
    value: str | None = None


class Token(BaseModel):
    access_token: str
    token_type: str


class Message(BaseModel):
    message: str


class Notification(Schema):
    title: str
    description: str = ''
    variant: Literal['default', 'warning', 'destructive'] = 'default'
    created_at: datetime


# --- Point of sale ---------------------------------------------------------


class CartItemAdd(Schema):
    product_id: str


class CartItemQuantity(Schema):
    quantity: int


class PaymentRequest(Schema):
    payment: float | str


class CartView(Schema):
    lines: list[CartLine]
    total: float
    has_invalid_products: bool
    invalid_line_ids: list[str]
    checkout_open: bool
    warning: str | None = None


class Receipt(Schema):
    sale_id: str | None = None
    items: list[SaleItem]
    total: float
    payment: float
    change: float
    cashier_name: str
    timestamp: datetime


# --- Reports ---------------------------------------------------------------


class ChartData(Schema):
    name: str
    value: float


class TimeSeriesData(Schema):
    date: str
    value: float


class ProductSales(Schema):
    id: str
    name: str
    value: int
    category: str = ''
    price: float = 0.0


class ProductProfit(Schema):
    id: str
    name: str
    category: str
    price: float
    stock: int
    quantity_sold: int
    profit: float
    profit_margin: float


class CategoryBreakdown(Schema):
    name: str
    products: int
    in_stock_value: float
    average_price: float


class InventorySummary(Schema):
    total_products: int
    low_stock: int
    out_of_stock: int
    categories: list[CategoryBreakdown]


class DashboardSummary(Schema):
    total_sales_amount: float
    total_sales_count: int
    total_products: int
    low_stock_count: int
    average_sale_value: float
    sales_by_category: list[ChartData]
    sales_over_time: list[TimeSeriesData]


class CashierSummary(Schema):
    id: str
    name: str
    email: str
    sale_count: int
    total_sales: float


class CashierSalesHistory(Schema):
    cashier: User
    sales: list[Sale]
    daily_totals: list[TimeSeriesData]
