"""Typed access to the data service tables.

`Repository` gives every table the same list/insert/update/delete shape and
converts raw rows into schema objects on the way out. `DataAccess` groups the
repositories and adds the few operations that span tables (sales and their
items, replacing the stock alert table).
"""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from .backends import DataService, Row
from .exceptions import RecordNotFound
from .schemas import (
    Product,
    ProductCreate,
    ProductUpdate,
    Sale,
    SaleCreate,
    SaleItem,
    Setting,
    StockAlert,
    UserRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _text(value) -> str:
    return value if value is not None else ''


def product_from_row(row: Row) -> Product:
    return Product(
        id=str(row['id']),
        name=row['name'],
        description=_text(row.get('description')),
        category=_text(row.get('category')),
        price=float(row['price']),
        stock=int(row['stock']),
        threshold=int(row['threshold']),
        image=_text(row.get('image')),
        created_at=row.get('created_at'),
        updated_at=row.get('updated_at'),
    )


def sale_item_from_row(row: Row) -> SaleItem:
    return SaleItem(
        id=str(row['id']),
        product_id=str(row['product_id']),
        product_name=_text(row.get('product_name')),
        quantity=int(row['quantity']),
        price=float(row['price']),
        total=float(row['total']),
    )


def sale_from_row(row: Row, items: list[SaleItem] | None = None) -> Sale:
    return Sale(
        id=str(row['id']),
        items=items or [],
        total_amount=float(row['total_amount']),
        cashier_id=str(row['cashier_id']),
        cashier_name=_text(row.get('cashier_name')),
        timestamp=row['timestamp'],
    )


def user_from_row(row: Row) -> UserRecord:
    return UserRecord(
        id=str(row['id']),
        name=row['name'],
        email=row['email'],
        role=row['role'],
        password_hash=_text(row.get('password')),
    )


def alert_from_row(row: Row) -> StockAlert:
    return StockAlert(
        id=row['id'],
        product_id=str(row['product_id']),
        product_name=_text(row.get('product_name')),
        current_stock=int(row['current_stock']),
        threshold=int(row['threshold']),
        status=row['status'],
    )


def setting_from_row(row: Row) -> Setting:
    return Setting(key=row['key'], value=row.get('value'))


class Repository(Generic[T]):
    def __init__(
        self,
        service: DataService,
        table: str,
        from_row: Callable[[Row], T],
        order: str | None = None,
        descending: bool = False,
    ):
        self.service = service
        self.table = table
        self.from_row = from_row
        self.order = order
        self.descending = descending

    async def list(
        self,
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        descending: bool | None = None,
    ) -> list[T]:
        rows = await self.service.select(
            self.table,
            filters=filters,
            order=order or self.order,
            descending=self.descending if descending is None else descending,
        )
        return [self.from_row(row) for row in rows]

    async def get(self, row_id: str) -> T:
        rows = await self.service.select(self.table, filters={'id': row_id})
        if not rows:
            raise RecordNotFound(f'{self.table} row {row_id} not found')
        return self.from_row(rows[0])

    async def insert(self, values: Row) -> T:
        rows = await self.service.insert(self.table, [values])
        return self.from_row(rows[0])

    async def insert_many(self, values: list[Row]) -> list[T]:
        rows = await self.service.insert(self.table, values)
        return [self.from_row(row) for row in rows]

    async def update(self, row_id: str, values: Row) -> T:
        return self.from_row(
            await self.service.update(self.table, row_id, values)
        )

    async def delete(self, row_id: str):
        if not await self.service.delete(self.table, {'id': row_id}):
            raise RecordNotFound(f'{self.table} row {row_id} not found')

    async def delete_where(self, filters: dict[str, Any] | None = None) -> int:
        return await self.service.delete(self.table, filters)


class DataAccess:
    def __init__(self, service: DataService):
        self.service = service
        self.products = Repository(
            service, 'products', product_from_row, order='created_at'
        )
        self.sales = Repository(
            service, 'sales', sale_from_row, order='timestamp', descending=True
        )
        self.sale_items = Repository(service, 'sale_items', sale_item_from_row)
        self.users = Repository(
            service, 'users', user_from_row, order='created_at'
        )
        self.stock_alerts = Repository(service, 'stock_alerts', alert_from_row)
        self.settings = Repository(service, 'settings', setting_from_row)

    # products

    async def insert_product(self, data: ProductCreate) -> Product:
        return await self.products.insert(data.model_dump())

    async def update_product(
        self, product_id: str, updates: ProductUpdate
    ) -> Product:
        values = updates.model_dump(exclude_unset=True)
        values['updated_at'] = datetime.now(timezone.utc)
        return await self.products.update(product_id, values)

    async def save_product(self, product: Product) -> Product:
        values = product.model_dump(
            include={
                'name', 'description', 'category', 'price',
                'stock', 'threshold', 'image',
            }
        )
        values['updated_at'] = datetime.now(timezone.utc)
        return await self.products.update(product.id, values)

    # sales

    async def list_sales(self, cashier_id: str | None = None) -> list[Sale]:
        filters = {'cashier_id': cashier_id} if cashier_id else None
        rows = await self.service.select(
            'sales', filters=filters, order='timestamp', descending=True
        )
        if not rows:
            return []
        items_by_sale = defaultdict(list)
        for row in await self.service.select('sale_items'):
            items_by_sale[str(row['sale_id'])].append(sale_item_from_row(row))
        return [
            sale_from_row(row, items_by_sale.get(str(row['id'])))
            for row in rows
        ]

    async def insert_sale(self, sale: SaleCreate) -> Sale:
        return await self.sales.insert(sale.model_dump(exclude={'items', 'id'}))

    async def insert_sale_items(
        self, sale_id: str, items: list[SaleItem]
    ) -> list[SaleItem]:
        return await self.sale_items.insert_many([
            item.model_dump(exclude={'id'}) | {'sale_id': sale_id}
            for item in items
        ])

    async def delete_all_sales(self):
        # items first, they reference their sale header
        await self.sale_items.delete_where()
        await self.sales.delete_where()

    async def insert_sales(self, sales: list[Sale]):
        await self.sales.insert_many(
            [sale.model_dump(exclude={'items'}) for sale in sales]
        )
        for sale in sales:
            await self.sale_items.insert_many([
                item.model_dump() | {'sale_id': sale.id}
                for item in sale.items
            ])

    # users

    async def get_user_by_email(self, email: str) -> UserRecord | None:
        users = await self.users.list(filters={'email': email})
        return users[0] if users else None

    async def insert_user(
        self, name: str, email: str, role: str, password_hash: str
    ) -> UserRecord:
        return await self.users.insert({
            'name': name,
            'email': email,
            'role': role,
            'password': password_hash,
        })

    # stock alerts

    async def replace_stock_alerts(self, alerts: list[StockAlert]):
        await self.stock_alerts.delete_where()
        if alerts:
            await self.stock_alerts.insert_many(
                [alert.model_dump() for alert in alerts]
            )

    # settings

    async def list_settings(self) -> dict[str, str | None]:
        return {
            setting.key: setting.value
            for setting in await self.settings.list()
        }

    async def upsert_setting(self, key: str, value: str | None) -> Setting:
        rows = await self.service.upsert(
            'settings', [{'key': key, 'value': value}], on_conflict='key'
        )
        return setting_from_row(rows[0])
