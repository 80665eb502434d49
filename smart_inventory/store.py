"""In-memory mirror of the data service for the rest of the application.

`StoreData` owns the product, sale, stock alert and user collections. Reads
come from these lists; writes go to the data service first and the lists are
patched or re-fetched afterwards. Listeners registered with `subscribe` are
called after every state change.
"""
import logging
import math
import time
from collections.abc import Callable

from fastapi import Request

from . import alerts
from .data_access import DataAccess
from .exceptions import (
    PartialWriteError,
    RemoteOperationError,
    ValidationFailed,
)
from .notifications import Notifier
from .schemas import (
    BulkFailure,
    BulkResult,
    Product,
    ProductCreate,
    ProductUpdate,
    Sale,
    SaleCreate,
    StockAlert,
    UserRecord,
)

logger = logging.getLogger(__name__)

Listener = Callable[['StoreData'], None]


class StoreData:
    def __init__(self, data: DataAccess, notifier: Notifier | None = None):
        self.data = data
        self.notifier = notifier or Notifier()
        self.products: list[Product] = []
        self.sales: list[Sale] = []
        self.stock_alerts: list[StockAlert] = []
        self.users: list[UserRecord] = []
        self.is_loading = False
        self._listeners: list[Listener] = []

    # --- observers ----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception('Store listener %r failed', listener)

    # --- lookups ------------------------------------------------------------

    def get_product(self, product_id: str) -> Product | None:
        return next((p for p in self.products if p.id == product_id), None)

    def get_sale(self, sale_id: str) -> Sale | None:
        return next((s for s in self.sales if s.id == sale_id), None)

    # --- refresh ------------------------------------------------------------

    async def fetch_all_data(self):
        """Reload products, sales and users, then recompute stock alerts.

        Nothing is applied unless all three collections were fetched.
        """
        self.is_loading = True
        try:
            products = await self.data.products.list()
            sales = await self.data.list_sales()
            users = await self.data.users.list()
        except RemoteOperationError as exc:
            logger.error('Error fetching data: %s', exc)
            self.notifier.error(
                'Error Loading Data',
                'Failed to load data from database. Please try again.',
            )
            raise
        finally:
            self.is_loading = False

        self.products = products
        self.sales = sales
        self.users = users
        await self._calculate_stock_alerts(products)

    # --- products -----------------------------------------------------------

    async def add_product(self, data: ProductCreate) -> Product:
        try:
            product = await self.data.insert_product(data)
        except RemoteOperationError:
            logger.exception('Error adding product %s', data.name)
            self.notifier.error(
                'Error Adding Product', 'Failed to add product to database.'
            )
            raise

        self.products = [*self.products, product]
        await self._calculate_stock_alerts(self.products)
        self.notifier.success(
            'Product Added', f'{product.name} has been added to inventory.'
        )
        return product

    async def update_product(
        self, product_id: str, updates: ProductUpdate
    ) -> Product:
        try:
            product = await self.data.update_product(product_id, updates)
        except RemoteOperationError:
            logger.exception('Error updating product %s', product_id)
            self.notifier.error(
                'Error Updating Product',
                'Failed to update product in database.',
            )
            raise

        self.products = [
            product if p.id == product_id else p for p in self.products
        ]
        await self._calculate_stock_alerts(self.products)
        return product

    async def delete_product(self, product_id: str):
        try:
            await self.data.products.delete(product_id)
        except RemoteOperationError:
            logger.exception('Error deleting product %s', product_id)
            self.notifier.error(
                'Error Deleting Product',
                'Failed to delete product from database.',
            )
            raise

        self.products = [p for p in self.products if p.id != product_id]
        await self._calculate_stock_alerts(self.products)
        self.notifier.success(
            'Product Deleted', 'The product has been removed from inventory.'
        )

    async def update_products(self, products: list[Product]) -> BulkResult:
        """Write every product back, one request per row.

        Stops at the first failing row; rows before it stay committed.
        """
        for product in products:
            if min(product.price, product.stock, product.threshold) < 0:
                raise ValidationFailed(
                    f'{product.name}: price, stock and threshold must not '
                    'be negative'
                )

        result = BulkResult()
        pending = [product.id for product in products]
        for product in products:
            pending.pop(0)
            try:
                await self.data.save_product(product)
            except RemoteOperationError as exc:
                logger.error('Error updating product %s: %s', product.id, exc)
                result.failed.append(BulkFailure(id=product.id, error=str(exc)))
                result.skipped = pending
                break
            result.succeeded.append(product.id)

        try:
            await self.fetch_all_data()
        except RemoteOperationError:
            logger.warning('Refresh after bulk product update failed')

        if not result.ok:
            self.notifier.error(
                'Error Updating Products',
                f'{len(result.succeeded)} of {len(products)} products '
                'were updated before the failure.',
            )
            raise PartialWriteError('Failed to update products', result)
        return result

    # --- sales --------------------------------------------------------------

    @staticmethod
    def _validate_sale(sale: SaleCreate):
        if not sale.items:
            raise ValidationFailed('Cannot record a sale with no items')
        for item in sale.items:
            if not math.isclose(item.total, item.quantity * item.price):
                raise ValidationFailed(
                    f'Line total for {item.product_name} does not match '
                    'quantity x price'
                )
        if not math.isclose(
            sale.total_amount, sum(item.total for item in sale.items)
        ):
            raise ValidationFailed(
                'Sale total does not match the sum of its items'
            )

    async def add_sale(self, sale: SaleCreate) -> Sale:
        """Record a sale: header, items, stock decrements, then refresh.

        If the items cannot be written the header is deleted again. Stock
        updates that already went through are not undone.
        """
        self._validate_sale(sale)
        started = time.monotonic()

        try:
            header = await self.data.insert_sale(sale)
        except RemoteOperationError as exc:
            logger.error('Error inserting sale header: %s', exc)
            self.notifier.error('Error Processing Sale', str(exc))
            raise

        try:
            items = await self.data.insert_sale_items(header.id, sale.items)
        except RemoteOperationError as exc:
            logger.error('Error inserting items for sale %s: %s', header.id, exc)
            await self._discard_sale_header(header.id)
            self.notifier.error('Error Processing Sale', str(exc))
            raise

        for item in sale.items:
            product = self.get_product(item.product_id)
            if product is None:
                logger.warning(
                    'Sale %s references unknown product %s; stock unchanged',
                    header.id, item.product_id,
                )
                continue
            stock = product.stock - item.quantity
            if stock < 0:
                logger.warning(
                    'Product %s oversold by %s units', product.id, -stock
                )
                stock = 0
            await self.update_product(product.id, ProductUpdate(stock=stock))

        recorded = header.model_copy(update={'items': items})
        try:
            await self.fetch_all_data()
        except RemoteOperationError:
            logger.warning('Sale %s recorded but refresh failed', header.id)
            self.notifier.warning(
                'Sale Recorded',
                'The sale was saved but the latest data could not be loaded.',
            )
            self.sales = [recorded, *self.sales]

        logger.info(
            'Sale %s recorded in %.0f ms',
            header.id, (time.monotonic() - started) * 1000,
        )
        self.notifier.success(
            'Sale Completed',
            f'Sale of ${sale.total_amount:.2f} processed successfully.',
        )
        self._changed()
        return self.get_sale(header.id) or recorded

    async def _discard_sale_header(self, sale_id: str):
        try:
            await self.data.sales.delete(sale_id)
        except RemoteOperationError:
            logger.exception('Could not remove orphaned sale %s', sale_id)
        else:
            logger.info('Removed orphaned sale header %s', sale_id)

    async def update_sales(self, sales: list[Sale]):
        """Replace every recorded sale. Administrative resets only."""
        if not sales:
            raise ValidationFailed(
                'Refusing to clear all sales. Use this only for '
                'admin-level batch resets.'
            )
        for sale in sales:
            self._validate_sale(sale)

        try:
            await self.data.delete_all_sales()
            await self.data.insert_sales(sales)
        except RemoteOperationError:
            logger.exception('Error replacing sales')
            self.notifier.error(
                'Error Updating Sales', 'Failed to update sales in database.'
            )
            raise

        await self.fetch_all_data()

    # --- users --------------------------------------------------------------

    async def add_user(
        self, name: str, email: str, role: str, password_hash: str
    ) -> UserRecord:
        try:
            user = await self.data.insert_user(name, email, role, password_hash)
        except RemoteOperationError:
            logger.exception('Error adding user %s', email)
            self.notifier.error('Error', 'Failed to add user')
            raise
        self.users = [*self.users, user]
        self.notifier.success('Success', f'{name} has been added as a {role}.')
        self._changed()
        return user

    async def delete_user(self, user_id: str):
        try:
            await self.data.users.delete(user_id)
        except RemoteOperationError:
            logger.exception('Error deleting user %s', user_id)
            self.notifier.error('Error', 'Failed to delete user')
            raise
        self.users = [u for u in self.users if u.id != user_id]
        self.notifier.success('Success', 'User deleted successfully')
        self._changed()

    # --- stock alerts -------------------------------------------------------

    async def update_stock_alerts(self):
        await self._calculate_stock_alerts(self.products)

    async def _calculate_stock_alerts(self, products: list[Product]):
        self.stock_alerts = alerts.calculate_stock_alerts(products)
        self._changed()
        try:
            await self.data.replace_stock_alerts(self.stock_alerts)
        except RemoteOperationError:
            # derived data, the local list is already correct
            logger.exception('Error updating stock alerts')


def get_store(request: Request) -> StoreData:
    return request.app.state.store
