"""Cart state and the checkout workflow of a single register."""
import logging
import math
import re
from datetime import datetime, timezone
from uuid import uuid4

from .exceptions import (
    InvalidCart,
    OutOfStock,
    RemoteOperationError,
    StockLimitReached,
    ValidationFailed,
)
from .schemas import CartLine, CartView, Product, Receipt, SaleCreate, User
from .store import StoreData

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE,
)


def to_cents(amount: float) -> int:
    return round(amount * 100)


class Cart:
    """Ordered cart lines, at most one per product.

    Every mutation replaces the affected line with a fresh copy, so a line's
    total always equals quantity * price.
    """

    def __init__(self):
        self.lines: list[CartLine] = []

    def __len__(self):
        return len(self.lines)

    @property
    def total(self) -> float:
        return sum(line.total for line in self.lines)

    def find(self, line_id: str) -> CartLine | None:
        return next((line for line in self.lines if line.id == line_id), None)

    def find_product(self, product_id: str) -> CartLine | None:
        return next(
            (line for line in self.lines if line.product_id == product_id), None
        )

    def add(self, product: Product) -> CartLine:
        if product.stock <= 0:
            raise OutOfStock(f'{product.name} is currently out of stock.')

        existing = self.find_product(product.id)
        if existing is not None:
            if existing.quantity >= product.stock:
                raise StockLimitReached(
                    f'Only {product.stock} units of {product.name} '
                    'are available.'
                )
            line = existing.with_quantity(existing.quantity + 1)
            self._replace(line)
            return line

        line = CartLine(
            id=uuid4().hex[:8],
            product_id=product.id,
            product_name=product.name,
            quantity=1,
            price=product.price,
            total=product.price,
        )
        self.lines.append(line)
        return line

    def set_quantity(self, line_id: str, quantity: int) -> CartLine | None:
        line = self.find(line_id)
        if line is None:
            return None
        if quantity <= 0:
            self.remove(line_id)
            return None
        line = line.with_quantity(quantity)
        self._replace(line)
        return line

    def remove(self, line_id: str):
        self.lines = [line for line in self.lines if line.id != line_id]

    def clear(self):
        self.lines = []

    def snapshot(self) -> list[CartLine]:
        return [line.model_copy() for line in self.lines]

    def _replace(self, line: CartLine):
        self.lines = [
            line if current.id == line.id else current
            for current in self.lines
        ]


class PointOfSale:
    """A cashier's register: one cart, its checkout step and last receipt."""

    def __init__(self, store: StoreData):
        self.store = store
        self.notifier = store.notifier
        self.cart = Cart()
        self.checkout_open = False
        self.receipt: Receipt | None = None
        self.warning: str | None = None
        self.paying = False

    # --- cart ---------------------------------------------------------------

    def invalid_lines(self) -> list[CartLine]:
        """Lines whose product is no longer in the catalog."""
        return [
            line for line in self.cart.lines
            if self.store.get_product(line.product_id) is None
        ]

    def view(self) -> CartView:
        invalid = [line.id for line in self.invalid_lines()]
        return CartView(
            lines=self.cart.snapshot(),
            total=self.cart.total,
            has_invalid_products=bool(invalid),
            invalid_line_ids=invalid,
            checkout_open=self.checkout_open,
            warning=self.warning,
        )

    def _product(self, product_id: str) -> Product:
        product = self.store.get_product(product_id)
        if product is None:
            raise InvalidCart(f'Product {product_id} is not available.')
        return product

    def _ensure_idle(self):
        if self.paying:
            raise ValidationFailed(
                'A payment is being processed. Please wait before changing '
                'the cart.'
            )

    def add_to_cart(self, product_id: str) -> CartLine:
        self._ensure_idle()
        self.warning = None
        product = self._product(product_id)
        try:
            line = self.cart.add(product)
        except OutOfStock as exc:
            self.notifier.error('Out of Stock', str(exc))
            raise
        except StockLimitReached as exc:
            self.notifier.error('Stock Limit Reached', str(exc))
            raise
        self.notifier.success(
            'Added to Cart', f'{product.name} has been added to your cart.'
        )
        return line

    def update_quantity(self, line_id: str, quantity: int) -> CartLine | None:
        """Set a line's quantity, clamped to the product's live stock."""
        self._ensure_idle()
        self.warning = None
        line = self.cart.find(line_id)
        if line is None:
            return None
        product = self.store.get_product(line.product_id)
        if product is None:
            return line
        if quantity > product.stock:
            self.warning = (
                f'Only {product.stock} units of {product.name} are available.'
            )
            self.notifier.warning('Stock Limit', self.warning)
            quantity = product.stock
        return self.cart.set_quantity(line_id, quantity)

    def remove_from_cart(self, line_id: str):
        self._ensure_idle()
        self.warning = None
        self.cart.remove(line_id)

    def clear_cart(self, confirmed: bool = False):
        self._ensure_idle()
        self.warning = None
        if not self.cart.lines:
            return
        if not confirmed:
            raise ValidationFailed('Clearing the cart must be confirmed.')
        self.cart.clear()
        self.notifier.success(
            'Cart Cleared', 'All items have been removed from your cart.'
        )

    # --- checkout -----------------------------------------------------------

    def _ensure_valid(self):
        if self.invalid_lines():
            raise InvalidCart(
                'Some items in your cart are no longer available in '
                'inventory. Please remove them before checkout.'
            )

    def begin_checkout(self):
        self.warning = None
        try:
            self._ensure_valid()
            if not self.cart.lines:
                raise InvalidCart(
                    'Please add items to your cart before checkout.'
                )
        except ValidationFailed as exc:
            self.notifier.error('Checkout Unavailable', str(exc))
            raise
        self.checkout_open = True

    def _validate_payment(self, payment, cashier: User | None) -> float:
        try:
            self._ensure_valid()
        except InvalidCart:
            self.checkout_open = False
            raise
        if not self.cart.lines:
            raise InvalidCart('Please add items to your cart before checkout.')

        for line in self.cart.lines:
            product = self.store.get_product(line.product_id)
            if line.quantity > product.stock:
                raise StockLimitReached(
                    f'Only {product.stock} units of {product.name} '
                    'are available.'
                )

        total = self.cart.total
        try:
            amount = float(payment)
        except (TypeError, ValueError):
            amount = math.nan
        if math.isnan(amount) or to_cents(amount) < to_cents(total):
            raise ValidationFailed(
                f'Payment amount must be at least ${total:.2f}.'
            )

        if cashier is None or not cashier.id or not cashier.name:
            raise ValidationFailed(
                'Cannot process sale: no cashier is signed in. Please log in.'
            )
        if not UUID_PATTERN.match(cashier.id):
            raise ValidationFailed(
                "The cashier's user ID is invalid. Please contact an admin."
            )
        return amount

    async def complete_payment(self, payment, cashier: User | None) -> Receipt:
        """Record the cart as a sale and return the receipt.

        The cart cannot change while the sale is being written. It is only
        cleared once the sale is recorded; any failure leaves it as it was.
        """
        self.warning = None
        try:
            self._ensure_idle()
            amount = self._validate_payment(payment, cashier)
        except ValidationFailed as exc:
            self.notifier.error('Invalid Payment', str(exc))
            raise

        items = self.cart.snapshot()
        total = self.cart.total
        sale = SaleCreate(
            items=items,
            total_amount=total,
            cashier_id=cashier.id,
            cashier_name=cashier.name,
            timestamp=datetime.now(timezone.utc),
        )
        self.paying = True
        try:
            try:
                recorded = await self.store.add_sale(sale)
            except RemoteOperationError as exc:
                logger.error(
                    'Sale failed for cashier %s: %s', cashier.id, exc
                )
                self.notifier.error('Sale Failed', str(exc))
                raise

            self._verify_recorded(recorded.id)

            self.receipt = Receipt(
                sale_id=recorded.id,
                items=items,
                total=total,
                payment=amount,
                change=(to_cents(amount) - to_cents(total)) / 100,
                cashier_name=cashier.name,
                timestamp=sale.timestamp,
            )
            sold = {line.id for line in items}
            for line_id in sold:
                self.cart.remove(line_id)
            self.checkout_open = False
        finally:
            self.paying = False
        self.notifier.success(
            'Sale Completed',
            f'Transaction for ${total:.2f} has been processed.',
        )
        return self.receipt

    def _verify_recorded(self, sale_id: str):
        sale = self.store.get_sale(sale_id)
        if sale is None:
            logger.warning('Sale %s missing from refreshed sales', sale_id)
            self.notifier.warning(
                'Sale Not Found',
                'The sale could not be found after saving. Please check '
                'the sales history.',
            )
        elif not sale.items:
            logger.warning('Sale %s was recorded without items', sale_id)
            self.notifier.warning(
                'Sale Items Not Recorded',
                'Sale record is missing items. Please check the database.',
            )
