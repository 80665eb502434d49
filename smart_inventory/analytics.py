"""Read-only aggregates over the sales and product collections.

Nothing here is cached; every function recomputes from the lists it is
given. Profit figures assume a fixed cost of 60% of the listed price.
"""
import calendar
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from .schemas import (
    CashierSummary,
    CategoryBreakdown,
    ChartData,
    DashboardSummary,
    InventorySummary,
    Product,
    ProductProfit,
    ProductSales,
    Sale,
    StockAlert,
    TimeSeriesData,
    User,
)

COST_RATIO = 0.6
UNKNOWN_CATEGORY = 'Unknown'


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def month_before(moment: datetime) -> datetime:
    """Same day and time one calendar month earlier, clamped to month end."""
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (
        moment.year - 1, 12
    )
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _categories(products: Iterable[Product]) -> dict[str, str]:
    return {product.id: product.category for product in products}


def sales_by_category(
    sales: Iterable[Sale], products: Iterable[Product]
) -> list[ChartData]:
    """Revenue per product category, in order of first appearance."""
    category_of = _categories(products)
    revenue: dict[str, float] = {}
    for sale in sales:
        for item in sale.items:
            category = category_of.get(item.product_id) or UNKNOWN_CATEGORY
            revenue[category] = revenue.get(category, 0.0) + item.total
    return [ChartData(name=name, value=value) for name, value in revenue.items()]


def sales_by_product(
    sales: Iterable[Sale], products: Iterable[Product]
) -> list[ProductSales]:
    """Units sold per product, keyed by the name frozen on the sale."""
    units: dict[str, int] = {}
    names: dict[str, str] = {}
    for sale in sales:
        for item in sale.items:
            names.setdefault(item.product_id, item.product_name)
            units[item.product_id] = units.get(item.product_id, 0) + item.quantity
    catalog = {product.id: product for product in products}
    result = []
    for product_id, value in units.items():
        info = catalog.get(product_id)
        result.append(
            ProductSales(
                id=product_id,
                name=names[product_id],
                value=value,
                category=info.category if info else '',
                price=info.price if info else 0.0,
            )
        )
    return result


def sales_over_time(sales: Iterable[Sale]) -> list[TimeSeriesData]:
    """Sale totals bucketed by UTC calendar day, oldest first."""
    by_day: dict[str, float] = defaultdict(float)
    for sale in sales:
        by_day[as_utc(sale.timestamp).date().isoformat()] += sale.total_amount
    return [
        TimeSeriesData(date=day, value=value)
        for day, value in sorted(by_day.items())
    ]


def top_selling(sales, products, limit: int = 10) -> list[ProductSales]:
    ranked = sales_by_product(sales, products)
    return sorted(ranked, key=lambda entry: entry.value, reverse=True)[:limit]


def lowest_selling(sales, products, limit: int = 10) -> list[ProductSales]:
    ranked = sales_by_product(sales, products)
    return sorted(ranked, key=lambda entry: entry.value)[:limit]


def products_with_profit(
    sales: Iterable[Sale], products: Iterable[Product]
) -> list[ProductProfit]:
    products = list(products)
    sold = {entry.id: entry.value for entry in sales_by_product(sales, products)}
    result = []
    for product in products:
        quantity = sold.get(product.id, 0)
        unit_cost = product.price * COST_RATIO
        margin = (
            (product.price - unit_cost) / product.price * 100
            if product.price > 0 else 0.0
        )
        result.append(
            ProductProfit(
                id=product.id,
                name=product.name,
                category=product.category,
                price=product.price,
                stock=product.stock,
                quantity_sold=quantity,
                profit=(product.price - unit_cost) * quantity,
                profit_margin=margin,
            )
        )
    return result


def most_profitable(sales, products, limit: int = 10) -> list[ProductProfit]:
    ranked = products_with_profit(sales, products)
    return sorted(ranked, key=lambda entry: entry.profit, reverse=True)[:limit]


def _stock_ratio(product: Product) -> float:
    if product.threshold <= 0:
        return 0.0
    return product.stock / product.threshold


def low_stock_products(products: Iterable[Product]) -> list[Product]:
    """Products at or below threshold, the most depleted first."""
    low = [p for p in products if p.stock <= p.threshold]
    return sorted(low, key=_stock_ratio)


def out_of_stock_products(products: Iterable[Product]) -> list[Product]:
    return [p for p in products if p.stock == 0]


def inventory_summary(products: Iterable[Product]) -> InventorySummary:
    products = list(products)
    by_category: dict[str, list[Product]] = defaultdict(list)
    for product in products:
        by_category[product.category or UNKNOWN_CATEGORY].append(product)
    categories = [
        CategoryBreakdown(
            name=name,
            products=len(members),
            in_stock_value=sum(p.price * p.stock for p in members),
            average_price=sum(p.price for p in members) / len(members),
        )
        for name, members in sorted(by_category.items())
    ]
    return InventorySummary(
        total_products=len(products),
        low_stock=len(low_stock_products(products)),
        out_of_stock=len(out_of_stock_products(products)),
        categories=categories,
    )


def filter_sales(
    sales: Iterable[Sale],
    search: str = '',
    time_range: str = 'all',
    cashier_id: str | None = None,
    now: datetime | None = None,
) -> list[Sale]:
    """Sales matching a search term and time range, newest first.

    The search matches the sale id, the cashier name or any product name.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    term = search.lower()
    since = {
        'week': now - timedelta(days=7),
        'month': month_before(now),
    }.get(time_range)

    def matches(sale: Sale) -> bool:
        if cashier_id is not None and sale.cashier_id != cashier_id:
            return False
        if term and not (
            term in sale.id.lower()
            or term in sale.cashier_name.lower()
            or any(term in item.product_name.lower() for item in sale.items)
        ):
            return False
        moment = as_utc(sale.timestamp)
        if time_range == 'today':
            return moment.date() == now.date()
        if since is not None:
            return moment >= since
        return True

    return sorted(
        (sale for sale in sales if matches(sale)),
        key=lambda sale: as_utc(sale.timestamp),
        reverse=True,
    )


def dashboard_summary(
    sales: list[Sale],
    products: list[Product],
    stock_alerts: list[StockAlert],
) -> DashboardSummary:
    total = sum(sale.total_amount for sale in sales)
    count = len(sales)
    return DashboardSummary(
        total_sales_amount=total,
        total_sales_count=count,
        total_products=len(products),
        low_stock_count=len(stock_alerts),
        average_sale_value=total / count if count else 0.0,
        sales_by_category=sales_by_category(sales, products),
        sales_over_time=sales_over_time(sales),
    )


def cashier_summaries(
    users: Iterable[User], sales: Iterable[Sale]
) -> list[CashierSummary]:
    sales = list(sales)
    result = []
    for user in users:
        if user.role != 'cashier':
            continue
        theirs = [sale for sale in sales if sale.cashier_id == user.id]
        result.append(
            CashierSummary(
                id=user.id,
                name=user.name,
                email=user.email,
                sale_count=len(theirs),
                total_sales=sum(sale.total_amount for sale in theirs),
            )
        )
    return result
