from collections.abc import Iterable

from .schemas import AlertStatus, Product, StockAlert

CRITICAL_RATIO = 0.5


def alert_id(product_id: str) -> str:
    return f'alert-{product_id}'


def alert_status(stock: int, threshold: int) -> AlertStatus | None:
    """Severity of a stock level, or None when it is above threshold."""
    if stock > threshold:
        return None
    if stock <= threshold * CRITICAL_RATIO:
        return 'critical'
    return 'warning'


def calculate_stock_alerts(products: Iterable[Product]) -> list[StockAlert]:
    alerts = []
    for product in products:
        status = alert_status(product.stock, product.threshold)
        if status is None:
            continue
        alerts.append(
            StockAlert(
                id=alert_id(product.id),
                product_id=product.id,
                product_name=product.name,
                current_stock=product.stock,
                threshold=product.threshold,
                status=status,
            )
        )
    return alerts
