from datetime import datetime

from sqlalchemy import Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, registry

table_registry = registry()


@table_registry.mapped_as_dataclass
class Product:
    __tablename__ = 'products'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str]
    price: Mapped[float] = mapped_column(Float)
    stock: Mapped[int] = mapped_column(Integer)
    threshold: Mapped[int] = mapped_column(Integer)
    description: Mapped[str | None] = mapped_column(default=None)
    category: Mapped[str] = mapped_column(default='')
    image: Mapped[str | None] = mapped_column(default=None)
    created_at: Mapped[datetime] = mapped_column(
        init=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        init=False, server_default=func.now()
    )


@table_registry.mapped_as_dataclass
class Sale:
    __tablename__ = 'sales'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    total_amount: Mapped[float] = mapped_column(Float)
    cashier_id: Mapped[str] = mapped_column(String(36))
    cashier_name: Mapped[str]
    timestamp: Mapped[datetime]


@table_registry.mapped_as_dataclass
class SaleItem:
    __tablename__ = 'sale_items'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    sale_id: Mapped[str] = mapped_column(ForeignKey('sales.id'))
    product_id: Mapped[str] = mapped_column(String(36))  # snapshot, no FK
    product_name: Mapped[str]
    quantity: Mapped[int]
    price: Mapped[float] = mapped_column(Float)
    total: Mapped[float] = mapped_column(Float)


@table_registry.mapped_as_dataclass
class User:
    __tablename__ = 'users'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str]
    email: Mapped[str] = mapped_column(unique=True)
    role: Mapped[str]
    password: Mapped[str]  # pwdlib hash, never plaintext
    created_at: Mapped[datetime] = mapped_column(
        init=False, server_default=func.now()
    )


@table_registry.mapped_as_dataclass
class StockAlert:
    __tablename__ = 'stock_alerts'

    id: Mapped[str] = mapped_column(primary_key=True)
    product_id: Mapped[str] = mapped_column(String(36))
    product_name: Mapped[str]
    current_stock: Mapped[int]
    threshold: Mapped[int]
    status: Mapped[str]


@table_registry.mapped_as_dataclass
class Setting:
    __tablename__ = 'settings'

    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[str | None] = mapped_column(default=None)
