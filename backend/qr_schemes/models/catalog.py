from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from qr_schemes.core.clock import utcnow


class Region(SQLModel, table=True):
    __tablename__ = "regions"

    code: str = Field(primary_key=True, max_length=8)
    name: str
    sort_order: int = Field(default=0)


class Product(SQLModel, table=True):
    """Обычный каталог SKU (схемы в рупиях)"""
    __tablename__ = "products"

    id: str = Field(primary_key=True)
    name: str = Field(index=True)
    code: str = Field(unique=True, index=True)
    is_active: bool = Field(default=True)


class FOCProduct(SQLModel, table=True):
    """FOC-каталог (схемы в баллах)"""
    __tablename__ = "foc_products"

    id: str = Field(primary_key=True)
    name: str = Field(index=True)
    sku_code: str = Field(unique=True, index=True)

    # Для FOC обычно 0
    mrp: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    category: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PackSize(SQLModel, table=True):
    __tablename__ = "pack_sizes"

    id: str = Field(primary_key=True)
    label: str
    # SKU из любого из двух каталогов
    sku_id: str = Field(index=True)
    sort_order: int = Field(default=0)


class CouponType(SQLModel, table=True):
    __tablename__ = "coupon_types"

    id: str = Field(primary_key=True)
    name: str  # Round, Card, Rectangular
    description: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
