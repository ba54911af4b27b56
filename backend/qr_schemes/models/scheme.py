from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from qr_schemes.core.clock import utcnow


class CouponValueType(str, Enum):
    RUPEES = "rupees"
    POINTS = "points"


class SchemeStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"


class Scheme(SQLModel, table=True):
    __tablename__ = "schemes"

    id: Optional[int] = Field(default=None, primary_key=True)
    scheme_code: str = Field(unique=True, index=True)
    name: str
    description: Optional[str] = None

    value_type: CouponValueType
    start_date: date
    end_date: date

    # Регионы с фиксированным значением (значение берётся из строки SKU)
    fixed_state_codes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    fixed_state_names: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    status: SchemeStatus = Field(default=SchemeStatus.DRAFT)
    activated_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationships
    sku_pack_entries: List["SchemeEntry"] = Relationship(
        back_populates="scheme",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "SchemeEntry.position",
        },
    )


class SchemeEntry(SQLModel, table=True):
    """Строка схемы: SKU + упаковка"""
    __tablename__ = "scheme_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    scheme_id: int = Field(foreign_key="schemes.id", index=True)
    position: int = Field(default=0)

    sku_id: str
    sku_name: str
    pack_size_id: str
    pack_size_label: str

    coupon_count: int = Field(default=0)
    coupon_value: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    expiry_date: Optional[date] = None
    coupon_type_id: Optional[str] = None
    coupon_type_name: Optional[str] = None

    # Relationships
    scheme: Optional["Scheme"] = Relationship(back_populates="sku_pack_entries")
    region_overrides: List["SchemeRegionOverride"] = Relationship(
        back_populates="entry",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "SchemeRegionOverride.position",
        },
    )


class SchemeRegionOverride(SQLModel, table=True):
    __tablename__ = "scheme_region_overrides"

    id: Optional[int] = Field(default=None, primary_key=True)
    entry_id: int = Field(foreign_key="scheme_entries.id", index=True)
    position: int = Field(default=0)

    state_codes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    state_names: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    value_type: CouponValueType
    value: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    coupon_count: int = Field(default=0)

    # Relationships
    entry: Optional["SchemeEntry"] = Relationship(back_populates="region_overrides")


class SchemeCodeCounter(SQLModel, table=True):
    """Последний выданный номер кода за день, не уменьшается при удалении схем"""
    __tablename__ = "scheme_code_counters"

    # SCH-YYYYMMDD
    code_prefix: str = Field(primary_key=True)
    last_sequence: int = Field(default=0)
