from pydantic import BaseModel, Field
from typing import Optional, Tuple, Literal
from datetime import date, datetime
from decimal import Decimal
from qr_schemes.models.scheme import CouponValueType, SchemeStatus


class RegionOverride(BaseModel):
    """Своё значение купона для подмножества фиксированных регионов"""
    state_codes: Tuple[str, ...]
    state_names: Tuple[str, ...] = ()
    value_type: CouponValueType
    value: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    coupon_count: int = 0

    class Config:
        frozen = True
        from_attributes = True


class SKUPackEntry(BaseModel):
    sku_id: str
    sku_name: str = ""
    pack_size_id: str
    pack_size_label: str = ""

    coupon_count: int = 0
    coupon_value: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    expiry_date: Optional[date] = None
    coupon_type_id: Optional[str] = None
    coupon_type_name: Optional[str] = None

    region_overrides: Tuple[RegionOverride, ...] = ()

    @property
    def key(self) -> Tuple[str, str]:
        return self.sku_id, self.pack_size_id

    class Config:
        frozen = True
        from_attributes = True


class SchemeFormData(BaseModel):
    """Черновик схемы; каждое изменение создаёт новый экземпляр"""
    name: str = ""
    description: Optional[str] = ""
    value_type: CouponValueType = CouponValueType.RUPEES
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    fixed_state_codes: Tuple[str, ...] = ()
    fixed_state_names: Tuple[str, ...] = ()

    sku_pack_entries: Tuple[SKUPackEntry, ...] = ()

    class Config:
        frozen = True
        from_attributes = True


class SchemeRead(SchemeFormData):
    """Сохранённая схема"""
    id: int
    scheme_code: str
    status: SchemeStatus
    activated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EffectiveValue(BaseModel):
    region_code: str
    value_type: CouponValueType
    value: Decimal
    coupon_count: int
    # override | entry
    source: Literal["override", "entry"]
    override_index: Optional[int] = None

    class Config:
        frozen = True


class FieldError(BaseModel):
    field: str
    message: str
    entry_index: Optional[int] = None
    override_index: Optional[int] = None

    class Config:
        frozen = True
