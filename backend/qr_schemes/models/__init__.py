from .catalog import Region, Product, FOCProduct, PackSize, CouponType
from .scheme import (
    Scheme, SchemeEntry, SchemeRegionOverride, SchemeCodeCounter, CouponValueType, SchemeStatus
)

__all__ = [
    "Region", "Product", "FOCProduct", "PackSize", "CouponType",
    "Scheme", "SchemeEntry", "SchemeRegionOverride", "SchemeCodeCounter",
    "CouponValueType", "SchemeStatus",
]
