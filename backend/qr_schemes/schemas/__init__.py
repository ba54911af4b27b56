from .catalog import RegionResponse, SKUResponse, PackSizeResponse, CouponTypeResponse
from .scheme import (
    RegionOverride, SKUPackEntry, SchemeFormData, SchemeRead, EffectiveValue, FieldError
)

__all__ = [
    "RegionResponse", "SKUResponse", "PackSizeResponse", "CouponTypeResponse",
    "RegionOverride", "SKUPackEntry", "SchemeFormData", "SchemeRead",
    "EffectiveValue", "FieldError",
]
