from pydantic import BaseModel
from typing import Optional


class RegionResponse(BaseModel):
    code: str
    name: str

    class Config:
        from_attributes = True


class SKUResponse(BaseModel):
    id: str
    name: str
    code: str

    class Config:
        from_attributes = True


class PackSizeResponse(BaseModel):
    id: str
    label: str
    sku_id: str

    class Config:
        from_attributes = True


class CouponTypeResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True
