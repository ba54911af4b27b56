import logging
from typing import Dict, List, Sequence
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col
from qr_schemes.core.errors import RepositoryFailureError
from qr_schemes.models.catalog import Region, Product, FOCProduct, PackSize, CouponType
from qr_schemes.models.scheme import CouponValueType
from qr_schemes.schemas.catalog import (
    RegionResponse, SKUResponse, PackSizeResponse, CouponTypeResponse
)

logger = logging.getLogger(__name__)


class CatalogProvider:
    """Справочники для мастера схем (только чтение)"""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _fetch(self, stmt) -> list:
        try:
            with Session(self.engine) as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as exc:
            raise RepositoryFailureError("Catalog query failed") from exc

    def list_regions(self) -> List[RegionResponse]:
        rows = self._fetch(select(Region).order_by(Region.sort_order, Region.name))
        return [RegionResponse.model_validate(r) for r in rows]

    def get_region_names(self, codes: Sequence[str]) -> Dict[str, str]:
        """code -> name только для известных кодов"""
        if not codes:
            return {}
        rows = self._fetch(select(Region).where(col(Region.code).in_(list(codes))))
        return {r.code: r.name for r in rows}

    def list_skus(self, value_type: CouponValueType) -> List[SKUResponse]:
        """SKU из каталога, соответствующего типу значения"""
        if value_type == CouponValueType.POINTS:
            rows = self._fetch(
                select(FOCProduct).where(FOCProduct.is_active == True).order_by(FOCProduct.name)
            )
            return [SKUResponse(id=p.id, name=p.name, code=p.sku_code) for p in rows]

        rows = self._fetch(
            select(Product).where(Product.is_active == True).order_by(Product.name)
        )
        return [SKUResponse(id=p.id, name=p.name, code=p.code) for p in rows]

    def list_pack_sizes(self, sku_id: str) -> List[PackSizeResponse]:
        rows = self._fetch(
            select(PackSize).where(PackSize.sku_id == sku_id).order_by(PackSize.sort_order)
        )
        return [PackSizeResponse.model_validate(p) for p in rows]

    def list_coupon_types(self) -> List[CouponTypeResponse]:
        rows = self._fetch(select(CouponType).order_by(CouponType.name))
        return [CouponTypeResponse.model_validate(c) for c in rows]


class PackSizeCache:
    """Упаковки по SKU: читаем из каталога при промахе, дальше из памяти"""

    def __init__(self, catalog: CatalogProvider):
        self.catalog = catalog
        self._by_sku: Dict[str, List[PackSizeResponse]] = {}

    def get(self, sku_id: str) -> List[PackSizeResponse]:
        if sku_id not in self._by_sku:
            logger.debug("Pack sizes cache miss for %s", sku_id)
            self._by_sku[sku_id] = self.catalog.list_pack_sizes(sku_id)
        return list(self._by_sku[sku_id])

    def __contains__(self, sku_id: str) -> bool:
        return sku_id in self._by_sku

    def clear(self) -> None:
        self._by_sku.clear()
