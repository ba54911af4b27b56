"""
Seed-скрипт: справочники для схем (штаты, SKU, упаковки, FOC, типы купонов)
Запуск: python -m qr_schemes.scripts.seed_catalog
"""
import logging
from decimal import Decimal
from sqlalchemy.engine import Engine
from sqlmodel import Session
from qr_schemes.db.session import engine as default_engine, create_tables
from qr_schemes.models.catalog import Region, Product, FOCProduct, PackSize, CouponType
from qr_schemes.core.config import settings


INDIAN_STATES = [
    ("AP", "Andhra Pradesh"), ("AR", "Arunachal Pradesh"), ("AS", "Assam"),
    ("BR", "Bihar"), ("CG", "Chhattisgarh"), ("GA", "Goa"),
    ("GJ", "Gujarat"), ("HR", "Haryana"), ("HP", "Himachal Pradesh"),
    ("JH", "Jharkhand"), ("KA", "Karnataka"), ("KL", "Kerala"),
    ("MP", "Madhya Pradesh"), ("MH", "Maharashtra"), ("MN", "Manipur"),
    ("ML", "Meghalaya"), ("MZ", "Mizoram"), ("NL", "Nagaland"),
    ("OD", "Odisha"), ("PB", "Punjab"), ("RJ", "Rajasthan"),
    ("SK", "Sikkim"), ("TN", "Tamil Nadu"), ("TS", "Telangana"),
    ("TR", "Tripura"), ("UP", "Uttar Pradesh"), ("UK", "Uttarakhand"),
    ("WB", "West Bengal"), ("DL", "Delhi"),
]

PRODUCTS = [
    ("sku-1", "Coca Cola", "CC001"),
    ("sku-2", "Pepsi", "PP001"),
    ("sku-3", "Sprite", "SP001"),
    ("sku-4", "Fanta", "FN001"),
    ("sku-5", "Thums Up", "TU001"),
]

FOC_PRODUCTS = [
    ("foc-1", "Coca Cola Zero 200ml", "CCZ200", "Beverages"),
    ("foc-2", "Lays Classic 25g", "LAY025", "Snacks"),
    ("foc-3", "Sprite Can 150ml", "SPR150", "Beverages"),
]

# (id, label, sku_id)
PACK_SIZES = [
    ("ps-1", "200ml", "sku-1"), ("ps-2", "500ml", "sku-1"),
    ("ps-3", "1L", "sku-1"), ("ps-4", "2L", "sku-1"),
    ("ps-5", "200ml", "sku-2"), ("ps-6", "500ml", "sku-2"), ("ps-7", "1L", "sku-2"),
    ("ps-8", "250ml", "sku-3"), ("ps-9", "500ml", "sku-3"),
    ("ps-10", "300ml", "sku-4"), ("ps-11", "500ml", "sku-4"),
    ("ps-12", "200ml", "sku-5"), ("ps-13", "750ml", "sku-5"),
    ("ps-f1", "200ml", "foc-1"),
    ("ps-f2", "25g", "foc-2"),
    ("ps-f3", "150ml", "foc-3"),
]

COUPON_TYPES = [
    ("ct-1", "Round", "Circular shaped coupon"),
    ("ct-2", "Card", "Card shaped coupon"),
    ("ct-3", "Rectangular", "Rectangular shaped coupon"),
]


def _add_missing(session: Session, model, key, **values) -> bool:
    """Добавить запись, если её ещё нет"""
    if session.get(model, key):
        return False
    session.add(model(**values))
    return True


def seed_catalog(bind: Engine = None, with_foc: bool = None) -> int:
    """Заполнить справочники. Возвращает число добавленных записей"""
    bind = bind or default_engine
    with_foc = settings.SEED_FOC_PRODUCTS if with_foc is None else with_foc
    added = 0

    with Session(bind) as session:
        for order, (code, name) in enumerate(INDIAN_STATES):
            added += _add_missing(session, Region, code, code=code, name=name, sort_order=order)

        for sku_id, name, code in PRODUCTS:
            added += _add_missing(session, Product, sku_id, id=sku_id, name=name, code=code)

        if with_foc:
            for foc_id, name, sku_code, category in FOC_PRODUCTS:
                added += _add_missing(
                    session, FOCProduct, foc_id,
                    id=foc_id, name=name, sku_code=sku_code,
                    mrp=Decimal("0"), category=category, photo_url="/placeholder.svg",
                )

        for order, (pack_id, label, sku_id) in enumerate(PACK_SIZES):
            if sku_id.startswith("foc-") and not with_foc:
                continue
            added += _add_missing(
                session, PackSize, pack_id,
                id=pack_id, label=label, sku_id=sku_id, sort_order=order,
            )

        for ct_id, name, description in COUPON_TYPES:
            added += _add_missing(session, CouponType, ct_id, id=ct_id, name=name, description=description)

        session.commit()

    return added


def main():
    logging.basicConfig(level=settings.LOG_LEVEL)
    print("Creating tables...")
    create_tables()
    print("Seeding catalog...")
    added = seed_catalog()
    print(f"Done! {added} record(s) added")


if __name__ == "__main__":
    main()
