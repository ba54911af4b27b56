"""
Фикстуры: in-memory SQLite с заполненными справочниками.
"""
from datetime import date

import pytest

from qr_schemes.db.session import build_engine, create_tables
from qr_schemes.scripts.seed_catalog import seed_catalog
from qr_schemes.services.catalog import CatalogProvider
from qr_schemes.services.draft import SchemeDraftBuilder
from qr_schemes.services.repository import SchemeRepository


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", echo=False)
    create_tables(engine)
    seed_catalog(engine, with_foc=True)
    yield engine
    engine.dispose()


@pytest.fixture
def catalog(engine):
    return CatalogProvider(engine)


@pytest.fixture
def repository(engine):
    return SchemeRepository(engine)


@pytest.fixture
def builder(catalog, repository):
    return SchemeDraftBuilder(catalog, repository)


@pytest.fixture
def diwali(builder):
    """Diwali Promo: MH + GJ, Coca Cola 500ml, 5000 купонов по 10"""
    builder.update_details(
        name="Diwali Promo",
        description="Festive season coupons",
        start_date=date(2026, 10, 1),
        end_date=date(2026, 11, 30),
    )
    builder.set_value_type("rupees")
    builder.set_fixed_regions(["MH", "GJ"])
    builder.add_entry(
        "sku-1", "ps-2",
        coupon_count=5000,
        coupon_value=10,
        expiry_date=date(2026, 11, 30),
        coupon_type_id="ct-1",
    )
    return builder
