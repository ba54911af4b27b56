"""
Разрешение значения купона для пары (строка SKU, регион) и проверка
черновика схемы перед сохранением.

Приоритет: override региона > значение строки для фиксированного региона.
Регион вне фиксированного набора строкой не покрыт.
"""
import logging
import math
from decimal import Decimal
from typing import Collection, Dict, List, Mapping, Optional
from qr_schemes.core.config import settings
from qr_schemes.core.errors import RegionNotCoveredError
from qr_schemes.schemas.scheme import (
    SchemeFormData, SKUPackEntry, EffectiveValue, FieldError
)

logger = logging.getLogger(__name__)


def get_entry(scheme: SchemeFormData, entry_index: int) -> SKUPackEntry:
    entries = scheme.sku_pack_entries
    if entry_index < 0 or entry_index >= len(entries):
        raise IndexError(f"Entry index {entry_index} out of range")
    return entries[entry_index]


def find_entry(scheme: SchemeFormData, sku_id: str, pack_size_id: str) -> Optional[int]:
    """Индекс строки по SKU + упаковке"""
    for index, entry in enumerate(scheme.sku_pack_entries):
        if entry.key == (sku_id, pack_size_id):
            return index
    return None


def resolve_effective_value(
    scheme: SchemeFormData,
    entry_index: int,
    region_code: str,
) -> EffectiveValue:
    """Действующее значение купона для региона"""
    entry = get_entry(scheme, entry_index)

    for override_index, override in enumerate(entry.region_overrides):
        if region_code in override.state_codes:
            return EffectiveValue(
                region_code=region_code,
                value_type=override.value_type,
                value=override.value,
                coupon_count=override.coupon_count,
                source="override",
                override_index=override_index,
            )

    if region_code in scheme.fixed_state_codes:
        return EffectiveValue(
            region_code=region_code,
            value_type=scheme.value_type,
            value=entry.coupon_value,
            coupon_count=entry.coupon_count,
            source="entry",
        )

    raise RegionNotCoveredError(entry_index, region_code)


def resolve_entry_matrix(scheme: SchemeFormData, entry_index: int) -> List[EffectiveValue]:
    """Значения по всем фиксированным регионам строки"""
    return [
        resolve_effective_value(scheme, entry_index, code)
        for code in scheme.fixed_state_codes
    ]


def is_valid_amount(value) -> bool:
    """Конечное неотрицательное число"""
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite() and value >= 0
    try:
        return math.isfinite(value) and value >= 0
    except TypeError:
        return False


MONEY_DIGITS = 12
MONEY_PLACES = 2


def fits_money_column(value) -> bool:
    """Сумма помещается в Numeric(12, 2) без округления"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if abs(value) >= Decimal(10) ** (MONEY_DIGITS - MONEY_PLACES):
        return False
    return value == value.quantize(Decimal(1).scaleb(-MONEY_PLACES))


def _amount_problem(value, money: bool = False) -> Optional[str]:
    if not is_valid_amount(value):
        return "Must be a finite number >= 0"
    if money and not fits_money_column(value):
        return f"At most {MONEY_DIGITS - MONEY_PLACES} digits before and {MONEY_PLACES} after the decimal point"
    return None


def _entry_path(entry_index: int, field: str = None) -> str:
    path = f"sku_pack_entries[{entry_index}]"
    return f"{path}.{field}" if field else path


def _override_path(entry_index: int, override_index: int, field: str = None) -> str:
    path = f"{_entry_path(entry_index)}.region_overrides[{override_index}]"
    return f"{path}.{field}" if field else path


def _validate_overrides(
    scheme: SchemeFormData,
    entry: SKUPackEntry,
    entry_index: int,
) -> List[FieldError]:
    errors = []
    fixed = set(scheme.fixed_state_codes)
    claimed: Dict[str, int] = {}

    for override_index, override in enumerate(entry.region_overrides):
        path = _override_path(entry_index, override_index, "state_codes")

        if not override.state_codes:
            errors.append(FieldError(
                field=path,
                message="Override must cover at least one region",
                entry_index=entry_index,
                override_index=override_index,
            ))

        outside = [code for code in override.state_codes if code not in fixed]
        if outside:
            errors.append(FieldError(
                field=path,
                message=f"Regions not in the fixed set: {', '.join(outside)}",
                entry_index=entry_index,
                override_index=override_index,
            ))

        overlapping = [code for code in override.state_codes if code in claimed]
        if overlapping:
            errors.append(FieldError(
                field=path,
                message=f"Regions already covered by another override: {', '.join(overlapping)}",
                entry_index=entry_index,
                override_index=override_index,
            ))
        for code in override.state_codes:
            claimed.setdefault(code, override_index)

        for field in ("value", "coupon_count"):
            problem = _amount_problem(getattr(override, field), money=field == "value")
            if problem:
                errors.append(FieldError(
                    field=_override_path(entry_index, override_index, field),
                    message=problem,
                    entry_index=entry_index,
                    override_index=override_index,
                ))

    return errors


def validate_scheme(
    scheme: SchemeFormData,
    *,
    scheme_code: Optional[str] = None,
    existing_codes: Collection[str] = (),
    sku_ids: Optional[Collection[str]] = None,
    region_codes: Optional[Collection[str]] = None,
    pack_size_ids: Optional[Mapping[str, Collection[str]]] = None,
    enforce_expiry_window: Optional[bool] = None,
) -> List[FieldError]:
    """
    Полная проверка черновика. Возвращает все ошибки сразу, пустой список
    если черновик можно сохранять.

    sku_ids: id SKU из каталога, соответствующего value_type схемы;
    region_codes: все известные регионы;
    pack_size_ids: SKU -> id его упаковок.
    Если не переданы, эти проверки пропускаются.

    Срок годности вне периода схемы ошибка только при enforce_expiry_window,
    иначе пишется предупреждение в лог.
    """
    if enforce_expiry_window is None:
        enforce_expiry_window = settings.ENFORCE_EXPIRY_WITHIN_SCHEME

    errors = []

    if not scheme.name or not scheme.name.strip():
        errors.append(FieldError(field="name", message="Name is required"))

    if scheme.start_date is None:
        errors.append(FieldError(field="start_date", message="Start date is required"))
    if scheme.end_date is None:
        errors.append(FieldError(field="end_date", message="End date is required"))
    if scheme.start_date and scheme.end_date and scheme.start_date >= scheme.end_date:
        errors.append(FieldError(field="end_date", message="End date must be after start date"))

    if scheme_code is not None and scheme_code in existing_codes:
        errors.append(FieldError(field="scheme_code", message=f"Scheme code {scheme_code} already exists"))

    # Фиксированные регионы
    if not scheme.fixed_state_codes:
        errors.append(FieldError(field="fixed_state_codes", message="Select at least one region"))
    if len(set(scheme.fixed_state_codes)) != len(scheme.fixed_state_codes):
        errors.append(FieldError(field="fixed_state_codes", message="Duplicate region codes"))
    if region_codes is not None:
        unknown = [code for code in scheme.fixed_state_codes if code not in region_codes]
        if unknown:
            errors.append(FieldError(
                field="fixed_state_codes",
                message=f"Unknown regions: {', '.join(unknown)}",
            ))

    if not scheme.sku_pack_entries:
        errors.append(FieldError(field="sku_pack_entries", message="Add at least one SKU + pack entry"))

    seen: Dict[tuple, int] = {}
    for entry_index, entry in enumerate(scheme.sku_pack_entries):
        if entry.key in seen:
            errors.append(FieldError(
                field=_entry_path(entry_index),
                message=(
                    f"Duplicate entry for SKU {entry.sku_id} / pack {entry.pack_size_id} "
                    f"(same as entry {seen[entry.key]})"
                ),
                entry_index=entry_index,
            ))
        else:
            seen[entry.key] = entry_index

        if sku_ids is not None and entry.sku_id not in sku_ids:
            errors.append(FieldError(
                field=_entry_path(entry_index, "sku_id"),
                message=f"SKU {entry.sku_id} is not in the {scheme.value_type.value} catalog",
                entry_index=entry_index,
            ))

        if pack_size_ids is not None and entry.pack_size_id not in pack_size_ids.get(entry.sku_id, ()):
            errors.append(FieldError(
                field=_entry_path(entry_index, "pack_size_id"),
                message=f"Pack {entry.pack_size_id} does not belong to SKU {entry.sku_id}",
                entry_index=entry_index,
            ))

        for field in ("coupon_value", "coupon_count"):
            problem = _amount_problem(getattr(entry, field), money=field == "coupon_value")
            if problem:
                errors.append(FieldError(
                    field=_entry_path(entry_index, field),
                    message=problem,
                    entry_index=entry_index,
                ))

        outside_period = bool(
            entry.expiry_date
            and scheme.start_date
            and scheme.end_date
            and not (scheme.start_date <= entry.expiry_date <= scheme.end_date)
        )
        if outside_period and not enforce_expiry_window:
            logger.warning(
                "Entry %d (%s / %s) expires on %s, outside the scheme period %s..%s",
                entry_index, entry.sku_id, entry.pack_size_id,
                entry.expiry_date, scheme.start_date, scheme.end_date,
            )
        elif outside_period:
            errors.append(FieldError(
                field=_entry_path(entry_index, "expiry_date"),
                message="Expiry date must fall within the scheme period",
                entry_index=entry_index,
            ))

        errors.extend(_validate_overrides(scheme, entry, entry_index))

    if errors:
        logger.debug("Scheme draft has %d validation error(s)", len(errors))
    return errors
