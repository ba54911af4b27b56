"""
Мастер создания схемы: пять шагов над неизменяемым черновиком.

1. название и период
2. тип значения и фиксированные регионы
3. выбор SKU + упаковок
4. детали купонов и override по регионам
5. проверка и сохранение

Каждая операция заменяет self.draft новым значением. Ошибочная операция
бросает исключение и черновик не трогает.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence
from qr_schemes.core.errors import (
    DuplicateEntryError, NotFoundError, RegionConflictError, ValidationFailedError
)
from qr_schemes.models.scheme import CouponValueType
from qr_schemes.schemas.catalog import RegionResponse, SKUResponse, PackSizeResponse, CouponTypeResponse
from qr_schemes.schemas.scheme import SchemeFormData, SKUPackEntry, RegionOverride, SchemeRead
from qr_schemes.services.catalog import CatalogProvider, PackSizeCache
from qr_schemes.services.repository import SchemeRepository
from qr_schemes.services.resolution import get_entry, find_entry, is_valid_amount, validate_scheme

logger = logging.getLogger(__name__)

FIRST_STAGE = 1
LAST_STAGE = 5

ENTRY_FIELDS = set(SKUPackEntry.model_fields)
OVERRIDE_FIELDS = set(RegionOverride.model_fields)
DETAIL_FIELDS = {"name", "description", "start_date", "end_date"}


def _patched(model, **patch):
    """Копия модели с изменёнными полями (с валидацией типов)"""
    data = {name: getattr(model, name) for name in type(model).model_fields}
    data.update(patch)
    return type(model).model_validate(data)


def _check_fields(patch: dict, allowed: set) -> None:
    unknown = set(patch) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")


class SchemeDraftBuilder:
    def __init__(
        self,
        catalog: CatalogProvider,
        repository: SchemeRepository,
        code_generator: Optional[Callable[[], str]] = None,
    ):
        self.catalog = catalog
        self.repository = repository
        self.code_generator = code_generator or repository.generate_scheme_code
        self.pack_sizes = PackSizeCache(catalog)

        self.draft = SchemeFormData()
        self.stage = FIRST_STAGE
        self.scheme_code = ""

        self.regions: List[RegionResponse] = []
        self.coupon_types: List[CouponTypeResponse] = []
        self.skus: List[SKUResponse] = []

        self.reset()

    # === Stage 1 ===

    def reset(self) -> None:
        """Новый пустой черновик, новый код схемы, справочники шага 1"""
        self.draft = SchemeFormData()
        self.stage = FIRST_STAGE
        self.pack_sizes.clear()

        self.scheme_code = self.code_generator()
        self.regions = self.catalog.list_regions()
        self.coupon_types = self.catalog.list_coupon_types()
        self.skus = self.catalog.list_skus(self.draft.value_type)
        logger.debug("Draft reset, scheme code %s", self.scheme_code)

    def update_details(self, **patch) -> SchemeFormData:
        _check_fields(patch, DETAIL_FIELDS)
        self.draft = _patched(self.draft, **patch)
        return self.draft

    # === Stage 2 ===

    def set_value_type(self, value_type: CouponValueType) -> SchemeFormData:
        """Смена типа значения сбрасывает строки и перечитывает SKU"""
        value_type = CouponValueType(value_type)
        skus = self.catalog.list_skus(value_type)

        self.draft = _patched(self.draft, value_type=value_type, sku_pack_entries=())
        self.skus = skus
        self.pack_sizes.clear()
        logger.debug("Value type set to %s, %d SKUs loaded", value_type.value, len(skus))
        return self.draft

    def set_fixed_regions(self, codes: Sequence[str]) -> SchemeFormData:
        """
        Заменить набор фиксированных регионов.
        Коды, выпавшие из набора, удаляются из override; пустые override удаляются.
        """
        codes = list(dict.fromkeys(codes))
        names = self._region_names()
        unknown = [code for code in codes if code not in names]
        if unknown:
            raise RegionConflictError(unknown, "Unknown regions")

        fixed = set(codes)
        entries = []
        for entry in self.draft.sku_pack_entries:
            overrides = []
            for override in entry.region_overrides:
                kept = tuple(code for code in override.state_codes if code in fixed)
                if not kept:
                    continue
                if kept != override.state_codes:
                    override = _patched(
                        override,
                        state_codes=kept,
                        state_names=tuple(names[code] for code in kept),
                    )
                overrides.append(override)
            entries.append(_patched(entry, region_overrides=tuple(overrides)))

        self.draft = _patched(
            self.draft,
            fixed_state_codes=tuple(codes),
            fixed_state_names=tuple(names[code] for code in codes),
            sku_pack_entries=tuple(entries),
        )
        return self.draft

    # === Stage 3 ===

    def list_pack_sizes(self, sku_id: str) -> List[PackSizeResponse]:
        return self.pack_sizes.get(sku_id)

    def add_entry(self, sku_id: str, pack_size_id: str, **fields) -> SchemeFormData:
        """SKU из каталога текущего типа значения и его собственная упаковка"""
        if find_entry(self.draft, sku_id, pack_size_id) is not None:
            raise DuplicateEntryError(sku_id, pack_size_id)
        _check_fields(fields, ENTRY_FIELDS - {"sku_id", "pack_size_id", "region_overrides"})

        sku = next((s for s in self.skus if s.id == sku_id), None)
        if sku is None:
            raise NotFoundError("SKU", sku_id)
        pack = next((p for p in self.pack_sizes.get(sku_id) if p.id == pack_size_id), None)
        if pack is None:
            raise NotFoundError("Pack size", f"{pack_size_id} of SKU {sku_id}")

        data = {
            "sku_id": sku_id,
            "sku_name": sku.name,
            "pack_size_id": pack_size_id,
            "pack_size_label": pack.label,
        }
        data.update(fields)
        if "coupon_type_id" in fields and "coupon_type_name" not in fields:
            data["coupon_type_name"] = self._coupon_type_name(fields["coupon_type_id"])

        entry = SKUPackEntry.model_validate(data)
        self.draft = _patched(self.draft, sku_pack_entries=self.draft.sku_pack_entries + (entry,))
        return self.draft

    def remove_entry(self, index: int) -> SchemeFormData:
        get_entry(self.draft, index)
        entries = self.draft.sku_pack_entries
        self.draft = _patched(self.draft, sku_pack_entries=entries[:index] + entries[index + 1:])
        return self.draft

    # === Stage 4 ===

    def update_entry(self, index: int, **patch) -> SchemeFormData:
        """Поверхностное обновление строки, без кросс-проверок"""
        entry = get_entry(self.draft, index)
        _check_fields(patch, ENTRY_FIELDS)

        if "coupon_type_id" in patch and "coupon_type_name" not in patch:
            patch["coupon_type_name"] = self._coupon_type_name(patch["coupon_type_id"])

        return self._replace_entry(index, _patched(entry, **patch))

    def add_override(self, entry_index: int, state_codes: Sequence[str]) -> SchemeFormData:
        """Новый override с нулевыми значением и количеством"""
        entry = get_entry(self.draft, entry_index)
        codes = self._check_override_codes(entry, state_codes)

        override = RegionOverride(
            state_codes=codes,
            state_names=self._names_for(codes),
            value_type=self.draft.value_type,
            value=0,
            coupon_count=0,
        )
        return self._replace_entry(
            entry_index,
            _patched(entry, region_overrides=entry.region_overrides + (override,)),
        )

    def update_override(self, entry_index: int, override_index: int, **patch) -> SchemeFormData:
        entry = get_entry(self.draft, entry_index)
        override = self._get_override(entry, override_index)
        _check_fields(patch, OVERRIDE_FIELDS)

        if "state_codes" in patch:
            codes = self._check_override_codes(entry, patch["state_codes"], skip=override_index)
            patch["state_codes"] = codes
            patch["state_names"] = self._names_for(codes)

        overrides = list(entry.region_overrides)
        overrides[override_index] = _patched(override, **patch)
        return self._replace_entry(entry_index, _patched(entry, region_overrides=tuple(overrides)))

    def remove_override(self, entry_index: int, override_index: int) -> SchemeFormData:
        entry = get_entry(self.draft, entry_index)
        self._get_override(entry, override_index)

        overrides = entry.region_overrides
        return self._replace_entry(
            entry_index,
            _patched(entry, region_overrides=overrides[:override_index] + overrides[override_index + 1:]),
        )

    def available_override_regions(self, entry_index: int) -> List[str]:
        """Фиксированные регионы, ещё не занятые override этой строки"""
        entry = get_entry(self.draft, entry_index)
        claimed = {code for o in entry.region_overrides for code in o.state_codes}
        return [code for code in self.draft.fixed_state_codes if code not in claimed]

    # === Navigation ===

    def can_advance(self, stage: int = None) -> bool:
        """Можно ли перейти со шага stage (по умолчанию текущего)"""
        stage = self.stage if stage is None else stage
        draft = self.draft

        if stage == 1:
            return bool(
                draft.name.strip()
                and draft.start_date
                and draft.end_date
                and draft.start_date < draft.end_date
            )
        if stage == 2:
            return len(draft.fixed_state_codes) > 0
        if stage == 3:
            return len(draft.sku_pack_entries) > 0
        if stage == 4:
            return all(
                is_valid_amount(e.coupon_count) and e.coupon_count > 0
                and is_valid_amount(e.coupon_value) and e.coupon_value > 0
                and e.expiry_date is not None
                and bool(e.coupon_type_id)
                for e in draft.sku_pack_entries
            )
        if stage == LAST_STAGE:
            return True
        raise ValueError(f"Unknown stage {stage}")

    def next_stage(self) -> int:
        if self.stage < LAST_STAGE and self.can_advance():
            self.stage += 1
        return self.stage

    def previous_stage(self) -> int:
        if self.stage > FIRST_STAGE:
            self.stage -= 1
        return self.stage

    # === Stage 5 ===

    def validate(self) -> list:
        return validate_scheme(
            self.draft,
            scheme_code=self.scheme_code,
            existing_codes=self.repository.existing_codes(),
            sku_ids={s.id for s in self.catalog.list_skus(self.draft.value_type)},
            region_codes=set(self._region_names()),
            pack_size_ids={
                sku_id: {p.id for p in self.pack_sizes.get(sku_id)}
                for sku_id in {e.sku_id for e in self.draft.sku_pack_entries}
            },
        )

    def finalize(self) -> SchemeRead:
        """
        Проверить и сохранить схему. При ошибках ничего не сохраняется,
        черновик остаётся доступным для правки.
        Если код схемы уже выдан другой схеме, выдаётся новый.
        """
        if self.repository.is_code_issued(self.scheme_code):
            taken = self.scheme_code
            self.scheme_code = self.code_generator()
            logger.info("Scheme code %s already taken, using %s", taken, self.scheme_code)

        errors = self.validate()
        if errors:
            logger.warning("Scheme %s rejected: %d validation error(s)", self.scheme_code, len(errors))
            raise ValidationFailedError(errors)

        scheme = self.repository.save(self.draft, self.scheme_code)
        self.reset()
        return scheme

    # === Helpers ===

    def _replace_entry(self, index: int, entry: SKUPackEntry) -> SchemeFormData:
        entries = list(self.draft.sku_pack_entries)
        entries[index] = entry
        self.draft = _patched(self.draft, sku_pack_entries=tuple(entries))
        return self.draft

    @staticmethod
    def _get_override(entry: SKUPackEntry, override_index: int) -> RegionOverride:
        if override_index < 0 or override_index >= len(entry.region_overrides):
            raise IndexError(f"Override index {override_index} out of range")
        return entry.region_overrides[override_index]

    def _check_override_codes(
        self,
        entry: SKUPackEntry,
        state_codes: Sequence[str],
        skip: int = None,
    ) -> tuple:
        codes = tuple(dict.fromkeys(state_codes))
        if not codes:
            raise RegionConflictError([], "Override must cover at least one region")

        outside = [code for code in codes if code not in self.draft.fixed_state_codes]
        if outside:
            raise RegionConflictError(outside, "Regions not in the fixed set")

        claimed = {
            code
            for i, o in enumerate(entry.region_overrides)
            if i != skip
            for code in o.state_codes
        }
        taken = [code for code in codes if code in claimed]
        if taken:
            raise RegionConflictError(taken, "Regions already covered by another override")
        return codes

    def _region_names(self) -> Dict[str, str]:
        return {r.code: r.name for r in self.regions}

    def _names_for(self, codes: Sequence[str]) -> tuple:
        names = self._region_names()
        return tuple(names.get(code, code) for code in codes)

    def _coupon_type_name(self, coupon_type_id: Optional[str]) -> Optional[str]:
        return next((c.name for c in self.coupon_types if c.id == coupon_type_id), None)
