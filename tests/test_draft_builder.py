from datetime import date

import pytest

from qr_schemes.core.errors import DuplicateEntryError, NotFoundError, RegionConflictError
from qr_schemes.models.scheme import CouponValueType


def test_reset_generates_code_and_loads_reference_data(builder):
    assert builder.scheme_code.startswith("SCH-")
    assert builder.stage == 1
    assert len(builder.regions) == 29
    assert [c.name for c in builder.coupon_types] == ["Card", "Rectangular", "Round"]
    assert builder.draft.sku_pack_entries == ()


def test_add_entry_fills_names_from_catalog(diwali):
    entry = diwali.draft.sku_pack_entries[0]
    assert entry.sku_name == "Coca Cola"
    assert entry.pack_size_label == "500ml"
    assert entry.coupon_type_name == "Round"
    assert entry.region_overrides == ()


def test_duplicate_entry_is_rejected_without_change(diwali):
    before = diwali.draft

    with pytest.raises(DuplicateEntryError):
        diwali.add_entry("sku-1", "ps-2", coupon_count=1, coupon_value=1)

    assert diwali.draft is before
    assert len(diwali.draft.sku_pack_entries) == 1


def test_same_sku_with_other_pack_is_allowed(diwali):
    diwali.add_entry("sku-1", "ps-3")
    assert [e.pack_size_label for e in diwali.draft.sku_pack_entries] == ["500ml", "1L"]


def test_pack_must_belong_to_sku(diwali):
    before = diwali.draft

    # ps-6 упаковка sku-2
    with pytest.raises(NotFoundError) as exc:
        diwali.add_entry("sku-1", "ps-6")
    assert "ps-6" in str(exc.value)

    with pytest.raises(NotFoundError):
        diwali.add_entry("sku-404", "ps-2")

    assert diwali.draft is before


def test_set_value_type_clears_entries_and_reloads_skus(diwali):
    diwali.list_pack_sizes("sku-1")
    assert "sku-1" in diwali.pack_sizes

    diwali.set_value_type(CouponValueType.POINTS)

    assert diwali.draft.sku_pack_entries == ()
    assert diwali.draft.value_type == CouponValueType.POINTS
    assert {s.id for s in diwali.skus} == {"foc-1", "foc-2", "foc-3"}
    assert "sku-1" not in diwali.pack_sizes


def test_set_fixed_regions_resolves_names(builder):
    builder.set_fixed_regions(["MH", "GJ", "MH"])
    assert builder.draft.fixed_state_codes == ("MH", "GJ")
    assert builder.draft.fixed_state_names == ("Maharashtra", "Gujarat")


def test_set_fixed_regions_rejects_unknown_code(builder):
    with pytest.raises(RegionConflictError) as exc:
        builder.set_fixed_regions(["MH", "XX"])
    assert exc.value.codes == ["XX"]
    assert builder.draft.fixed_state_codes == ()


def test_removing_fixed_region_strips_it_from_overrides(diwali):
    diwali.set_fixed_regions(["MH", "GJ", "KA", "TN"])
    diwali.add_override(0, ["GJ", "KA"])
    diwali.add_override(0, ["TN"])

    diwali.set_fixed_regions(["MH", "GJ", "KA"])

    overrides = diwali.draft.sku_pack_entries[0].region_overrides
    assert len(overrides) == 1
    assert overrides[0].state_codes == ("GJ", "KA")

    diwali.set_fixed_regions(["MH", "KA"])
    overrides = diwali.draft.sku_pack_entries[0].region_overrides
    assert overrides[0].state_codes == ("KA",)
    assert overrides[0].state_names == ("Karnataka",)


def test_override_left_empty_is_removed(diwali):
    diwali.add_override(0, ["GJ"])
    diwali.update_override(0, 0, value=15, coupon_count=2000)

    diwali.set_fixed_regions(["MH"])

    assert diwali.draft.sku_pack_entries[0].region_overrides == ()


def test_add_override_defaults_to_zero(diwali):
    diwali.add_override(0, ["GJ"])
    override = diwali.draft.sku_pack_entries[0].region_overrides[0]

    assert override.value == 0
    assert override.coupon_count == 0
    assert override.value_type == CouponValueType.RUPEES
    assert override.state_names == ("Gujarat",)


def test_add_override_outside_fixed_set_fails(diwali):
    with pytest.raises(RegionConflictError):
        diwali.add_override(0, ["KA"])
    assert diwali.draft.sku_pack_entries[0].region_overrides == ()


def test_overlapping_override_fails_and_keeps_previous(diwali):
    diwali.add_override(0, ["GJ"])
    diwali.update_override(0, 0, value=15, coupon_count=2000)
    before = diwali.draft

    with pytest.raises(RegionConflictError) as exc:
        diwali.add_override(0, ["MH", "GJ"])

    assert exc.value.codes == ["GJ"]
    assert diwali.draft == before


def test_update_override_state_codes_is_checked(diwali):
    diwali.add_override(0, ["GJ"])
    diwali.add_override(0, ["MH"])

    with pytest.raises(RegionConflictError):
        diwali.update_override(0, 1, state_codes=["GJ"])

    # своё же покрытие можно переписать
    diwali.update_override(0, 0, state_codes=["GJ"])
    assert diwali.draft.sku_pack_entries[0].region_overrides[1].state_codes == ("MH",)


def test_remove_override_and_entry(diwali):
    diwali.add_override(0, ["GJ"])
    diwali.remove_override(0, 0)
    assert diwali.draft.sku_pack_entries[0].region_overrides == ()

    diwali.add_override(0, ["GJ"])
    diwali.remove_entry(0)
    assert diwali.draft.sku_pack_entries == ()


def test_bad_indexes_raise_index_error(diwali):
    with pytest.raises(IndexError):
        diwali.remove_entry(3)
    with pytest.raises(IndexError):
        diwali.update_override(0, 0, value=1)


def test_update_entry_is_shallow_and_unvalidated(diwali):
    diwali.update_entry(0, coupon_value=-5, coupon_type_id="ct-2")
    entry = diwali.draft.sku_pack_entries[0]

    assert entry.coupon_value == -5
    assert entry.coupon_type_name == "Card"
    assert entry.coupon_count == 5000


def test_update_entry_rejects_unknown_field(diwali):
    with pytest.raises(ValueError):
        diwali.update_entry(0, colour="red")


def test_available_override_regions(diwali):
    diwali.set_fixed_regions(["MH", "GJ", "KA"])
    diwali.add_override(0, ["GJ"])
    assert diwali.available_override_regions(0) == ["MH", "KA"]


def test_stage_predicates(builder):
    assert not builder.can_advance(1)
    builder.update_details(name="  ", start_date=date(2026, 1, 1), end_date=date(2026, 2, 1))
    assert not builder.can_advance(1)
    builder.update_details(name="Promo", end_date=date(2026, 1, 1))
    assert not builder.can_advance(1)
    builder.update_details(end_date=date(2026, 2, 1))
    assert builder.can_advance(1)

    assert not builder.can_advance(2)
    builder.set_fixed_regions(["MH"])
    assert builder.can_advance(2)

    assert not builder.can_advance(3)
    builder.add_entry("sku-2", "ps-6")
    assert builder.can_advance(3)

    assert not builder.can_advance(4)
    builder.update_entry(
        0, coupon_count=10, coupon_value=5,
        expiry_date=date(2026, 2, 1), coupon_type_id="ct-3",
    )
    assert builder.can_advance(4)
    assert builder.can_advance(5)


def test_next_stage_stops_when_predicate_fails(builder):
    assert builder.next_stage() == 1

    builder.update_details(name="Promo", start_date=date(2026, 1, 1), end_date=date(2026, 2, 1))
    assert builder.next_stage() == 2
    assert builder.next_stage() == 2
    assert builder.previous_stage() == 1
    assert builder.previous_stage() == 1


def test_draft_values_are_immutable(diwali):
    with pytest.raises(Exception):
        diwali.draft.name = "Other"


def test_pack_sizes_are_cached(builder, catalog, monkeypatch):
    calls = []
    original = catalog.list_pack_sizes

    def counting(sku_id):
        calls.append(sku_id)
        return original(sku_id)

    monkeypatch.setattr(catalog, "list_pack_sizes", counting)

    first = builder.list_pack_sizes("sku-1")
    second = builder.list_pack_sizes("sku-1")

    assert [p.label for p in first] == ["200ml", "500ml", "1L", "2L"]
    assert first == second
    assert calls == ["sku-1"]
