from datetime import date, datetime

import pytest
from sqlmodel import Session, select

from qr_schemes.core.config import settings
from qr_schemes.core.errors import NotFoundError, RepositoryFailureError
from qr_schemes.models.scheme import SchemeCodeCounter, SchemeEntry, SchemeRegionOverride, SchemeStatus
from qr_schemes.services.repository import build_scheme, format_scheme_code, parse_scheme_sequence


def test_scheme_code_format():
    assert format_scheme_code(date(2026, 10, 19), 7) == "SCH-20261019-007"
    assert parse_scheme_sequence("SCH-20261019-042") == 42
    assert parse_scheme_sequence("garbage") is None

    with pytest.raises(ValueError):
        format_scheme_code(date(2026, 10, 19), 1000)
    with pytest.raises(ValueError):
        format_scheme_code(date(2026, 10, 19), 0)


def test_codes_are_sequential_per_day(diwali, repository):
    day = date(2026, 10, 19)
    assert repository.generate_scheme_code(day) == "SCH-20261019-001"

    diwali.add_override(0, ["GJ"])
    repository.save(diwali.draft, "SCH-20261019-001")
    repository.save(diwali.draft, "SCH-20261019-002")

    assert repository.generate_scheme_code(day) == "SCH-20261019-003"
    assert repository.generate_scheme_code(date(2026, 10, 20)) == "SCH-20261020-001"
    assert sorted(repository.existing_codes()) == ["SCH-20261019-001", "SCH-20261019-002"]


def test_deleted_codes_are_not_reissued(diwali, repository, engine):
    day = date(2026, 10, 19)
    saved = repository.save(diwali.draft, repository.generate_scheme_code(day))
    assert saved.scheme_code == "SCH-20261019-001"

    repository.delete(saved.id)

    assert repository.generate_scheme_code(day) == "SCH-20261019-002"
    with Session(engine) as session:
        assert session.get(SchemeCodeCounter, "SCH-20261019").last_sequence == 1


def test_is_code_issued(diwali, repository):
    saved = repository.save(diwali.draft, "SCH-20261019-002")

    assert repository.is_code_issued("SCH-20261019-002")
    assert repository.is_code_issued("SCH-20261019-001")
    assert not repository.is_code_issued("SCH-20261019-003")
    assert not repository.is_code_issued("SCH-20261020-001")

    repository.delete(saved.id)
    assert repository.is_code_issued("SCH-20261019-002")


def test_sequence_exhaustion_keeps_width(diwali, repository, monkeypatch):
    monkeypatch.setattr(settings, "SCHEME_CODE_SEQUENCE_DIGITS", 1)
    day = date(2026, 10, 19)

    repository.save(diwali.draft, "SCH-20261019-9")

    with pytest.raises(RepositoryFailureError):
        repository.generate_scheme_code(day)
    assert repository.generate_scheme_code(date(2026, 10, 20)) == "SCH-20261020-1"


def test_save_round_trip(diwali, repository):
    diwali.add_override(0, ["GJ"])
    diwali.update_override(0, 0, value=15, coupon_count=2000)

    saved = repository.save(diwali.draft, "SCH-20261019-001")

    assert saved.id is not None
    assert saved.status == SchemeStatus.DRAFT
    assert saved.fixed_state_codes == ("MH", "GJ")
    assert saved.fixed_state_names == ("Maharashtra", "Gujarat")

    entry = saved.sku_pack_entries[0]
    assert (entry.sku_name, entry.pack_size_label) == ("Coca Cola", "500ml")
    assert entry.coupon_value == 10
    assert entry.expiry_date == date(2026, 11, 30)
    assert entry.region_overrides[0].state_codes == ("GJ",)
    assert entry.region_overrides[0].value == 15

    assert repository.get(saved.id) == saved
    assert [s.id for s in repository.list()] == [saved.id]


def test_duplicate_code_is_repository_failure(diwali, repository):
    repository.save(diwali.draft, "SCH-20261019-001")

    with pytest.raises(RepositoryFailureError) as exc:
        repository.save(diwali.draft, "SCH-20261019-001")

    assert exc.value.__cause__ is not None
    assert len(repository.list()) == 1


def test_delete_cascades(diwali, repository, engine):
    diwali.add_override(0, ["GJ"])
    saved = repository.save(diwali.draft, "SCH-20261019-001")

    repository.delete(saved.id)

    assert repository.list() == []
    with Session(engine) as session:
        assert session.exec(select(SchemeEntry)).all() == []
        assert session.exec(select(SchemeRegionOverride)).all() == []


def test_missing_scheme(repository):
    with pytest.raises(NotFoundError):
        repository.get(404)
    with pytest.raises(NotFoundError):
        repository.delete(404)
    with pytest.raises(NotFoundError):
        repository.activate(404)


def test_activate_and_refresh_status(diwali, repository):
    saved = repository.save(diwali.draft, "SCH-20261019-001")

    before_start = repository.activate(saved.id, now=datetime(2026, 9, 1))
    assert before_start.status == SchemeStatus.DRAFT
    assert before_start.activated_at.replace(tzinfo=None) == datetime(2026, 9, 1)

    assert repository.refresh_status(now=datetime(2026, 10, 5)) == 1
    assert repository.get(saved.id).status == SchemeStatus.ACTIVE

    assert repository.refresh_status(now=datetime(2026, 12, 1)) == 1
    assert repository.get(saved.id).status == SchemeStatus.EXPIRED
    assert repository.refresh_status(now=datetime(2026, 12, 2)) == 0


def test_new_rows_carry_utc_timestamps(diwali):
    scheme = build_scheme(diwali.draft, "SCH-20261019-001")
    assert scheme.created_at.tzinfo is not None
    assert scheme.created_at.utcoffset().total_seconds() == 0
