import logging
from datetime import date, datetime
from typing import List, Optional, Set
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col
from qr_schemes.core.clock import as_utc, utcnow
from qr_schemes.core.config import settings
from qr_schemes.core.errors import NotFoundError, RepositoryFailureError
from qr_schemes.models.scheme import (
    Scheme, SchemeEntry, SchemeRegionOverride, SchemeCodeCounter, SchemeStatus
)
from qr_schemes.schemas.scheme import SchemeFormData, SchemeRead
from qr_schemes.services.lifecycle import classify_status

logger = logging.getLogger(__name__)


def scheme_code_prefix(day: date) -> str:
    return f"{settings.SCHEME_CODE_PREFIX}-{day.strftime('%Y%m%d')}"


def max_scheme_sequence() -> int:
    return 10 ** settings.SCHEME_CODE_SEQUENCE_DIGITS - 1


def format_scheme_code(day: date, sequence: int) -> str:
    """Номер фиксированной ширины, чтобы коды сортировались как строки"""
    if not 1 <= sequence <= max_scheme_sequence():
        raise ValueError(f"Scheme code sequence {sequence} out of range 1..{max_scheme_sequence()}")
    digits = settings.SCHEME_CODE_SEQUENCE_DIGITS
    return f"{scheme_code_prefix(day)}-{sequence:0{digits}d}"


def parse_scheme_sequence(code: str) -> Optional[int]:
    """Порядковый номер из кода вида SCH-YYYYMMDD-NNN"""
    try:
        return int(code.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return None


def build_scheme(form: SchemeFormData, scheme_code: str) -> Scheme:
    """Собрать ORM-агрегат из черновика"""
    scheme = Scheme(
        scheme_code=scheme_code,
        name=form.name.strip(),
        description=form.description,
        value_type=form.value_type,
        start_date=form.start_date,
        end_date=form.end_date,
        fixed_state_codes=list(form.fixed_state_codes),
        fixed_state_names=list(form.fixed_state_names),
        status=SchemeStatus.DRAFT,
    )

    for position, entry_data in enumerate(form.sku_pack_entries):
        entry = SchemeEntry(
            position=position,
            sku_id=entry_data.sku_id,
            sku_name=entry_data.sku_name,
            pack_size_id=entry_data.pack_size_id,
            pack_size_label=entry_data.pack_size_label,
            coupon_count=entry_data.coupon_count,
            coupon_value=entry_data.coupon_value,
            expiry_date=entry_data.expiry_date,
            coupon_type_id=entry_data.coupon_type_id,
            coupon_type_name=entry_data.coupon_type_name,
        )
        entry.region_overrides = [
            SchemeRegionOverride(
                position=override_position,
                state_codes=list(override.state_codes),
                state_names=list(override.state_names),
                value_type=override.value_type,
                value=override.value,
                coupon_count=override.coupon_count,
            )
            for override_position, override in enumerate(entry_data.region_overrides)
        ]
        scheme.sku_pack_entries.append(entry)

    return scheme


class SchemeRepository:
    """Хранилище готовых схем"""

    def __init__(self, engine: Engine):
        self.engine = engine

    def generate_scheme_code(self, today: date = None) -> str:
        """Следующий код за день: SCH-YYYYMMDD-NNN"""
        today = today or utcnow().date()
        prefix = scheme_code_prefix(today)

        try:
            with Session(self.engine) as session:
                codes = session.exec(
                    select(Scheme.scheme_code).where(col(Scheme.scheme_code).startswith(prefix + "-"))
                ).all()
                counter = session.get(SchemeCodeCounter, prefix)
        except SQLAlchemyError as exc:
            raise RepositoryFailureError("Failed to read scheme codes") from exc

        # Номера удалённых схем повторно не выдаются
        sequences = [s for s in (parse_scheme_sequence(c) for c in codes) if s is not None]
        if counter:
            sequences.append(counter.last_sequence)

        sequence = max(sequences, default=0) + 1
        if sequence > max_scheme_sequence():
            raise RepositoryFailureError(f"Scheme codes for {prefix} are exhausted")
        return format_scheme_code(today, sequence)

    def existing_codes(self) -> Set[str]:
        try:
            with Session(self.engine) as session:
                return set(session.exec(select(Scheme.scheme_code)).all())
        except SQLAlchemyError as exc:
            raise RepositoryFailureError("Failed to read scheme codes") from exc

    def is_code_issued(self, scheme_code: str) -> bool:
        """Код занят схемой или уже выдавался схеме, которую потом удалили"""
        sequence = parse_scheme_sequence(scheme_code)
        try:
            with Session(self.engine) as session:
                taken = session.exec(
                    select(Scheme.id).where(Scheme.scheme_code == scheme_code)
                ).first()
                if taken is not None:
                    return True
                if sequence is None:
                    return False
                counter = session.get(SchemeCodeCounter, scheme_code.rsplit("-", 1)[0])
        except SQLAlchemyError as exc:
            raise RepositoryFailureError("Failed to read scheme codes") from exc

        return counter is not None and sequence <= counter.last_sequence

    def save(self, form: SchemeFormData, scheme_code: str) -> SchemeRead:
        """Сохранить схему целиком одной транзакцией"""
        scheme = build_scheme(form, scheme_code)

        try:
            with Session(self.engine) as session:
                self._advance_counter(session, scheme_code)
                session.add(scheme)
                try:
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    raise
                session.refresh(scheme)
                result = SchemeRead.model_validate(scheme)
        except SQLAlchemyError as exc:
            raise RepositoryFailureError(f"Failed to save scheme {scheme_code}") from exc

        logger.info(
            "Scheme %s saved (id=%s, entries=%d)",
            result.scheme_code, result.id, len(result.sku_pack_entries),
        )
        return result

    @staticmethod
    def _advance_counter(session: Session, scheme_code: str) -> None:
        """Счётчик дня не меньше номера сохраняемого кода"""
        sequence = parse_scheme_sequence(scheme_code)
        if sequence is None:
            return

        prefix = scheme_code.rsplit("-", 1)[0]
        counter = session.get(SchemeCodeCounter, prefix)
        if counter is None:
            counter = SchemeCodeCounter(code_prefix=prefix, last_sequence=sequence)
        elif sequence > counter.last_sequence:
            counter.last_sequence = sequence
        session.add(counter)

    def list(self) -> List[SchemeRead]:
        try:
            with Session(self.engine) as session:
                schemes = session.exec(select(Scheme).order_by(Scheme.id.desc())).all()
                return [SchemeRead.model_validate(s) for s in schemes]
        except SQLAlchemyError as exc:
            raise RepositoryFailureError("Failed to list schemes") from exc

    def get(self, scheme_id: int) -> SchemeRead:
        try:
            with Session(self.engine) as session:
                scheme = session.get(Scheme, scheme_id)
                if not scheme:
                    raise NotFoundError("Scheme", scheme_id)
                return SchemeRead.model_validate(scheme)
        except SQLAlchemyError as exc:
            raise RepositoryFailureError(f"Failed to load scheme {scheme_id}") from exc

    def delete(self, scheme_id: int) -> None:
        """Удалить схему вместе со строками и override"""
        try:
            with Session(self.engine) as session:
                scheme = session.get(Scheme, scheme_id)
                if not scheme:
                    raise NotFoundError("Scheme", scheme_id)
                session.delete(scheme)
                session.commit()
        except SQLAlchemyError as exc:
            raise RepositoryFailureError(f"Failed to delete scheme {scheme_id}") from exc

        logger.info("Scheme %s deleted", scheme_id)

    def activate(self, scheme_id: int, now: datetime = None) -> SchemeRead:
        """Ручная активация; статус пересчитывается по датам"""
        now = as_utc(now) if now else utcnow()

        try:
            with Session(self.engine) as session:
                scheme = session.get(Scheme, scheme_id)
                if not scheme:
                    raise NotFoundError("Scheme", scheme_id)

                scheme.activated_at = now
                scheme.status = classify_status(scheme.start_date, scheme.end_date, now, activated=True)
                scheme.updated_at = utcnow()
                session.add(scheme)
                session.commit()
                session.refresh(scheme)
                result = SchemeRead.model_validate(scheme)
        except SQLAlchemyError as exc:
            raise RepositoryFailureError(f"Failed to activate scheme {scheme_id}") from exc

        logger.info("Scheme %s activated, status=%s", result.scheme_code, result.status.value)
        return result

    def refresh_status(self, now: datetime = None) -> int:
        """Пересчитать статусы всех схем. Возвращает число изменённых"""
        now = as_utc(now) if now else utcnow()
        changed = 0

        try:
            with Session(self.engine) as session:
                for scheme in session.exec(select(Scheme)).all():
                    status = classify_status(
                        scheme.start_date,
                        scheme.end_date,
                        now,
                        activated=scheme.activated_at is not None,
                    )
                    if status != scheme.status:
                        scheme.status = status
                        scheme.updated_at = utcnow()
                        session.add(scheme)
                        changed += 1
                session.commit()
        except SQLAlchemyError as exc:
            raise RepositoryFailureError("Failed to refresh scheme statuses") from exc

        if changed:
            logger.info("Scheme statuses refreshed: %d changed", changed)
        return changed
