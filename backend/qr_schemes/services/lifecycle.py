from datetime import date, datetime
from typing import Union
from qr_schemes.models.scheme import SchemeStatus


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def classify_status(
    start_date: date,
    end_date: date,
    now: Union[date, datetime],
    activated: bool = False,
) -> SchemeStatus:
    """
    Статус схемы на момент now:
    1. после end_date: expired
    2. активирована и now в [start_date, end_date]: active
    3. иначе: draft (активация делается администратором)
    """
    today = _as_date(now)

    if today > end_date:
        return SchemeStatus.EXPIRED
    if activated and start_date <= today <= end_date:
        return SchemeStatus.ACTIVE
    return SchemeStatus.DRAFT
