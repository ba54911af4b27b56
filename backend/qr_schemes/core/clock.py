from datetime import datetime, timezone


def utcnow() -> datetime:
    """Текущее время UTC с tzinfo"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Наивное время считается UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
