from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine
from qr_schemes.core.config import settings


def build_engine(database_url: str = None, echo: bool = None) -> Engine:
    """Создать engine; для SQLite отключаем проверку потока"""
    url = database_url or settings.DATABASE_URL
    kwargs = {"echo": settings.SQL_ECHO if echo is None else echo}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # In-memory база должна жить в одном соединении
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    return create_engine(url, **kwargs)


def create_tables(bind: Engine = None) -> None:
    """Создание всех таблиц"""
    # Регистрируем модели в metadata
    import qr_schemes.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


engine = build_engine()
