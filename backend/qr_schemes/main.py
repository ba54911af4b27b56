import logging
from sqlalchemy.engine import Engine
from qr_schemes.core.config import settings
from qr_schemes.db.session import build_engine, create_tables
from qr_schemes.services.catalog import CatalogProvider
from qr_schemes.services.draft import SchemeDraftBuilder
from qr_schemes.services.repository import SchemeRepository

logger = logging.getLogger(__name__)


class SchemeConsole:
    """
    Корневой объект процесса: engine, каталог и репозиторий создаются один
    раз при старте и передаются во все мастера схем.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.catalog = CatalogProvider(engine)
        self.repository = SchemeRepository(engine)

    def new_draft(self) -> SchemeDraftBuilder:
        return SchemeDraftBuilder(self.catalog, self.repository)

    def health(self) -> dict:
        return {
            "status": "healthy",
            "env": settings.ENV,
            "schemes": len(self.repository.list()),
        }

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Scheme console closed")

    def __enter__(self) -> "SchemeConsole":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def create_console(database_url: str = None, init_db: bool = True) -> SchemeConsole:
    engine = build_engine(database_url)
    if init_db:
        create_tables(engine)
    logger.info("Scheme console started (env=%s)", settings.ENV)
    return SchemeConsole(engine)
