from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./qr_schemes.db"
    SQL_ECHO: bool = False

    # Код схемы: PREFIX-YYYYMMDD-NNN
    SCHEME_CODE_PREFIX: str = "SCH"
    SCHEME_CODE_SEQUENCE_DIGITS: int = 3

    # Проверять, что срок купона не выходит за период схемы
    ENFORCE_EXPIRY_WITHIN_SCHEME: bool = False

    LOG_LEVEL: str = "INFO"

    # Seed
    SEED_FOC_PRODUCTS: bool = True

    class Config:
        env_file = ".env"


settings = Settings()
