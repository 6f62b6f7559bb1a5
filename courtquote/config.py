from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./quotations.db"
    APP_NAME: str = "Court Quotation Service"
    CURRENCY: str = "USD"
    LOG_LEVEL: str = "INFO"

    # Startup bootstrap: migrate, then create any missing default rate rows
    RUN_MIGRATIONS: bool = True
    SEED_ON_STARTUP: bool = True

    # Comma-separated list, "*" allows any origin
    CORS_ORIGINS: str = "*"

    # SQLite busy timeout (seconds) so concurrent writers wait instead of failing
    SQLITE_TIMEOUT: float = 15.0

    class Config:
        env_file = ".env"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
