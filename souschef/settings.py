from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SOUSCHEF_", extra="ignore")

    database_url: str = "sqlite:///./souschef.db"

    # "sql" persists through SQLAlchemy, "memory" keeps everything in-process
    store_backend: Literal["sql", "memory"] = "sql"

    # Units
    default_unit_system: Literal["us", "metric"] = "us"

    # Duplication
    copy_title_suffix: str = " (Copy)"

    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost",
        "http://127.0.0.1",
    ]


settings = Settings()
