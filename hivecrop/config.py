# hivecrop/config.py
"""Environment-driven settings (pydantic-settings), one cached instance per process."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database
    database_url: str = "sqlite:///./beehive.db"
    database_echo: bool = False

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgres:// URLs; SQLAlchemy wants a driver."""
        if isinstance(v, str):
            for prefix in ("postgres://", "postgresql://"):
                if v.startswith(prefix):
                    return v.replace(prefix, "postgresql+psycopg://", 1)
        return v

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = []

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    # Lookups
    nearby_default_radius_km: float = 100.0
    crop_overlap_radius_km: float = 2.0
    default_page_size: int = 10
    max_page_size: int = 100


@lru_cache
def get_settings() -> Settings:
    return Settings()
