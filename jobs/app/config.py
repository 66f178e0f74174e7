from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Celery worker configuration."""

    redis_url: str = "redis://redis:6379/0"
    timezone: str = "Asia/Singapore"
    database_url: str = (
        "postgresql+psycopg2://carepulse:carepulse@db:5432/carepulse"  # pragma: allowlist secret
    )
    upload_reaper_interval_seconds: int = 15 * 60
    no_show_check_interval_seconds: int = 30 * 60

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
