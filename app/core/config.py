from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.domain.documents import MAX_FILE_SIZE_BYTES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "CarePulse API"
    environment: str = "development"
    log_level: str = "INFO"
    database_url: str = (
        "postgresql+psycopg2://carepulse:carepulse@db:5432/carepulse"  # pragma: allowlist secret
    )
    redis_url: str = "redis://redis:6379/0"
    auto_create_tables: bool = False
    timezone: str = "Asia/Singapore"
    cors_origins: list[str] = ["http://localhost:3000"]
    rate_limit_requests: int = 120
    rate_limit_window_seconds: int = 60

    clinic_name: str = "CarePulse Clinic"
    enforce_operating_hours: bool = True
    reminders_enabled: bool = False

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_messaging_service_sid: str = ""
    twilio_api_base_url: str = "https://api.twilio.com/2010-04-01"
    sms_mock_mode: bool = False

    aws_region: str = "ap-southeast-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_s3_bucket_name: str = ""
    storage_mock_base_url: str = "http://localhost:8000"
    upload_url_expiration_seconds: int = 30 * 60
    download_url_expiration_seconds: int = 60 * 60
    max_upload_size_bytes: int = MAX_FILE_SIZE_BYTES

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.aws_s3_bucket_name
            and self.aws_access_key_id
            and self.aws_secret_access_key
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
