from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    REMOTE_STORE_BASE_URL: str | None = None
    REMOTE_STORE_API_TOKEN: str | None = None
    REMOTE_STORE_TIMEOUT_SECONDS: float = 10.0

    CALENDAR_TIMEZONE: str = "UTC"
    SLOT_GRACE_MINUTES: int = 1
    MAX_ALTERNATIVES: int = 5

    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 15.0

    REFRESH_ENABLED: bool = False
    POLL_NOTIFICATIONS_SECONDS: float = 5.0
    POLL_ENGAGEMENTS_SECONDS: float = 2.0
    POLL_SUBJECTS_SECONDS: float = 15.0


settings = Settings()
