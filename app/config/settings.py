from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "birthday-reminder-worker"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./birthday_reminder.db"

    # Redis & Celery
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Expo push service
    EXPO_BASE_URL: str = "https://exp.host/--/api/v2"
    EXPO_ACCESS_TOKEN: str = ""
    EXPO_REQUEST_TIMEOUT: float = 30.0

    # Approaching birthday notifications
    BIRTHDAY_CUTOFF_HOURS: int = 96
    NOTIFICATION_CLEARANCE_HOURS: int = 24
    RECEIPT_CHECK_DELAY_SECONDS: int = 60

    # Ticket store
    TICKET_STORE_TTL_SECONDS: int = 3600
    TICKET_STORE_KEY_PREFIX: str = "push-tickets"

    @field_validator("EXPO_BASE_URL", mode="before")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_ticket_retention(self):
        """Tickets must outlive the receipt check that reads them, with margin for queue lag."""
        if self.TICKET_STORE_TTL_SECONDS < 2 * self.RECEIPT_CHECK_DELAY_SECONDS:
            raise ValueError(
                "TICKET_STORE_TTL_SECONDS must be at least twice RECEIPT_CHECK_DELAY_SECONDS"
            )
        return self

    @property
    def redis_url(self) -> str:
        return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
