# app/core/config.py
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings, read from the environment and an optional .env file.
    Variable names are case-insensitive (DATABASE_URL or database_url).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Service Booking Platform API"
    environment: str = "development"
    debug: bool = False

    database_url: str = "sqlite:///./bookings.db"

    # JWT
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # Pricing
    platform_fee_rate: float = Field(0.10, ge=0, le=1)

    # Pagination
    default_page_size: int = Field(20, ge=1)
    max_page_size: int = Field(100, ge=1)

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


settings = Settings()
