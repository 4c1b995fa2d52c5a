import logging
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    api_title: str = Field("User Management API")
    data_file: str = Field("users.json", description="Path of the JSON user store")
    storage_backend: str = Field("json", description="Either 'json' or 'sql'")
    database_url: str = Field("sqlite:///users.db")
    access_token_expire_minutes: int = Field(60)
    jwt_secret: str = Field("change-me-to-a-long-random-secret-key")
    jwt_algorithm: str = Field("HS256")
    jwt_issuer: str = Field("userdesk-api")
    jwt_audience: str = Field("userdesk-clients")
    login_rate_limit: str = Field("5/minute")
    rate_limit_enabled: bool = Field(True)
    log_level: str = Field("INFO")
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:8000"])


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Set up root logging for the service."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
