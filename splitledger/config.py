"""Application configuration from environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from SPLITLEDGER_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="SPLITLEDGER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    default_settlement_threshold: int = Field(
        default=0, ge=0, description="Threshold for new groups, in minor units (0 alerts on any debt)"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    seed_demo_data: bool = Field(default=True, description="Seed the in-memory store with a demo group")

    api_title: str = Field(default="Split Ledger API", description="API title")
    api_version: str = Field(default="1.0.0", description="API version")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


@lru_cache
def get_settings() -> Settings:
    return Settings()
