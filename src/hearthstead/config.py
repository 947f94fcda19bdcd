"""Application configuration for Hearthstead."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings read from the environment or a ``.env`` file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///hearthstead.db", description="SQLAlchemy database URL"
    )
    database_echo: bool = Field(default=False, description="Log every SQL statement")
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_recycle: int = Field(default=3600, description="Seconds before reconnecting")
    database_pool_timeout: int = Field(default=30, ge=1)
    rules_version: str = Field(default="1.0", description="Content catalog version served")
    log_level: str = Field(default="INFO", description="Root logging level")
    maintenance_interval_seconds: float = Field(
        default=86400.0,
        description="Real-time seconds between automatic maintenance sweeps",
        gt=0.0,
    )
    maintenance_enabled: bool = Field(
        default=False, description="Start the maintenance scheduler with the app"
    )
    debug_speed_multiplier: float = Field(
        default=1.0,
        description="Multiplier applied to the sweep interval in development",
        gt=0.0,
    )
    seed_demo_data: bool = Field(default=False, description="Seed rulers and NPCs on startup")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed to call the HTTP API",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
