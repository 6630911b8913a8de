"""Application configuration settings."""

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "dinequery"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    timezone: str = "Europe/Zagreb"

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    oracle_timeout_ms: int = 15000
    answer_generation_enabled: bool = True

    # Geo
    max_radius_km: float = 10.0
    default_radius_km: float = 1.5

    # Result cache
    cache_max_size: int = 500
    cache_ttl_ms: int = 60_000
    cache_cleanup_interval_seconds: float = 60.0
    taxonomy_ttl_ms: int = 300_000

    # Sessions
    session_ttl_ms: int = 1_200_000  # 20 minutes
    session_sweep_interval_seconds: float = 60.0

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 50

    @model_validator(mode="after")
    def _check_radius(self) -> "Settings":
        if self.max_radius_km <= 0 or self.default_radius_km <= 0:
            raise ValueError("radius settings must be positive")
        if self.default_radius_km > self.max_radius_km:
            raise ValueError("default_radius_km cannot exceed max_radius_km")
        return self

    @property
    def oracle_timeout_seconds(self) -> float:
        """Oracle call timeout in seconds."""
        return self.oracle_timeout_ms / 1000

    @property
    def cache_ttl_seconds(self) -> float:
        """Result cache TTL in seconds."""
        return self.cache_ttl_ms / 1000

    @property
    def taxonomy_ttl_seconds(self) -> float:
        """Taxonomy table cache TTL in seconds."""
        return self.taxonomy_ttl_ms / 1000

    @property
    def session_ttl_seconds(self) -> float:
        """Session inactivity window in seconds."""
        return self.session_ttl_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
