"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="TMDB Discover", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=7000, alias="PORT")

    base_url: HttpUrl = Field(default="http://localhost:7000", alias="BASE_URL")

    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    rpdb_api_url: HttpUrl = Field(
        default="https://api.ratingposterdb.com", alias="RPDB_API_URL"
    )
    fanart_api_url: HttpUrl = Field(
        default="https://webservice.fanart.tv/v3", alias="FANART_API_URL"
    )
    cloud_storage_url: HttpUrl | None = Field(
        default=None, alias="CLOUD_STORAGE_URL"
    )

    poster_probe_timeout: float = Field(
        default=5.0, alias="POSTER_PROBE_TIMEOUT", gt=0, le=60
    )
    poster_render_timeout: float = Field(
        default=30.0, alias="POSTER_RENDER_TIMEOUT", gt=0, le=300
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tmdb_discover.db", alias="DATABASE_URL"
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", "cloud_storage_url", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        """Accept log levels in any case."""

        level = str(value or "INFO").strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("LOG_LEVEL must be a standard logging level name")
        return level

    @property
    def render_service_url(self) -> str:
        """Return the render service base address without a trailing slash."""

        return str(self.base_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
