"""Configuration management for Movie Tracker."""

from datetime import timedelta
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # TMDB
    tmdb_api_key: str = ""
    tmdb_request_timeout: PositiveInt = 10  # seconds
    tmdb_rate_limit: PositiveInt = 40  # requests per 10 second window
    image_base_url: str = "https://image.tmdb.org/t/p"

    # Storage
    # sqlite:///path/to/file.db for the SQLite store, memory:// for an in-process one
    storage_url: str = "sqlite:///./movietracker.db"

    # Remote cache
    cache_ttl_hours: PositiveInt = 24

    # Network settings
    # Proxy configuration in the format http://host:port or socks5://host:port
    proxy: str | None = None

    @field_validator("proxy")
    @classmethod
    def validate_proxy(cls, v: str | None) -> str | None:
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https", "socks4", "socks5", "socks5h"):
            raise ValueError(
                "Proxy must be a valid URL with scheme http/https/socks4/socks5/socks5h"
            )
        if not parsed.netloc:
            raise ValueError("Proxy must have a host and port")
        return v

    @field_validator("storage_url")
    @classmethod
    def validate_storage_url(cls, v: str) -> str:
        scheme = urlparse(v).scheme
        if scheme not in ("sqlite", "memory"):
            raise ValueError("Storage URL scheme must be sqlite or memory")
        return v

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_ttl_hours)

    # App settings
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
