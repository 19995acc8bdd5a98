# maintenance_hub/settings.py
"""
Maintenance Hub Settings.

Precedence, highest first: process environment, .env.local, .env, defaults.
Values already present in the process environment are never overridden by
the dotenv files.
"""
from __future__ import annotations
from pathlib import Path
from typing import Literal, Optional, Sequence
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

DEFAULT_ENV_FILES = (".env", ".env.local")


class Settings(BaseSettings):
    # =========================================================================
    # Supabase REST (PostgREST) backend
    # =========================================================================
    SUPABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "VITE_SUPABASE_URL"),
    )
    SUPABASE_ANON_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"),
    )
    HTTP_TIMEOUT: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT")

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="maintenance_hub", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # Full async URL override (e.g. sqlite+aiosqlite:///local.db)
    DATABASE_URL: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # =========================================================================
    # Batch integrity check
    # =========================================================================
    CHECK_SOURCE: Literal["rest", "sql"] = Field(default="rest", validation_alias="CHECK_SOURCE")
    CHECK_PAGE_SIZE: int = Field(default=1000, ge=1, validation_alias="CHECK_PAGE_SIZE")
    CHECK_ORPHAN_CAP: int = Field(default=200, ge=0, validation_alias="CHECK_ORPHAN_CAP")
    CHECK_PRINT_LIMIT: int = Field(default=50, ge=1, validation_alias="CHECK_PRINT_LIMIT")
    NULL_BATCH_NUMBER_AS_EMPTY: bool = Field(
        default=True,
        validation_alias="NULL_BATCH_NUMBER_AS_EMPTY",
        description="Group null batch_number together with empty string when looking for duplicates",
    )

    # =========================================================================
    # Role cache
    # =========================================================================
    # Seconds before a cached role set is read again from the store
    ROLE_CACHE_TTL: float = Field(default=30.0, gt=0, validation_alias="ROLE_CACHE_TTL")
    ROLE_CACHE_MAX_ENTRIES: int = Field(default=10_000, ge=1, validation_alias="ROLE_CACHE_MAX_ENTRIES")

    # =========================================================================
    # Logging
    # =========================================================================
    DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "maintenance-data"),
        validation_alias=AliasChoices("DATA_ROOT", "MAINTENANCE_DATA_ROOT"),
    )
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_MAX_BYTES: int = Field(default=5_000_000, ge=1, validation_alias="LOG_MAX_BYTES")
    LOG_BACKUP_COUNT: int = Field(default=3, ge=0, validation_alias="LOG_BACKUP_COUNT")

    model_config = SettingsConfigDict(
        env_file=DEFAULT_ENV_FILES,
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    def rest_credentials(self) -> tuple[str, str]:
        """Return (url, anon_key) or raise ConfigurationError when either is missing."""
        from maintenance_hub.errors import ConfigurationError

        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY:
            raise ConfigurationError("Missing VITE_SUPABASE_URL or VITE_SUPABASE_ANON_KEY in environment.")
        return self.SUPABASE_URL.rstrip("/"), self.SUPABASE_ANON_KEY


def load_settings(env_files: Sequence[str | Path] | None = None) -> Settings:
    """Build a fresh Settings, optionally reading a different set of dotenv files."""
    if env_files is None:
        return Settings()
    return Settings(_env_file=tuple(env_files))


settings = Settings()
