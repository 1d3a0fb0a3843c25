"""
Configuration settings for dbkit.
Reads from environment variables and ``.env``; NEVER logs secret values.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbkit.db.statement_cache import DEFAULT_MAX_STATEMENTS

_REPO_ROOT = Path(__file__).resolve().parents[1]


def parse_options(raw: Optional[str]) -> dict[str, str]:
    """``"sslmode=require;connect_timeout=5"`` -> ``{"sslmode": "require", "connect_timeout": "5"}``."""
    if not raw:
        return {}
    options: dict[str, str] = {}
    for part in raw.split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Malformed option '{part}', expected key=value")
        options[key.strip()] = value.strip()
    return options


class Settings(BaseSettings):
    """Connection settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=_REPO_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_NAME: str = Field(default="postgres", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: SecretStr = Field(default=SecretStr(""), validation_alias="DB_PASSWORD")
    DB_DRIVER: str = Field(default="postgresql", validation_alias="DB_DRIVER")
    # key=value;key=value, handed to the driver untouched
    DB_OPTIONS: Optional[str] = Field(default=None, validation_alias="DB_OPTIONS")
    DB_STATEMENT_CACHE_SIZE: int = Field(default=DEFAULT_MAX_STATEMENTS, validation_alias="DB_STATEMENT_CACHE_SIZE")

    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("DB_STATEMENT_CACHE_SIZE")
    @classmethod
    def _positive_cache_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DB_STATEMENT_CACHE_SIZE must be >= 1")
        return v

    @field_validator("DB_OPTIONS")
    @classmethod
    def _well_formed_options(cls, v: Optional[str]) -> Optional[str]:
        parse_options(v)
        return v

    @property
    def options(self) -> dict[str, str]:
        return parse_options(self.DB_OPTIONS)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return (and lazily load) the module-level Settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Discard the cached Settings (useful in tests)."""
    global _settings
    _settings = None


def configure_logging(level: Optional[str] = None) -> None:
    """Basic stderr logging for scripts; ``level`` defaults to ``LOG_LEVEL``."""
    logging.basicConfig(
        level=(level or get_settings().LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
