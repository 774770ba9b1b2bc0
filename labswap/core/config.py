"""Configuration module for the LabSwap exchange service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from dotenv import load_dotenv

from labswap.core.exceptions import ConfigurationError

load_dotenv()

NOTIFIER_BACKENDS = {"log", "celery"}


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration with validation."""

    APP_NAME: str
    APP_VERSION: str
    ENV: str
    DEBUG: bool
    DATABASE_URL: str
    DB_CONNECTIVITY_REQUIRED: bool
    EXCHANGE_REQUEST_TTL_DAYS: int
    EXPIRY_SWEEP_INTERVAL_SECONDS: int
    NOTIFIER_BACKEND: str
    CELERY_BROKER_URL: str
    CELERY_RESULT_BACKEND: str
    API_HOST: str
    API_PORT: int
    API_PREFIX: str
    LOG_LEVEL: str
    LOG_FILE: str

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


def _build_config(env: str | None = None) -> Config:
    resolved_env = (env or os.getenv("ENV", "development")).strip().lower()
    debug = _as_bool(os.getenv("DEBUG"), default=False)
    broker_url = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    config = Config(
        APP_NAME="LabSwap",
        APP_VERSION=os.getenv("APP_VERSION", "1.0.0"),
        ENV=resolved_env,
        DEBUG=debug if resolved_env != "production" else False,
        DATABASE_URL=os.getenv("DATABASE_URL", "sqlite:///./labswap.db"),
        DB_CONNECTIVITY_REQUIRED=_as_bool(
            os.getenv("DB_CONNECTIVITY_REQUIRED"), default=(resolved_env == "production")
        ),
        EXCHANGE_REQUEST_TTL_DAYS=int(os.getenv("EXCHANGE_REQUEST_TTL_DAYS", "7")),
        EXPIRY_SWEEP_INTERVAL_SECONDS=int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "3600")),
        NOTIFIER_BACKEND=os.getenv("NOTIFIER_BACKEND", "log").strip().lower(),
        CELERY_BROKER_URL=broker_url,
        CELERY_RESULT_BACKEND=os.getenv("CELERY_RESULT_BACKEND", broker_url),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=int(os.getenv("API_PORT", "8000")),
        API_PREFIX=os.getenv("API_PREFIX", "/api/v1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        LOG_FILE=os.getenv("LOG_FILE", ""),
    )
    _validate_config(config)
    return config


def _validate_database_url(database_url: str) -> None:
    parsed = urlparse(database_url)
    if parsed.scheme not in {"sqlite", "postgresql", "postgresql+psycopg2"}:
        raise ConfigurationError(
            "DATABASE_URL must use sqlite:// or postgresql:// style URL."
        )
    if parsed.scheme.startswith("postgresql") and not parsed.hostname:
        raise ConfigurationError("PostgreSQL DATABASE_URL is missing hostname.")


def _validate_config(config: Config) -> None:
    _validate_database_url(config.DATABASE_URL)

    if config.EXCHANGE_REQUEST_TTL_DAYS < 1:
        raise ConfigurationError("EXCHANGE_REQUEST_TTL_DAYS must be >= 1.")
    if config.EXPIRY_SWEEP_INTERVAL_SECONDS < 1:
        raise ConfigurationError("EXPIRY_SWEEP_INTERVAL_SECONDS must be >= 1.")
    if config.NOTIFIER_BACKEND not in NOTIFIER_BACKENDS:
        raise ConfigurationError("NOTIFIER_BACKEND must be one of log/celery.")
    if not config.API_PREFIX.startswith("/"):
        raise ConfigurationError("API_PREFIX must start with '/'.")
    if config.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise ConfigurationError("LOG_LEVEL must be one of DEBUG/INFO/WARNING/ERROR/CRITICAL.")
    if config.is_production and config.DATABASE_URL.startswith("sqlite"):
        raise ConfigurationError("Production DATABASE_URL must not use SQLite.")


@lru_cache(maxsize=8)
def get_config(env: str | None = None) -> Config:
    """Get validated configuration for the requested environment."""
    return _build_config(env)
