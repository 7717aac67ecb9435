from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")

# CMS admin panel in local dev.
DEFAULT_CORS_ORIGIN = "http://localhost:1337"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    raw = _getenv(name, default).lower()
    if raw not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {raw!r})")
    return raw


def _flag(name: str, default: str) -> bool:
    raw = _getenv(name, default).lower()
    if raw not in _TRUE + _FALSE:
        raise ValueError(f"{name} must be true|false (got {raw!r})")
    return raw in _TRUE


def _int(name: str, default: str, *, minimum: int = 0) -> int:
    raw = _getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _csv(name: str, default: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in _getenv(name, default).split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None  # None → in-memory analytics store
    db_pool_size: int = 5
    cors_origins: tuple[str, ...] = (DEFAULT_CORS_ORIGIN,)

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=_choice("APP_ENV", "dev", _APP_ENVS),
        log_level=_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_flag("LOG_JSON", "false"),
        port=_int("PORT", "8000"),
        database_url=_getenv("DATABASE_URL", "") or None,
        db_pool_size=_int("DB_POOL_SIZE", "5", minimum=1),
        cors_origins=_csv("CORS_ORIGINS", DEFAULT_CORS_ORIGIN),
    )


SETTINGS = load_settings()
