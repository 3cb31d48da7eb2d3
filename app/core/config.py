from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _parse_int(name: str, raw: str, *, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _parse_float(name: str, raw: str, *, positive: bool = False) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value < 0 or (positive and value == 0):
        bound = "> 0" if positive else ">= 0"
        raise ValueError(f"{name} must be {bound} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    shopify_api_public_key: str
    shopify_api_secret_key: str
    shopify_scopes: str
    app_url: str
    redis_url: str | None
    state_ttl_sec: int
    state_cookie_secure: bool
    upstream_timeout_sec: float
    upstream_max_retries: int
    upstream_retry_backoff_sec: float

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
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    public_key = _getenv("SHOPIFY_API_PUBLIC_KEY", "")
    secret_key = _getenv("SHOPIFY_API_SECRET_KEY", "")
    if app_env_raw == "prod" and not (public_key and secret_key):
        raise ValueError(
            "SHOPIFY_API_PUBLIC_KEY and SHOPIFY_API_SECRET_KEY are required in prod"
        )

    scopes = _getenv("SHOPIFY_SCOPES", "write_products")
    if not scopes:
        raise ValueError("SHOPIFY_SCOPES must not be empty")

    # The redirect URI is built by appending a path, so keep the base bare.
    app_url = _getenv("APP_URL", "http://localhost:3000").rstrip("/")
    if not app_url.startswith(("http://", "https://")):
        raise ValueError(f"APP_URL must be an http(s) URL (got {app_url!r})")

    cookie_secure_raw = _getenv(
        "STATE_COOKIE_SECURE", "true" if app_env_raw == "prod" else "false"
    )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_parse_bool("LOG_JSON", _getenv("LOG_JSON", "false")),
        port=_parse_int("PORT", _getenv("PORT", "3000"), minimum=1),
        shopify_api_public_key=public_key,
        shopify_api_secret_key=secret_key,
        shopify_scopes=scopes,
        app_url=app_url,
        redis_url=_getenv("REDIS_URL", "") or None,
        state_ttl_sec=_parse_int(
            "STATE_TTL_SEC", _getenv("STATE_TTL_SEC", "600"), minimum=1
        ),
        state_cookie_secure=_parse_bool("STATE_COOKIE_SECURE", cookie_secure_raw),
        upstream_timeout_sec=_parse_float(
            "UPSTREAM_TIMEOUT_SEC", _getenv("UPSTREAM_TIMEOUT_SEC", "10"), positive=True
        ),
        upstream_max_retries=_parse_int(
            "UPSTREAM_MAX_RETRIES", _getenv("UPSTREAM_MAX_RETRIES", "1"), minimum=0
        ),
        upstream_retry_backoff_sec=_parse_float(
            "UPSTREAM_RETRY_BACKOFF_SEC", _getenv("UPSTREAM_RETRY_BACKOFF_SEC", "0.5")
        ),
    )


SETTINGS = load_settings()


def get_settings() -> Settings:
    """FastAPI dependency; tests swap it via app.dependency_overrides."""
    return SETTINGS
