from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

# Fixed ports of the original e2e harness: broker on 44133, RP on 44180.
DEFAULT_BROKER_URL = "http://localhost:44133"
DEFAULT_REDIRECT_URI = "http://localhost:44180/verify"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    host: str
    port: int
    broker_url: str
    redirect_uri: str
    token_endpoint: str
    broker_timeout: float

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
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("RP_PORT", "44180")
    timeout_raw = _getenv("BROKER_TIMEOUT_SEC", "10")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"RP_PORT must be an integer (got {port_raw!r})") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"RP_PORT must be between 0 and 65535 (got {port})")

    try:
        broker_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"BROKER_TIMEOUT_SEC must be a number (got {timeout_raw!r})"
        ) from None
    if broker_timeout <= 0:
        raise ValueError(f"BROKER_TIMEOUT_SEC must be positive (got {timeout_raw!r})")

    broker_url = _getenv("BROKER_URL", DEFAULT_BROKER_URL).rstrip("/")
    if not broker_url:
        raise ValueError("BROKER_URL must not be empty")

    redirect_uri = _getenv("REDIRECT_URI", DEFAULT_REDIRECT_URI)
    token_endpoint = _getenv("TOKEN_ENDPOINT", "") or f"{broker_url}/token"

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        host=_getenv("RP_HOST", "localhost"),
        port=port,
        broker_url=broker_url,
        redirect_uri=redirect_uri,
        token_endpoint=token_endpoint,
        broker_timeout=broker_timeout,
    )


SETTINGS = load_settings()
