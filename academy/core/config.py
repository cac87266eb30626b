from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: str = "false") -> bool:
    return _getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    ledger_gateway_url: str | None = None
    ledger_timeout_seconds: float = 120.0
    openai_api_key: str | None = None
    hint_model: str = "gpt-4o-mini"
    platform_currency: str = "KAIA"
    certificate_base_url: str = "https://wiza-kaia.netlify.app"

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
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("LEDGER_TIMEOUT_SECONDS", "120")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        ledger_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"LEDGER_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if ledger_timeout <= 0:
        raise ValueError(
            f"LEDGER_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        ledger_gateway_url=_getenv("LEDGER_GATEWAY_URL", "") or None,
        ledger_timeout_seconds=ledger_timeout,
        openai_api_key=_getenv("OPENAI_API_KEY", "") or None,
        hint_model=_getenv("HINT_MODEL", "gpt-4o-mini"),
        platform_currency=_getenv("PLATFORM_CURRENCY", "KAIA").upper(),
        certificate_base_url=_getenv(
            "CERTIFICATE_BASE_URL", "https://wiza-kaia.netlify.app"
        ).rstrip("/"),
    )


SETTINGS = load_settings()
