"""Environment-driven settings, loaded once at import as ``SETTINGS``.

Every variable is optional.  With nothing set the service runs in dev
mode on in-memory stores with the sandbox payment gateway; DATABASE_URL,
REDIS_URL, PAYSTACK_SECRET_KEY, SMTP_HOST and CONTENT_LLM_URL switch on the
real backends.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_optional(name: str) -> str | None:
    return _env(name) or None


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in choices:
        raise ValueError(f"{name} must be {'|'.join(choices)} (got {value!r})")
    return value


def _env_bool(name: str, default: str) -> bool:
    value = _env(name, default).lower()
    if value not in _TRUE + _FALSE:
        raise ValueError(f"{name} must be a boolean (got {value!r})")
    return value in _TRUE


def _env_number(name: str, default: str, kind: type[int] | type[float], *, positive: bool):
    raw = _env(name, default)
    try:
        value = kind(raw)
    except ValueError:
        noun = "an integer" if kind is int else "a number"
        raise ValueError(f"{name} must be {noun} (got {raw!r})") from None
    if positive and value <= 0:
        raise ValueError(f"{name} must be positive (got {raw!r})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    paystack_secret_key: str | None
    paystack_base_url: str
    gateway_timeout_seconds: float
    payment_callback_url: str
    frontend_url: str
    subscription_period_days: int
    content_llm_url: str | None = None
    content_llm_model: str = "llama3.2"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = field(default=None, repr=False)
    smtp_starttls: bool = True
    mail_from: str = "no-reply@localhost"
    jwt_private_key: str | None = field(default=None, repr=False)

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
        app_env=_env_choice("APP_ENV", "dev", _APP_ENVS),
        log_level=_env_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_env_bool("LOG_JSON", "false"),
        port=_env_number("PORT", "8000", int, positive=False),
        database_url=_env_optional("DATABASE_URL"),
        redis_url=_env_optional("REDIS_URL"),
        paystack_secret_key=_env_optional("PAYSTACK_SECRET_KEY"),
        paystack_base_url=_env("PAYSTACK_BASE_URL", "https://api.paystack.co"),
        gateway_timeout_seconds=_env_number(
            "GATEWAY_TIMEOUT_SECONDS", "10", float, positive=True
        ),
        payment_callback_url=_env(
            "PAYMENT_CALLBACK_URL", "http://localhost:8000/v1/payments/callback"
        ),
        frontend_url=_env("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
        subscription_period_days=_env_number(
            "SUBSCRIPTION_PERIOD_DAYS", "30", int, positive=True
        ),
        content_llm_url=_env_optional("CONTENT_LLM_URL"),
        content_llm_model=_env("CONTENT_LLM_MODEL", "llama3.2"),
        smtp_host=_env_optional("SMTP_HOST"),
        smtp_port=_env_number("SMTP_PORT", "587", int, positive=True),
        smtp_username=_env_optional("SMTP_USERNAME"),
        smtp_password=_env_optional("SMTP_PASSWORD"),
        smtp_starttls=_env_bool("SMTP_STARTTLS", "true"),
        mail_from=_env("MAIL_FROM", "no-reply@localhost"),
        # literal "\n" allowed so the PEM fits on one env-file line
        jwt_private_key=_env("JWT_PRIVATE_KEY").replace("\\n", "\n") or None,
    )


SETTINGS = load_settings()
