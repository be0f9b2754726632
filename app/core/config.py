from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so type casting and validation live in one place
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str, *, minimum: int = 0) -> int:
    raw = _getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None

    # Auth provider: we only verify its bearer tokens
    auth_jwt_public_key: str | None = None
    auth_issuer: str = "lms-auth"
    auth_audience: str = "lms-service"

    # Payment provider (Stripe)
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_api_base: str = "https://api.stripe.com"
    payment_currency: str = "inr"
    min_course_price: int = 50
    app_url: str = "http://localhost:3000"

    # Checkout spam protection: fixed window per user
    enroll_rate_limit: int = 5
    enroll_rate_window_seconds: int = 60

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

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", "8000")

    app_url = _getenv("APP_URL", "http://localhost:3000").rstrip("/")
    if not app_url.startswith(("http://", "https://")):
        raise ValueError(f"APP_URL must be an http(s) URL (got {app_url!r})")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("1", "true", "yes"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        auth_jwt_public_key=_getenv("AUTH_JWT_PUBLIC_KEY", "") or None,
        auth_issuer=_getenv("AUTH_ISSUER", "lms-auth"),
        auth_audience=_getenv("AUTH_AUDIENCE", "lms-service"),
        stripe_secret_key=_getenv("STRIPE_SECRET_KEY", "") or None,
        stripe_webhook_secret=_getenv("STRIPE_WEBHOOK_SECRET", "") or None,
        stripe_api_base=_getenv("STRIPE_API_BASE", "https://api.stripe.com").rstrip(
            "/"
        ),
        payment_currency=_getenv("PAYMENT_CURRENCY", "inr").lower(),
        min_course_price=_getint("MIN_COURSE_PRICE", "50"),
        app_url=app_url,
        enroll_rate_limit=_getint("ENROLL_RATE_LIMIT", "5", minimum=1),
        enroll_rate_window_seconds=_getint(
            "ENROLL_RATE_WINDOW_SECONDS", "60", minimum=1
        ),
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
