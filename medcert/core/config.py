from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_PREFIX_RE = re.compile(r"[A-Z0-9]{2,16}")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getint(name: str, default: int, *, minimum: int) -> int:
    raw = _getenv(name, str(default))
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

    # Certificate issuance
    certificate_prefix: str
    public_base_url: str
    max_issue_attempts: int
    qr_code_size: int

    # PEM-encoded ES256 public key of the platform's auth service.
    jwt_public_key: str | None

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

    prefix = _getenv("CERTIFICATE_PREFIX", "MEDEVENT")
    if not _PREFIX_RE.fullmatch(prefix):
        raise ValueError(
            f"CERTIFICATE_PREFIX must be 2-16 uppercase letters/digits (got {prefix!r})"
        )

    public_base_url = _getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
    if not public_base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"PUBLIC_BASE_URL must be an http(s) URL (got {public_base_url!r})"
        )

    jwt_public_key = os.environ.get("JWT_PUBLIC_KEY", "").strip() or None
    if app_env_raw == "prod" and jwt_public_key is None:
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getenv("LOG_JSON", "false").lower() in ("1", "true", "yes"),
        port=_getint("PORT", 8000, minimum=1),
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        certificate_prefix=prefix,
        public_base_url=public_base_url,
        max_issue_attempts=_getint("CERTIFICATE_MAX_ISSUE_ATTEMPTS", 5, minimum=1),
        qr_code_size=_getint("QR_CODE_SIZE", 200, minimum=64),
        jwt_public_key=jwt_public_key,
    )


SETTINGS = load_settings()
