import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_list(raw: Any) -> list[str]:
    """Accept a JSON list or a comma/whitespace separated string."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    return [p for p in re.split(r"[,\s]+", raw) if p]


def _parse_cors_origins(raw: Any) -> list[str]:
    origins = _parse_list(raw)
    if "*" in origins:
        return ["*"]
    result: list[str] = []
    for origin in origins:
        if "://" in origin:
            candidates = [origin]
        else:
            # Browsers include the scheme in the Origin header.
            candidates = [f"http://{origin}", f"https://{origin}"]
        for candidate in candidates:
            if candidate not in result:
                result.append(candidate)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Shared secret for management endpoints (required at startup)
    admin_key: str = ""

    # Static access codes loaded at startup
    access_codes: Annotated[list[str], NoDecode] = []
    access_code_max_uses: int = 100
    access_code_expiry_days: int = 30  # 0 = never expires

    # Access-code store backend
    code_store_backend: str = "memory"  # memory | database | redis
    database_url: str = "sqlite+aiosqlite:///./quizgate.db"
    db_pool_size: int = 10
    db_max_overflow: int = 5
    redis_url: str = "redis://localhost:6379/0"
    redis_code_retention_seconds: int = 86400  # keep expired codes a day before TTL removal

    # Client security ledger
    max_consecutive_failures: int = 5
    block_duration_seconds: int = 900
    min_attempt_interval_ms: int = 1000
    security_record_ttl_hours: int = 24
    security_sweep_interval_seconds: int = 1800

    # Attack monitor
    attack_alert_threshold: int = 50
    attack_alert_interval_seconds: int = 3600
    alert_webhook_url: str = ""
    alert_webhook_timeout: float = 5.0

    # Policies
    count_malformed_as_failure: bool = True
    rankings_coerce_invalid_scores: bool = False

    # Client identity resolution
    trust_proxy_headers: bool = True

    # Request limits
    max_body_size: int = 10 * 1024

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("access_codes", mode="before")
    @classmethod
    def decode_access_codes(cls, v: Any) -> list[str]:
        return [code.upper() for code in _parse_list(v)]

    @field_validator("admin_key", mode="before")
    @classmethod
    def strip_admin_key(cls, v: Any) -> str:
        # Normalize accidental whitespace/newline from env/secret stores.
        return str(v or "").strip()

    @field_validator("code_store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("memory", "database", "redis"):
            raise ValueError("code_store_backend must be one of: memory, database, redis")
        return v

    @field_validator(
        "access_code_max_uses",
        "max_consecutive_failures",
        "block_duration_seconds",
        "security_record_ttl_hours",
        "security_sweep_interval_seconds",
        "attack_alert_threshold",
        "attack_alert_interval_seconds",
        "max_body_size",
        "db_pool_size",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate limits and intervals are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("access_code_expiry_days", "min_attempt_interval_ms", "redis_code_retention_seconds")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
