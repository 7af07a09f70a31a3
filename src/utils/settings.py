"""
Runtime settings for the ticket sales Lambda.

Everything is read from environment variables. Only the database connection
is mandatory; missing Telegram, storage or validator settings switch the
corresponding component into its degraded mode.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from utils.error_handling import ConfigurationError


def _get_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer") from exc


def _get_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number") from exc


def _get_optional(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


@dataclass(frozen=True)
class AppSettings:
    """Application settings and their defaults."""

    environment: str = "dev"
    service_name: str = "raffle-tickets"
    aws_region: str = "us-east-1"

    # Database (one of the two is required)
    database_url: Optional[str] = None
    db_secret_arn: Optional[str] = None
    auto_create_schema: bool = True

    # Object storage
    storage_bucket: Optional[str] = None
    upload_max_bytes: int = 5 * 1024 * 1024
    presigned_url_ttl_seconds: int = 7 * 24 * 3600

    # Operator notifications
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    notify_timeout_seconds: float = 5.0

    # Payment proof validation
    validator_model_id: Optional[str] = None
    bedrock_region: Optional[str] = None
    validator_timeout_seconds: float = 20.0
    acceptance_threshold: float = 0.6

    # Ticket allocation
    allocation_attempts: int = 3
    max_tickets_per_submission: int = 500
    raffle_cache_ttl_seconds: int = 60

    @property
    def has_database(self) -> bool:
        return bool(self.database_url or self.db_secret_arn)

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def validator_enabled(self) -> bool:
        return bool(self.validator_model_id)

    def require_database(self) -> None:
        """Fail fast when no database connection is configured."""
        if not self.has_database:
            raise ConfigurationError("DATABASE_URL or DB_SECRET_ARN must be set")

    @classmethod
    def from_environment(cls) -> "AppSettings":
        """Load settings from environment variables."""
        region = os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"
        threshold = _get_float("ACCEPTANCE_THRESHOLD", 0.6)
        if not 0.0 <= threshold <= 1.0:
            raise ConfigurationError("ACCEPTANCE_THRESHOLD must be between 0 and 1")

        return cls(
            environment=os.environ.get("ENVIRONMENT", "dev"),
            service_name=os.environ.get("SERVICE_NAME", "raffle-tickets"),
            aws_region=region,
            database_url=_get_optional("DATABASE_URL"),
            db_secret_arn=_get_optional("DB_SECRET_ARN"),
            auto_create_schema=os.environ.get("AUTO_CREATE_SCHEMA", "true").lower() == "true",
            storage_bucket=_get_optional("STORAGE_BUCKET"),
            upload_max_bytes=_get_int("UPLOAD_MAX_BYTES", 5 * 1024 * 1024),
            presigned_url_ttl_seconds=_get_int("PRESIGNED_URL_TTL_SECONDS", 7 * 24 * 3600),
            telegram_bot_token=_get_optional("TELEGRAM_BOT_TOKEN"),
            telegram_chat_id=_get_optional("TELEGRAM_CHAT_ID"),
            notify_timeout_seconds=_get_float("NOTIFY_TIMEOUT_SECONDS", 5.0),
            validator_model_id=_get_optional("VALIDATOR_MODEL_ID"),
            bedrock_region=_get_optional("BEDROCK_REGION"),
            validator_timeout_seconds=_get_float("VALIDATOR_TIMEOUT_SECONDS", 20.0),
            acceptance_threshold=threshold,
            allocation_attempts=max(1, _get_int("ALLOCATION_ATTEMPTS", 3)),
            max_tickets_per_submission=max(
                1, _get_int("MAX_TICKETS_PER_SUBMISSION", 500)
            ),
            raffle_cache_ttl_seconds=_get_int("RAFFLE_CACHE_TTL_SECONDS", 60),
        )
