"""
Process-wide service wiring.

A Lambda execution environment builds one container on its first request and
reuses it while warm; the database pool and notification workers are released
at interpreter exit. Tests build their own container and pass it to the
handlers directly.
"""

from __future__ import annotations

import atexit
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from repositories.postgres_repo import PostgresRepository, build_engine
from repositories.s3_repo import S3Repository
from repositories.schema import create_schema
from services.notification_service import NotificationDispatcher, build_notifier
from services.raffle_service import RaffleService
from services.storage_service import StorageService
from services.ticket_service import TicketService
from services.validator_service import build_validator
from utils.logging_config import get_logger
from utils.settings import AppSettings

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: AppSettings
    repository: PostgresRepository
    storage: StorageService
    validator: object
    dispatcher: NotificationDispatcher
    raffle: RaffleService
    tickets: TicketService

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ServiceContainer":
        settings.require_database()
        repository = PostgresRepository(build_engine(settings))
        if settings.auto_create_schema:
            create_schema(repository.engine)

        s3 = (
            S3Repository(settings.storage_bucket, region=settings.aws_region)
            if settings.storage_bucket
            else None
        )
        storage = StorageService(
            s3,
            max_bytes=settings.upload_max_bytes,
            presigned_url_ttl_seconds=settings.presigned_url_ttl_seconds,
        )
        validator = build_validator(settings)
        dispatcher = NotificationDispatcher(build_notifier(settings))
        raffle = RaffleService(repository, cache_ttl_seconds=settings.raffle_cache_ttl_seconds)
        tickets = TicketService(
            repository,
            validator,
            storage,
            dispatcher,
            raffle=raffle,
            acceptance_threshold=settings.acceptance_threshold,
            allocation_attempts=settings.allocation_attempts,
            max_tickets_per_submission=settings.max_tickets_per_submission,
        )
        logger.info(
            "Service container ready",
            extra={
                "environment": settings.environment,
                "storage": "inline" if storage.inline_mode else "s3",
                "validator": getattr(validator, "provider", "unknown"),
                "notifications": settings.notifications_enabled,
            },
        )
        return cls(settings, repository, storage, validator, dispatcher, raffle, tickets)

    def close(self) -> None:
        self.dispatcher.shutdown()
        self.repository.dispose()


_container: Optional[ServiceContainer] = None
_container_lock = Lock()


def get_container() -> ServiceContainer:
    """Build the container on first use and keep it for the process lifetime."""
    global _container
    with _container_lock:
        if _container is None:
            _container = ServiceContainer.from_settings(AppSettings.from_environment())
            atexit.register(_container.close)
        return _container


def set_container(container: Optional[ServiceContainer]) -> None:
    """Install (or clear, with None) the process container."""
    global _container
    with _container_lock:
        _container = container


def current_container() -> Optional[ServiceContainer]:
    """The container if one was built, without building it."""
    return _container
