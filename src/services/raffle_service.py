"""Raffle configuration lookups with a small TTL cache."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select

from models.raffle import RaffleConfig, RaffleStatus
from repositories.postgres_repo import PostgresRepository
from repositories.schema import raffle_config
from utils.cache_service import LRUCache

_CURRENT_KEY = "raffle:current"


class RaffleService:
    """Read the active raffle (the most recently inserted configuration row)."""

    def __init__(self, repository: PostgresRepository, cache_ttl_seconds: int = 60):
        self.repository = repository
        self.cache = LRUCache(max_size=4, ttl_seconds=cache_ttl_seconds)

    def current(self) -> Optional[RaffleConfig]:
        cached = self.cache.get(_CURRENT_KEY)
        if cached is not None:
            return cached

        row = self.repository.fetch_one(
            select(raffle_config).order_by(raffle_config.c.id.desc()).limit(1)
        )
        if row is None:
            return None
        config = RaffleConfig.model_validate(row)
        self.cache.set(_CURRENT_KEY, config)
        return config

    def status(self, sold: int) -> Optional[RaffleStatus]:
        config = self.current()
        if config is None:
            return None
        return RaffleStatus(raffle=config, sold=sold, remaining=max(config.total_tickets - sold, 0))
