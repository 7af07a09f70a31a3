"""Raffle reference data."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RaffleConfig(BaseModel):
    """Static raffle configuration row."""

    id: int
    name: str
    ticket_price: float = Field(ge=0)
    total_tickets: int = Field(gt=0)
    draw_date: Optional[datetime] = None


class RaffleStatus(BaseModel):
    """GET /raffle payload."""

    raffle: RaffleConfig
    sold: int
    remaining: int
