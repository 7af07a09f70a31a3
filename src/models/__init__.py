"""Pydantic models for API payloads."""

from models.payment import (  # noqa: F401
    ExpectedPayment,
    PaymentProof,
    PaymentStatus,
    PurchaseNotice,
    SubmissionResult,
    TicketStatus,
    Verdict,
)
from models.raffle import RaffleConfig, RaffleStatus  # noqa: F401
