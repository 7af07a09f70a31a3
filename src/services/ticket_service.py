"""
Ticket allocation workflow.

submit_payment() turns a payment proof into ticket numbers:

1. quantity cap (MAX_TICKETS_PER_SUBMISSION), then a fast duplicate check on
   the bank reference (validated payments only)
2. capacity check against the raffle configuration, when there is one
3. participant row, always written so every attempt leaves an audit trail
4. proof validation (Bedrock or the auto-approve stub)
5. rejected payment row and ValidationRejected, or
6. validated payment row plus a contiguous block of tickets in ONE transaction
7. operator notification, dispatched once the result is final

Concurrency is handled by the database: a partial unique index on validated
references and a unique ticket_number. On PostgreSQL the allocation also holds
an advisory transaction lock, and a ticket-number collision rolls back the
whole transaction and retries it.
"""

from __future__ import annotations

import time
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from models.payment import (
    PaymentProof,
    PaymentStatus,
    PurchaseNotice,
    SubmissionResult,
    TicketStatus,
    Verdict,
)
from repositories.postgres_repo import PostgresRepository
from repositories.schema import participants, payments, tickets
from services.notification_service import (
    NotificationDispatcher,
    format_purchase_message,
    format_submission_message,
)
from services.raffle_service import RaffleService
from services.storage_service import ImageLoadError, StorageService
from utils.error_handling import (
    ConstraintViolation,
    DuplicatePayment,
    InternalError,
    InvalidRequest,
    PersistenceError,
    TicketsExhausted,
    ValidationRejected,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

# pg_advisory_xact_lock key guarding max(ticket_number) + 1.
TICKET_COUNTER_LOCK_KEY = 7310001


class TicketService:
    """Orchestrates duplicate detection, payment recording and ticket numbering."""

    def __init__(
        self,
        repository: PostgresRepository,
        validator,
        storage: StorageService,
        dispatcher: NotificationDispatcher,
        raffle: Optional[RaffleService] = None,
        acceptance_threshold: float = 0.6,
        allocation_attempts: int = 3,
        max_tickets_per_submission: int = 500,
    ):
        self.repository = repository
        self.validator = validator
        self.storage = storage
        self.dispatcher = dispatcher
        self.raffle = raffle
        self.acceptance_threshold = acceptance_threshold
        self.allocation_attempts = max(1, allocation_attempts)
        self.max_tickets_per_submission = max_tickets_per_submission

    def accepts(self, verdict: Verdict) -> bool:
        return verdict.valid and verdict.confidence >= self.acceptance_threshold

    def submit_payment(self, proof: PaymentProof) -> SubmissionResult:
        """Validate a payment proof and allocate ``proof.quantity`` tickets."""
        start = time.perf_counter()
        try:
            result = self._submit(proof)
        except PersistenceError as exc:
            logger.error(
                "Ticket allocation aborted by persistence failure",
                extra={"reference": proof.reference, "error_type": type(exc).__name__},
            )
            raise InternalError() from exc

        logger.info(
            "Tickets allocated",
            extra={
                "reference": proof.reference,
                "participant_id": result.participant_id,
                "payment_id": result.payment_id,
                "first_ticket": result.ticket_numbers[0],
                "last_ticket": result.ticket_numbers[-1],
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        self.dispatcher.dispatch(
            format_submission_message(proof, result.ticket_numbers, result.verdict)
        )
        return result

    def count_sold_tickets(self) -> int:
        count = self.repository.scalar(
            select(func.count())
            .select_from(tickets)
            .where(tickets.c.status == TicketStatus.PAID.value)
        )
        return int(count or 0)

    def record_purchase_notice(self, notice: PurchaseNotice) -> None:
        """Legacy purchase flow: nothing is stored, the operator is notified."""
        logger.info(
            "Purchase notice received",
            extra={"reference": notice.reference, "ticket_num": notice.ticket_num},
        )
        self.dispatcher.dispatch(format_purchase_message(notice))

    def _submit(self, proof: PaymentProof) -> SubmissionResult:
        if proof.quantity > self.max_tickets_per_submission:
            raise InvalidRequest(
                f"quantity must be at most {self.max_tickets_per_submission}"
            )
        self._ensure_not_duplicate(proof.reference)
        self._ensure_capacity(proof.quantity)

        participant_id = self._insert_participant(proof)
        verdict = self._validate(proof)

        if not self.accepts(verdict):
            self._insert_rejected_payment(proof, participant_id, verdict)
            logger.info(
                "Payment rejected",
                extra={
                    "reference": proof.reference,
                    "valid": verdict.valid,
                    "confidence": verdict.confidence,
                },
            )
            raise ValidationRejected(
                verdict.details or "Payment data does not match the screenshot.",
                verdict=verdict.model_dump(),
            )

        try:
            payment_id, numbers = self._record_validated(proof, participant_id, verdict)
        except TicketsExhausted as exc:
            sold_out = verdict.model_copy(update={"details": str(exc)})
            self._insert_rejected_payment(proof, participant_id, sold_out)
            raise

        return SubmissionResult(
            ticket_numbers=numbers,
            participant_id=participant_id,
            payment_id=payment_id,
            verdict=verdict,
        )

    def _ensure_not_duplicate(self, reference: str) -> None:
        existing = self.repository.fetch_one(
            select(payments.c.id)
            .where(payments.c.reference_suffix == reference)
            .where(payments.c.status == PaymentStatus.VALIDATED.value)
            .limit(1)
        )
        if existing:
            logger.info("Duplicate payment reference", extra={"reference": reference})
            raise DuplicatePayment(reference)

    def _ensure_capacity(self, quantity: int, highest: Optional[int] = None) -> None:
        config = self.raffle.current() if self.raffle else None
        if config is None:
            return
        if highest is None:
            highest = self.repository.scalar(select(func.max(tickets.c.ticket_number))) or 0
        remaining = config.total_tickets - highest
        if quantity > remaining:
            raise TicketsExhausted(max(remaining, 0))

    def _insert_participant(self, proof: PaymentProof) -> int:
        rows = self.repository.execute(
            participants.insert()
            .values(
                name=proof.name,
                national_id=proof.national_id,
                phone=proof.phone,
                email=proof.email,
            )
            .returning(participants.c.id)
        )
        return rows[0]["id"]

    def _validate(self, proof: PaymentProof) -> Verdict:
        image = None
        if getattr(self.validator, "requires_image", True):
            try:
                image = self.storage.load_image(proof.screenshot_url, proof.inline_image)
            except ImageLoadError as exc:
                logger.info("Payment screenshot unavailable", extra={"reason": str(exc)})
                return Verdict.failure(str(exc), provider=getattr(self.validator, "provider", None))
        return self.validator.validate(image, proof.expected())

    def _payment_values(
        self, proof: PaymentProof, participant_id: int, status: PaymentStatus, verdict: Verdict
    ) -> dict:
        return {
            "participant_id": participant_id,
            "bank_from": proof.bank_from,
            "payment_phone": proof.payment_phone,
            "amount_paid": proof.amount_paid,
            "reference_suffix": proof.reference,
            "screenshot_url": proof.screenshot_url,
            "status": status.value,
            "validation_result": verdict.model_dump(),
        }

    def _insert_rejected_payment(
        self, proof: PaymentProof, participant_id: int, verdict: Verdict
    ) -> None:
        self.repository.execute(
            payments.insert().values(
                **self._payment_values(proof, participant_id, PaymentStatus.REJECTED, verdict)
            )
        )

    def _record_validated(
        self, proof: PaymentProof, participant_id: int, verdict: Verdict
    ) -> Tuple[int, List[int]]:
        values = self._payment_values(proof, participant_id, PaymentStatus.VALIDATED, verdict)
        attempt = 0
        while True:
            attempt += 1
            try:
                with self.repository.transaction() as conn:
                    self.repository.lock(conn, TICKET_COUNTER_LOCK_KEY)
                    payment_id = conn.execute(
                        payments.insert().values(**values).returning(payments.c.id)
                    ).scalar_one()
                    numbers = self._allocate(conn, participant_id, payment_id, proof.quantity)
                return payment_id, numbers
            except ConstraintViolation as exc:
                if exc.touches("reference"):
                    raise DuplicatePayment(proof.reference) from exc
                if not exc.touches("ticket_number") or attempt >= self.allocation_attempts:
                    raise
                logger.warning(
                    "Ticket number collision; retrying allocation",
                    extra={"reference": proof.reference, "attempt": attempt},
                )

    def _allocate(
        self, conn: Connection, participant_id: int, payment_id: int, quantity: int
    ) -> List[int]:
        highest = conn.execute(
            select(func.coalesce(func.max(tickets.c.ticket_number), 0))
        ).scalar_one()
        self._ensure_capacity(quantity, highest=highest)
        numbers = list(range(highest + 1, highest + 1 + quantity))
        conn.execute(
            tickets.insert(),
            [
                {
                    "ticket_number": number,
                    "participant_id": participant_id,
                    "payment_id": payment_id,
                    "status": TicketStatus.PAID.value,
                }
                for number in numbers
            ],
        )
        return numbers
