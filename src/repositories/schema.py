"""Table definitions for participants, payments, tickets and raffle config."""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine

metadata = MetaData()

participants = Table(
    "participants",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("national_id", Text),
    Column("phone", Text, nullable=False),
    Column("email", Text),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("participant_id", Integer, ForeignKey("participants.id"), nullable=False),
    Column("bank_from", Text),
    Column("payment_phone", Text),
    Column("amount_paid", Numeric(10, 2), nullable=False),
    Column("reference_suffix", Text, nullable=False),
    Column("screenshot_url", Text),
    Column("status", String(16), nullable=False, server_default="pending"),
    Column("validation_result", JSON().with_variant(JSONB(), "postgresql")),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    CheckConstraint(
        "status IN ('pending', 'validated', 'rejected')", name="ck_payments_status"
    ),
    Index("ix_payments_reference_suffix", "reference_suffix"),
    # Real guard against two concurrent submissions of the same reference.
    Index(
        "uq_payments_validated_reference",
        "reference_suffix",
        unique=True,
        postgresql_where=text("status = 'validated'"),
        sqlite_where=text("status = 'validated'"),
    ),
)

tickets = Table(
    "tickets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("ticket_number", Integer, nullable=False),
    Column("participant_id", Integer, ForeignKey("participants.id"), nullable=False),
    Column("payment_id", Integer, ForeignKey("payments.id")),
    Column("status", String(16), nullable=False, server_default="paid"),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint("ticket_number", name="uq_tickets_ticket_number"),
    CheckConstraint("ticket_number > 0", name="ck_tickets_positive_number"),
)

raffle_config = Table(
    "raffle_config",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("ticket_price", Numeric(10, 2), nullable=False),
    Column("total_tickets", Integer, nullable=False),
    Column("draw_date", DateTime(timezone=True)),
)


def create_schema(engine: Engine) -> None:
    """Create tables and indexes that do not exist yet."""
    metadata.create_all(engine, checkfirst=True)
