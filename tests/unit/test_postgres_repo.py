"""
Persistence gateway tests (SQLite file database, same schema as PostgreSQL).

Run with: pytest tests/unit/test_postgres_repo.py -v
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from repositories.postgres_repo import (
    build_engine,
    normalize_database_url,
    translate_error,
)
from repositories.schema import participants, payments, tickets
from utils.error_handling import (
    ConfigurationError,
    ConstraintViolation,
    GatewayConnectionError,
    PersistenceError,
)
from utils.settings import AppSettings


def _participant(repository, name="Ana"):
    rows = repository.execute(
        participants.insert().values(name=name, phone="0412").returning(participants.c.id)
    )
    return rows[0]["id"]


def _payment(repository, participant_id, reference, status):
    repository.execute(
        payments.insert().values(
            participant_id=participant_id,
            amount_paid=50,
            reference_suffix=reference,
            status=status,
        )
    )


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgres://u:p@h/db", "postgresql+psycopg2://u:p@h/db"),
        ("postgresql://u:p@h/db", "postgresql+psycopg2://u:p@h/db"),
        ("postgresql+psycopg2://u:p@h/db", "postgresql+psycopg2://u:p@h/db"),
        ("sqlite:///x.db", "sqlite:///x.db"),
    ],
)
def test_normalize_database_url(url, expected):
    assert normalize_database_url(url) == expected


def test_build_engine_requires_database():
    with pytest.raises(ConfigurationError):
        build_engine(AppSettings())


def test_execute_returning_and_fetch(repository):
    participant_id = _participant(repository)

    row = repository.fetch_one(select(participants).where(participants.c.id == participant_id))

    assert row["name"] == "Ana"
    assert repository.fetch_one(select(participants).where(participants.c.id == -1)) is None
    assert repository.execute(tickets.delete()) == []


def test_raw_sql_with_params(repository):
    _participant(repository, name="Luis")

    rows = repository.fetch_all("SELECT name FROM participants WHERE name = :name", {"name": "Luis"})

    assert rows == [{"name": "Luis"}]


def test_transaction_rolls_back_on_error(repository):
    participant_id = _participant(repository)

    with pytest.raises(RuntimeError):
        with repository.transaction() as conn:
            conn.execute(tickets.insert().values(ticket_number=1, participant_id=participant_id))
            raise RuntimeError("abort")

    assert repository.fetch_all(select(tickets)) == []


def test_duplicate_ticket_number_is_constraint_violation(repository):
    participant_id = _participant(repository)
    repository.execute(tickets.insert().values(ticket_number=1, participant_id=participant_id))

    with pytest.raises(ConstraintViolation) as exc_info:
        repository.execute(tickets.insert().values(ticket_number=1, participant_id=participant_id))

    assert exc_info.value.touches("ticket_number")
    assert not exc_info.value.touches("reference")


def test_validated_reference_is_unique(repository):
    participant_id = _participant(repository)
    _payment(repository, participant_id, "4821", "validated")

    with pytest.raises(ConstraintViolation) as exc_info:
        _payment(repository, participant_id, "4821", "validated")

    assert exc_info.value.touches("reference")


def test_rejected_references_may_repeat(repository):
    participant_id = _participant(repository)
    _payment(repository, participant_id, "4821", "rejected")
    _payment(repository, participant_id, "4821", "rejected")
    _payment(repository, participant_id, "4821", "validated")

    assert len(repository.fetch_all(select(payments))) == 3


def test_unknown_payment_status_rejected(repository):
    participant_id = _participant(repository)

    with pytest.raises(ConstraintViolation):
        _payment(repository, participant_id, "1", "refunded")


def test_lock_is_noop_outside_postgres(repository):
    with repository.transaction() as conn:
        repository.lock(conn, 7310001)


def test_translate_error_uses_postgres_constraint_name():
    orig = MagicMock()
    orig.diag.constraint_name = "uq_payments_validated_reference"
    error = translate_error(IntegrityError("INSERT", {}, orig))

    assert isinstance(error, ConstraintViolation)
    assert error.constraint == "uq_payments_validated_reference"


def test_translate_error_connection_and_generic():
    assert isinstance(
        translate_error(OperationalError("SELECT 1", {}, Exception("server closed"))),
        GatewayConnectionError,
    )
    generic = translate_error(ProgrammingError("SELECT", {}, Exception("syntax")))
    assert type(generic) is PersistenceError
