"""
Pytest configuration and shared fixtures.

src/ is put on sys.path to simulate the Lambda environment, where
Code.from_asset("src") makes src/ the root of the package. Persistence tests
run the real SQL against a throwaway SQLite file with the same schema.
"""

import base64
import os
import sys
from pathlib import Path

import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing."""
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Offline-friendly AWS defaults so boto3 clients never need real credentials.
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")

from models.payment import Verdict  # noqa: E402
from repositories.postgres_repo import PostgresRepository, build_engine  # noqa: E402
from repositories.schema import create_schema  # noqa: E402
from services.container import ServiceContainer, set_container  # noqa: E402
from services.notification_service import NotificationDispatcher  # noqa: E402
from services.raffle_service import RaffleService  # noqa: E402
from services.storage_service import StorageService  # noqa: E402
from services.ticket_service import TicketService  # noqa: E402
from utils.settings import AppSettings  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 32

MULTIPART_BOUNDARY = "----raffleboundary"


def multipart_event(parts):
    """HTTP API event with a base64 multipart/form-data body.

    ``parts`` holds (name, value) pairs; a (filename, content_type, bytes)
    tuple value becomes a file part.
    """
    chunks = []
    for name, value in parts:
        chunks.append(f"--{MULTIPART_BOUNDARY}\r\n".encode())
        if isinstance(value, tuple):
            filename, content_type, content = value
            chunks.append(
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f"Content-Type: {content_type}\r\n\r\n".encode()
            )
            chunks.append(content)
        else:
            chunks.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
            chunks.append(value.encode())
        chunks.append(b"\r\n")
    chunks.append(f"--{MULTIPART_BOUNDARY}--\r\n".encode())
    return {
        "headers": {"content-type": f"multipart/form-data; boundary={MULTIPART_BOUNDARY}"},
        "body": base64.b64encode(b"".join(chunks)).decode(),
        "isBase64Encoded": True,
    }


class RecordingNotifier:
    """Collects messages instead of calling Telegram."""

    def __init__(self):
        self.messages = []

    def notify(self, text: str) -> None:
        self.messages.append(text)


class FixedValidator:
    """Returns the same verdict for every proof."""

    provider = "fixed"
    requires_image = False

    def __init__(self, verdict: Verdict):
        self.verdict = verdict
        self.calls = []

    def validate(self, image, expected):
        self.calls.append((image, expected))
        return self.verdict


@pytest.fixture
def settings(tmp_path):
    return AppSettings(database_url=f"sqlite:///{tmp_path / 'raffle.db'}")


@pytest.fixture
def repository(settings):
    repo = PostgresRepository(build_engine(settings))
    create_schema(repo.engine)
    yield repo
    repo.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    dispatcher = NotificationDispatcher(notifier)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def storage():
    return StorageService(None)


@pytest.fixture
def approving_validator():
    return FixedValidator(Verdict(valid=True, confidence=0.95, details="matches"))


@pytest.fixture
def make_service(repository, storage, dispatcher):
    """Build a TicketService around the SQLite repository."""

    def _make(validator, raffle=None, **kwargs):
        return TicketService(
            repository,
            validator,
            storage,
            dispatcher,
            raffle=raffle,
            **kwargs,
        )

    return _make


@pytest.fixture
def container(settings, repository, storage, dispatcher, approving_validator):
    raffle = RaffleService(repository, cache_ttl_seconds=0)
    tickets = TicketService(
        repository, approving_validator, storage, dispatcher, raffle=raffle
    )
    built = ServiceContainer(
        settings=settings,
        repository=repository,
        storage=storage,
        validator=approving_validator,
        dispatcher=dispatcher,
        raffle=raffle,
        tickets=tickets,
    )
    set_container(built)
    yield built
    set_container(None)


@pytest.fixture
def proof_payload():
    return {
        "name": "María Pérez",
        "cedula": "V-12345678",
        "phone": "0414-555-1234",
        "email": "maria@example.com",
        "quantity": 3,
        "bankFrom": "Banesco",
        "paymentPhone": "04145551234",
        "amountPaid": "150.00",
        "reference": "4821",
        "screenshotUrl": "https://example.com/proof.png",
    }
