"""PostgreSQL gateway using SQLAlchemy Core."""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Union

import boto3
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.sql import Executable

from utils.error_handling import (
    ConfigurationError,
    ConstraintViolation,
    GatewayConnectionError,
    PersistenceError,
)
from utils.logging_config import get_logger
from utils.settings import AppSettings

logger = get_logger(__name__)

Query = Union[str, Executable]


def normalize_database_url(url: str) -> str:
    """Supabase/Heroku style ``postgres://`` URLs are not accepted by SQLAlchemy."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url[len(prefix):]
    return url


def secret_to_db_url(secret_arn: str, region: Optional[str] = None) -> str:
    """Build a SQLAlchemy URL from an RDS secret."""
    sm = boto3.client("secretsmanager", region_name=region)
    secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
    host = secret.get("host")
    port = secret.get("port", 5432)
    username = secret.get("username")
    password = secret.get("password")
    dbname = secret.get("dbname", "postgres")
    if not (host and username and password):
        raise ConfigurationError("Database secret is missing host, username or password")
    return f"postgresql+psycopg2://{username}:{password}@{host}:{port}/{dbname}"


def build_engine(settings: AppSettings) -> Engine:
    """Create a pooled engine from DATABASE_URL or the RDS secret."""
    settings.require_database()
    if settings.database_url:
        url = normalize_database_url(settings.database_url)
    else:
        url = secret_to_db_url(settings.db_secret_arn, region=settings.aws_region)

    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"timeout": 30, "check_same_thread": False})
    return create_engine(
        url,
        pool_size=1,
        max_overflow=2,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def _constraint_name(exc: IntegrityError) -> str:
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None) or ""


def translate_error(exc: DBAPIError) -> PersistenceError:
    """Map driver errors onto the gateway taxonomy."""
    if isinstance(exc, IntegrityError):
        return ConstraintViolation(str(exc.orig), constraint=_constraint_name(exc))
    if isinstance(exc, (OperationalError, InterfaceError)) or exc.connection_invalidated:
        return GatewayConnectionError(str(exc.orig))
    return PersistenceError(str(exc.orig))


def _statement(query: Query) -> Executable:
    return text(query) if isinstance(query, str) else query


class PostgresRepository:
    """Thin wrapper to keep SQL organized, parameterized and error-mapped."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def fetch_one(self, query: Query, params: Optional[dict] = None) -> Optional[dict]:
        """Execute a SELECT and return one row as dict."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_statement(query), params or {}).fetchone()
                return dict(row._mapping) if row else None
        except DBAPIError as exc:
            raise translate_error(exc) from exc

    def fetch_all(self, query: Query, params: Optional[dict] = None) -> List[dict]:
        """Execute a SELECT and return every row as dict."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_statement(query), params or {})
                return [dict(row._mapping) for row in result]
        except DBAPIError as exc:
            raise translate_error(exc) from exc

    def scalar(self, query: Query, params: Optional[dict] = None) -> Any:
        try:
            with self.engine.connect() as conn:
                return conn.execute(_statement(query), params or {}).scalar()
        except DBAPIError as exc:
            raise translate_error(exc) from exc

    def execute(self, query: Query, params: Optional[dict] = None) -> List[dict]:
        """Execute a statement in its own transaction and return any rows."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_statement(query), params or {})
                if not result.returns_rows:
                    return []
                return [dict(row._mapping) for row in result]
        except DBAPIError as exc:
            raise translate_error(exc) from exc

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside one transaction; rollback on any error."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except DBAPIError as exc:
            raise translate_error(exc) from exc

    def lock(self, conn: Connection, key: int) -> None:
        """Serialize writers on ``key`` until the surrounding transaction ends."""
        if self.dialect == "postgresql":
            conn.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})

    def dispose(self) -> None:
        self.engine.dispose()
