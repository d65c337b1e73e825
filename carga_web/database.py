"""Database setup utilities for the CargaInteligente web app."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session

metadata = MetaData()

# One row per record of a named collection; ``position`` keeps list order.
documents = Table(
    "documents",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("collection", String(64), nullable=False, index=True),
    Column("doc_id", String(128), nullable=False),
    Column("position", Integer, nullable=False),
    Column("payload", JSON, nullable=False),
    UniqueConstraint("collection", "position", name="uq_documents_collection_position"),
)

collection_revisions = Table(
    "collection_revisions",
    metadata,
    Column("collection", String(64), primary_key=True),
    Column("revision", Integer, nullable=False, default=0),
    Column(
        "updated_at",
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    ),
)

email_dispatch_log = Table(
    "email_dispatch_log",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("sender", String(255), nullable=False, index=True),
    Column("recipient", String(255), nullable=False, index=True),
    Column("subject", String(255), nullable=False),
    Column("feature", String(64), nullable=False),
    Column(
        "created_at", DateTime(timezone=True), server_default=func.now(), nullable=False
    ),
)


def create_db_engine(database_url: str) -> Engine:
    """Return a SQLAlchemy engine for the provided URL.

    For file-backed SQLite URLs the parent directory is created first.
    """

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, future=True)


def init_schema(engine: Engine) -> None:
    """Create database tables if they do not exist."""

    metadata.create_all(engine)


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Context manager that yields a SQLAlchemy :class:`Session`."""

    with Session(engine, future=True) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
