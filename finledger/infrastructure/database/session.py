"""Database session management with connection pooling"""

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from finledger.config import settings
from finledger.infrastructure.observability.logging import log_operation_failure
from finledger.infrastructure.observability.metrics import record_failure


def build_engine(database_url: str):
    """Create an engine; SQLite gets a thread-shareable connection, servers get a pool"""
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, operation: str, **log_fields: Any) -> Iterator[Session]:
    """
    One atomic core operation: commit everything written inside the block, or
    roll all of it back and re-raise.
    """
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        record_failure(operation, e)
        log_operation_failure(operation, e, **log_fields)
        raise
