from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from adaptive_assessment.db.models.base import Base
from config import get_settings

settings = get_settings()

SessionFactory = Callable[[], Session]


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite gets thread-sharing and foreign keys switched on."""
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        new_engine = create_engine(database_url, echo=echo, **kwargs)

        # SQLAlchemy emits BEGIN itself (SAVEPOINT support); IMMEDIATE takes
        # the write lock up front and waiters queue on busy_timeout.
        @event.listens_for(new_engine, "connect")
        def _configure_connection(dbapi_connection, _record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=10000")
            cursor.close()

        @event.listens_for(new_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return new_engine
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


# Sync engine/session
engine = build_engine(settings.database_url, echo=settings.log_level == "DEBUG")
SessionLocal = build_session_factory(engine)


def get_engine() -> Engine:
    """Get the database engine."""
    return engine


def init_db(bind: Engine | None = None) -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


def check_database_health(bind: Engine | None = None) -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@contextmanager
def session_scope(factory: SessionFactory | None = None) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()
