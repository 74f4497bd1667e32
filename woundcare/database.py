"""Database configuration for the wound care web application."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = Path("data/woundcare.db")
DEFAULT_SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.getenv("WOUNDCARE_DATABASE_URL", f"sqlite:///{DEFAULT_SQLITE_PATH}")


def _create_engine(url: str):
    """Create a SQLAlchemy engine for the given URL, handling sqlite connect args."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, future=True)


# When the configured database (usually PostgreSQL) cannot be reached during
# local development we fall back to the SQLite file. Other environments fail.
try:
    engine = _create_engine(DATABASE_URL)
    with engine.connect() as _conn:  # type: ignore[var-annotated]
        pass
except SQLAlchemyError as exc:  # pragma: no cover - environment dependent
    env = os.getenv("ENVIRONMENT", "development").lower()
    logger.warning("Could not connect to database at %r: %s", DATABASE_URL, exc)
    if env != "development":
        raise
    DATABASE_URL = f"sqlite:///{DEFAULT_SQLITE_PATH}"
    logger.warning("Falling back to SQLite for local development at %s", DATABASE_URL)
    engine = _create_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Ensure tables exist and seed the default admin account."""

    from woundcare import models  # noqa: F401  (registers model metadata)
    from woundcare.auth import User

    Base.metadata.create_all(bind=engine, checkfirst=True)

    session = SessionLocal()
    try:
        if session.query(User).filter(User.username == "admin").count() == 0:
            session.add(User.create_user("admin", "admin", role="admin"))
            session.commit()
            logger.info("Created default admin user (username: admin)")
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Could not seed the default admin user")
        raise
    finally:
        session.close()
