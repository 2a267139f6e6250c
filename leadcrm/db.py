"""
leadcrm.db

Single source of truth for database connectivity.

Contracts this module provides:
- get_engine(): the shared SQLAlchemy Engine, created lazily from DATABASE_URL
- configure_engine(): swap the shared engine (tests, one-off scripts)
- get_session(): commit/rollback context manager over the shared sessionmaker
- init_db(): create the contact and activity tables

Notes:
- DATABASE_URL is only required once something touches the database, so the
  library imports cleanly in tests and tooling.
- We normalize common scheme/driver variants to reduce footguns.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from leadcrm import config
from leadcrm.errors import ConfigurationError

_engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None


def _normalize_database_url(raw: str) -> str:
    """
    Normalize DATABASE_URL variants to something SQLAlchemy can reliably use.

    Normalizations:
    - postgres://  -> postgresql://
    - postgresql+psycopg:// -> postgresql+psycopg2://
    """
    url = (raw or "").strip()

    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]

    if url.startswith("postgresql+psycopg://"):
        url = "postgresql+psycopg2://" + url[len("postgresql+psycopg://") :]

    return url


def configure_engine(target: Union[str, Engine]) -> Engine:
    """Install `target` (a URL or a ready Engine) as the shared engine."""
    global _engine, SessionLocal

    if isinstance(target, Engine):
        eng = target
    else:
        eng = create_engine(_normalize_database_url(target), echo=config.DB_ECHO, pool_pre_ping=True)

    _engine = eng
    SessionLocal = sessionmaker(bind=eng, autoflush=False, expire_on_commit=False)
    return eng


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine, building it from DATABASE_URL on first use."""
    if _engine is None:
        if not config.DATABASE_URL:
            raise ConfigurationError(
                "DATABASE_URL is not set in environment. "
                "Export it (or put it in .env) before starting the API or a flow."
            )
        configure_engine(config.DATABASE_URL)
    return _engine  # type: ignore[return-value]


def session_factory() -> sessionmaker:
    get_engine()
    return SessionLocal  # type: ignore[return-value]


@contextmanager
def get_session(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Context-managed DB session.

    Usage:
        from leadcrm.db import get_session
        with get_session() as s:
            ...
    """
    session: Session = (factory or session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> None:
    from leadcrm.schema import Base

    Base.metadata.create_all(engine or get_engine())
