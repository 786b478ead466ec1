"""Database engine and session management."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import settings
from models import Base

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return the shared engine, creating it on first use.

    Passing an explicit URL always builds a fresh engine.
    """
    global _engine
    if url is not None:
        return create_engine(url, pool_pre_ping=True)
    if _engine is None:
        _engine = create_engine(settings.database.url, pool_pre_ping=True)
    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker:
    """Return a session factory bound to ``engine`` or the shared engine."""
    global _session_factory
    if engine is not None:
        return sessionmaker(bind=engine, expire_on_commit=False)
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def init_db(engine: Engine | None = None) -> None:
    """Create any missing tables."""
    target = engine or get_engine()
    Base.metadata.create_all(target)
    logger.info("Database schema ready at %s", target.url.render_as_string(hide_password=True))

