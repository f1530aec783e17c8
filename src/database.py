"""Database engine and session factory built from settings."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import DatabaseConfig, settings

logger = logging.getLogger(__name__)

_sync_engine: Engine | None = None
_sync_session_factory: sessionmaker | None = None


def build_engine(database: DatabaseConfig) -> Engine:
    """Create an engine for ``database``, creating the sqlite file's directory."""
    url = database.url
    if url.startswith("sqlite:///") and not url.endswith(":memory:"):
        Path(url[len("sqlite:///"):]).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=database.echo, pool_pre_ping=True)


def get_sync_engine() -> Engine:
    """Return the process-wide engine for ``settings.database``."""
    global _sync_engine
    if _sync_engine is None:
        _sync_engine = build_engine(settings.database)
        logger.info("Database engine created: dialect=%s", _sync_engine.dialect.name)
    return _sync_engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory."""
    global _sync_session_factory
    if _sync_session_factory is None:
        _sync_session_factory = sessionmaker(bind=get_sync_engine())
    return _sync_session_factory


def get_sync_session() -> Session:
    """Open a new session on the configured database."""
    return get_session_factory()()


def reset_engine() -> None:
    """Dispose the cached engine so the next call rebuilds it from settings."""
    global _sync_engine, _sync_session_factory
    if _sync_engine is not None:
        _sync_engine.dispose()
    _sync_engine = None
    _sync_session_factory = None


__all__ = [
    "build_engine",
    "get_session_factory",
    "get_sync_engine",
    "get_sync_session",
    "reset_engine",
]
