from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings


logger = logging.getLogger(__name__)


def get_engine(settings: Optional[Settings] = None, url: Optional[str] = None) -> Engine:
    """Creates the engine of the persistence store.

    SQLite URLs get ``check_same_thread=False`` because writes come from the
    ingest worker threads; in-memory SQLite additionally shares one connection.
    """
    if url is None:
        url = (settings or get_settings()).database_url

    parsed = make_url(url)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Creating engine driver=%s host=%s db=%s",
        parsed.drivername,
        parsed.host,
        parsed.database,
    )

    if parsed.drivername.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if not parsed.database or parsed.database == ":memory:":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, future=True, **kwargs)
    else:
        engine = create_engine(url, pool_pre_ping=True, pool_recycle=300, future=True)

    return engine


def ping(engine: Engine) -> bool:
    """SELECT 1 against the store; False when unreachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("[DB] Connection test failed")
        return False
