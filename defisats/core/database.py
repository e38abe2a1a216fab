"""
Database engine construction.

One process-wide SQLAlchemy Engine built from settings.database_url.
SQLite URLs get the thread and pool options that in-memory test
databases need.
"""

import logging
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from defisats.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an Engine for ``database_url``."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return the shared application Engine."""
    engine = build_engine(settings.database_url)
    logger.info("Database engine created for dialect %s", engine.dialect.name)
    return engine


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    from defisats.infrastructure.persistence.tables import metadata

    metadata.create_all(engine or get_engine())
