"""SQLAlchemy engine creation and configuration."""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from lectern.config import get_settings
from lectern.db.models import Base


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine with the given URL.

    Args:
        database_url: SQLAlchemy connection string. If None, uses settings.
    """
    if database_url is None:
        database_url = get_settings().database_url

    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=False,
    )


def create_schema(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(engine)


@lru_cache
def get_engine() -> Engine:
    """Get the cached database engine."""
    return create_db_engine()
