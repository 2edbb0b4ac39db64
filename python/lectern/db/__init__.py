"""Database module for Lectern.

Provides engine creation, session management, transaction helpers, ORM
models, and the source repository adapters.
"""

from lectern.db.engine import create_db_engine, create_schema, get_engine
from lectern.db.models import Base, Chapter, Source
from lectern.db.repository import (
    ChapterRecord,
    InMemorySourceRepository,
    SourceRecord,
    SourceRepository,
    SqlAlchemySourceRepository,
)
from lectern.db.session import create_session_factory, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "create_schema",
    "get_engine",
    "create_session_factory",
    "transaction",
    # Models
    "Base",
    "Source",
    "Chapter",
    # Repository
    "SourceRepository",
    "InMemorySourceRepository",
    "SqlAlchemySourceRepository",
    "SourceRecord",
    "ChapterRecord",
]
