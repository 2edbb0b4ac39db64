"""Pytest configuration and fixtures for Lectern tests.

Test isolation strategy:
- Settings are rebuilt from a clean environment for every test
- Storage and repositories are in-memory by default
- SQLAlchemy tests get a fresh in-memory SQLite database per test
"""

from collections.abc import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from lectern.config import clear_settings_cache
from lectern.db.engine import create_schema
from lectern.db.repository import InMemorySourceRepository, SqlAlchemySourceRepository
from lectern.db.session import create_session_factory
from lectern.storage.client import FakeStorageClient

_LECTERN_ENV_VARS = (
    "LECTERN_ENV",
    "DATABASE_URL",
    "STORAGE_BACKEND",
    "STORAGE_ROOT",
    "IMAGE_ROUTE_TEMPLATE",
    "MAX_UPLOAD_BYTES",
    "MAX_ARCHIVE_ENTRIES",
    "MAX_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES",
    "MAX_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES",
    "MAX_ARCHIVE_COMPRESSION_RATIO",
    "LOG_JSON",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Run every test against default settings, isolated from the host environment."""
    for name in _LECTERN_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LECTERN_ENV", "test")
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def storage() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def repo() -> InMemorySourceRepository:
    return InMemorySourceRepository()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database with the schema created."""
    engine = create_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine: Engine) -> Generator[Session, None, None]:
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sql_repo(db_session: Session) -> SqlAlchemySourceRepository:
    return SqlAlchemySourceRepository(db_session)
