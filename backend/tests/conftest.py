"""Root conftest — shared test configuration and fixtures.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - db_manager is replaced by a manager bound to the test engine, so code that
      reads the singleton (readiness probe) sees the test database
    - The API client overrides get_backup_service / get_audit_sink; the app
      lifespan is not run by the ASGI transport

Design Decisions:
    - SQLite in-memory: fast, no external dependency; PostgreSQL-specific
      behaviour is not exercised here
    - Artifacts live in MemoryArtifactStorage so tests can tamper with bytes
    - Fixture UUIDs must contain a hex letter: SQLite gives the UUID column
      numeric affinity, so an all-digit hex id is read back as a float
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

import stockroom.infrastructure.database as db_module
from stockroom.api.routes.backups import get_audit_sink, get_backup_service
from stockroom.config import Settings
from stockroom.db.base import Base
from stockroom.infrastructure.artifact_cipher import ArtifactCipher
from stockroom.infrastructure.database import DatabaseSessionManager
from stockroom.infrastructure.sql_audit_sink import SqlAuditSink
from stockroom.infrastructure.sql_inventory_store import SqlInventoryStore
from stockroom.main import app
from stockroom.models.user import User
from stockroom.services.backup_catalog import BackupCatalog
from stockroom.services.backup_creator import BackupCreator
from stockroom.services.backup_service import BackupService
from stockroom.services.backup_verifier import BackupVerifier
from stockroom.services.restore_engine import RestoreEngine
from tests.factories import USER_ID, FixedClock, MemoryArtifactStorage


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def db_manager(test_engine, test_session_factory):
    """DatabaseSessionManager bound to the test engine (also installed as singleton)."""
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    original = db_module.db_manager
    db_module.db_manager = manager
    yield manager
    db_module.db_manager = original


@pytest.fixture
def sessions(db_manager):
    return db_manager.session


@pytest.fixture
async def seed_user(test_db):
    user = User(id=USER_ID, email="dana@example.com", name="Dana Ops", role="ADMIN")
    test_db.add(user)
    await test_db.commit()
    return user


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return MemoryArtifactStorage()


@pytest.fixture
def cipher():
    return ArtifactCipher(ArtifactCipher.generate_key())


@pytest.fixture
def catalog(sessions, clock):
    return BackupCatalog(sessions, clock)


@pytest.fixture
def store(sessions, seed_user):
    return SqlInventoryStore(sessions)


@pytest.fixture
def creator(catalog, store, storage, clock, cipher):
    return BackupCreator(catalog, store, storage, clock, cipher)


@pytest.fixture
def verifier(catalog, storage, cipher):
    return BackupVerifier(catalog, storage, cipher)


@pytest.fixture
def restore_engine(verifier, store, clock):
    return RestoreEngine(verifier, store, clock)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        backup_dir=str(tmp_path / "backups"),
        backup_storage_limit_bytes=1_000_000,
    )


@pytest.fixture
def backup_service(catalog, store, storage, clock, settings, cipher):
    return BackupService(catalog, store, storage, clock, settings, cipher)


@pytest.fixture
def audit_sink(sessions):
    return SqlAuditSink(sessions)


@pytest.fixture
async def client(backup_service, audit_sink):
    """FastAPI test client with the backup service and audit sink overridden."""
    app.dependency_overrides[get_backup_service] = lambda: backup_service
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
