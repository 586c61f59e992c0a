"""
BoardScan Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_session: AsyncSession on a private in-memory SQLite database
    ├── user / other_user / admin: persisted accounts
    ├── temp_storage: Temporary directory for file operations
    ├── sample_image_bytes: Fake image content for upload tests
    ├── make_record: factory for persisted scan records
    └── test_client: HTTPX AsyncClient wired to the same db_session

Services only flush, so tests inspect state within the one session.
Account and record fixtures commit, so an API request that rolls back
never takes them with it. Every test gets a brand-new database.
"""

import os
import tempfile

# Override settings for testing BEFORE any boardscan imports
# Why: Prevents tests from using production database or API keys
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="boardscan_test_")
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests
os.environ["ADMIN_EMAIL"] = ""
os.environ["ADMIN_PASSWORD"] = ""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import boardscan.models  # noqa: F401  (registers every table on Base.metadata)
from boardscan.database import Base, get_db_session
from boardscan.models import ROLE_ADMIN, ROLE_USER, ScanRecord, User
from boardscan.services.scan_service import compute_total_price


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provides an AsyncSession on a fresh in-memory SQLite database.

    StaticPool keeps the single in-memory connection alive for the whole
    test, so every query sees the tables created here.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


async def _make_user(db: AsyncSession, email: str, role: str) -> User:
    user = User(email=email, first_name=email.split("@")[0], role=role, is_active=True)
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def user(db_session) -> User:
    return await _make_user(db_session, "operator@example.com", ROLE_USER)


@pytest_asyncio.fixture
async def other_user(db_session) -> User:
    return await _make_user(db_session, "second@example.com", ROLE_USER)


@pytest_asyncio.fixture
async def admin(db_session) -> User:
    return await _make_user(db_session, "admin@example.com", ROLE_ADMIN)


@pytest.fixture
def make_record(db_session):
    """
    Factory for persisted scan records.

    Usage:
        record = await make_record(user, board_type="PSU", weight_kg=1.5, price_per_kg="2")
    """
    async def _make(owner: User, **fields) -> ScanRecord:
        fields.setdefault("board_type", "Generic Main Board")
        fields.setdefault("category", "TV")
        fields.setdefault("device_type", "Main board")
        fields.setdefault("confidence", 0.9)
        if fields.get("price_per_kg") is not None:
            fields["price_per_kg"] = Decimal(str(fields["price_per_kg"]))
        fields["total_price"] = compute_total_price(fields.get("weight_kg"), fields.get("price_per_kg"))

        record = ScanRecord(user_id=owner.id, **fields)
        db_session.add(record)
        await db_session.commit()
        return record

    return _make


# ══════════════════════════════════════════════════════════════════════════
# File Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    """A fresh storage directory per test (pytest removes it afterwards)."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """
    Provides minimal valid JPEG bytes for upload tests.

    Not a real photograph, just the smallest header that passes MIME
    sniffing. Gemini is always mocked in tests.
    """
    # Minimal JPEG: Start of Image (FFD8) + JFIF marker + End of Image (FFD9)
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_session):
    """
    Provides an async HTTP test client for endpoint testing.

    The request-scoped session dependency is replaced with the test's
    db_session, so data created by fixtures is visible to the API and the
    API's writes are visible to assertions.

    Usage:
        async def test_me(test_client, user):
            response = await test_client.get("/api/auth/user", headers=auth(user))
    """
    from boardscan.main import app

    async def _session_override():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db_session] = _session_override
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
