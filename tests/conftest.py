"""
Pytest configuration and fixtures for Affiliate Leads Portal tests
"""

import itertools
from datetime import datetime, timedelta, UTC
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config.payout_config import PROGRAMS
from src.database.crud import create_user
from src.database.models import Base, Lead


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_JWT_SECRET = "test-jwt-secret"
ADMIN_EMAIL = "admin@example.com"


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async_session_maker = async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def affiliate(db_session):
    return await create_user(db_session, email="affiliate@example.com", first_name="Ann", last_name="Lee")


@pytest.fixture
async def admin_user(db_session):
    return await create_user(db_session, email=ADMIN_EMAIL, first_name="Ada", is_admin=True)


@pytest.fixture
def lead_factory(db_session):
    """
    Insert leads directly, bypassing submission rules

    Each lead is one second newer than the previous one, starting an hour
    ago, so creation order is deterministic.
    """
    counter = itertools.count()
    base = datetime.now(UTC) - timedelta(hours=1)

    async def _create(affiliate, status="approved", price=None, paid=False, **fields):
        lead = Lead(
            affiliate_id=affiliate.id,
            full_name=fields.pop("full_name", "Lead Person"),
            email=fields.pop("email", "lead@example.com"),
            program=fields.pop("program", PROGRAMS[0]),
            status=status,
            price=Decimal(str(price)) if price is not None else None,
            paid=paid,
            created_at=fields.pop("created_at", base + timedelta(seconds=next(counter))),
            **fields,
        )
        db_session.add(lead)
        await db_session.commit()
        await db_session.refresh(lead)
        return lead

    return _create


@pytest.fixture
def auth_headers():
    """Build an Authorization header with a token signed like the auth provider's"""

    def _headers(email: str, **claims) -> dict:
        payload = {
            "email": email,
            "exp": datetime.now(UTC) + timedelta(hours=1),
            **claims,
        }
        token = jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(test_db_engine, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the FastAPI app backed by the test database
    """
    from api_server import app
    from src.api import auth
    from src.api.rate_limit import limiter
    from src.database.engine import get_session

    monkeypatch.setattr(auth, "AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setattr(auth, "AUTH_JWT_ALGORITHM", "HS256")
    monkeypatch.setattr(auth, "AUTH_JWT_AUDIENCE", "")
    monkeypatch.setattr(auth, "ADMIN_EMAILS", [ADMIN_EMAIL])
    monkeypatch.setattr(limiter, "enabled", False)

    session_maker = async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
