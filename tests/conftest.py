# tests/conftest.py
import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional
from uuid import UUID

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Settings are read on import of app.config, so the environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-counting-engine")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from app.core.security import create_access_token  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.asset import Asset, AssetCategory, AssetLocation, AssetStatus  # noqa: E402
from app.models.counting import CountingActivity, CountingScan, DuplicateScanAttempt  # noqa: E402,F401
from app.models.user import User  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class Seed:
    """Ids of the reference rows every test starts with."""
    user_id: UUID
    other_user_id: UUID
    inactive_user_id: UUID
    location_5: UUID
    location_6: UUID
    category_1: UUID
    category_2: UUID


# =========================================
# One in-memory database per test
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        future=True,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine: AsyncEngine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def seed(session_factory) -> Seed:
    async with session_factory() as session:
        user = User(email="counter@example.com", full_name="Asha Counter", employee_code="E-001")
        other = User(email="owner@example.com", full_name="Ravi Owner", employee_code="E-002")
        inactive = User(email="gone@example.com", full_name="Former Staff", is_active=False)
        loc5 = AssetLocation(name="Warehouse 5")
        loc6 = AssetLocation(name="Warehouse 6")
        cat1 = AssetCategory(name="Furniture")
        cat2 = AssetCategory(name="IT Equipment")
        session.add_all([user, other, inactive, loc5, loc6, cat1, cat2])
        await session.commit()

        return Seed(
            user_id=user.id,
            other_user_id=other.id,
            inactive_user_id=inactive.id,
            location_5=loc5.id,
            location_6=loc6.id,
            category_1=cat1.id,
            category_2=cat2.id,
        )


@pytest.fixture
def add_asset(session_factory, seed: Seed):
    """Insert an asset and return its id."""

    async def _add(
        tag: str,
        status: AssetStatus = AssetStatus.IN_STORAGE,
        location_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        assigned_to_user_id: Optional[UUID] = None,
        name: Optional[str] = None,
    ) -> UUID:
        async with session_factory() as session:
            asset = Asset(
                asset_tag=tag,
                name=name or f"Asset {tag}",
                status=status.value,
                location_id=location_id,
                category_id=category_id or seed.category_1,
                assigned_to_user_id=assigned_to_user_id,
                purchase_date=date(2023, 4, 1),
                purchase_cost=Decimal("1000.00"),
            )
            session.add(asset)
            await session.commit()
            return asset.id

    return _add


# =========================================
# HTTP client against the app with get_db overridden
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _get_db_override():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def bearer():
    """Build an Authorization header for a user id."""

    def _bearer(user_id: UUID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _bearer


@pytest.fixture
def auth_headers(seed: Seed, bearer) -> Dict[str, str]:
    return bearer(seed.user_id)
