"""
Pytest configuration and fixtures for Gym Coupons tests.
"""
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from gym_coupons.core.config import settings  # noqa: E402
from gym_coupons.core.database import Base  # noqa: E402
from gym_coupons.models.coupon import Coupon, CouponSettings  # noqa: E402
from gym_coupons.services.coupon_service import CouponService  # noqa: E402
from gym_coupons.services.coupon_store import CouponStore  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite so concurrent sessions get separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'coupons.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db) -> CouponStore:
    return CouponStore(db)


@pytest.fixture
def service(store) -> CouponService:
    return CouponService(store, settings)


@pytest_asyncio.fixture
async def coupons_enabled(store):
    """Insert the settings singleton with coupons switched on."""
    return await store.upsert_settings({"is_enabled": True})


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def make_coupon():
    """Build an unsaved Coupon with permissive defaults."""
    def _make(**overrides) -> Coupon:
        fields = {
            "id": 1,
            "code": "WELCOME20",
            "name": "Welcome",
            "discount_type": "percentage",
            "discount_value": Decimal("20"),
            "min_amount": None,
            "max_discount": None,
            "usage_limit": None,
            "used_count": 0,
            "is_active": True,
            "valid_from": NOW - timedelta(days=1),
            "valid_until": NOW + timedelta(days=30),
            "applicable_plans": [],
        }
        fields.update(overrides)
        return Coupon(**fields)

    return _make


@pytest.fixture
def enabled_settings() -> CouponSettings:
    return CouponSettings(id=1, is_enabled=True, allow_stacking=False)


@pytest.fixture
def sample_coupon_data() -> dict:
    """Payload for the admin create endpoint."""
    return {
        "code": "summer25",
        "name": "Summer sale",
        "description": "25% off any plan",
        "discount_type": "percentage",
        "discount_value": 25,
        "max_discount": 500,
        "usage_limit": 100,
        "applicable_plans": [1, 2],
    }
