"""
Pytest configuration and fixtures
"""

import os
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from typing import AsyncGenerator, Dict, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock
from core.config import AlertThresholds, BatchSettings, TrackingConfig
from core.database import build_engine, build_session_factory
from models import Base
from models.base import Device, PriorityTier, RankingSource
from schemas.tracking import KeywordSpec, PositionObservation
from tracking.providers.base import RankingProvider
from tracking.repository import Repository

# Test database URL (in-memory SQLite unless overridden, e.g. with PostgreSQL)
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


class FixedClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 3, 15, 9, 0, 0)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class FakeProvider(RankingProvider):
    """
    Scripted ranking provider.

    ``positions`` maps keyword text to a position (or None), ``errors`` maps
    keyword text to a list of exceptions raised on successive calls.
    """

    source = RankingSource.DATAFORSEO

    def __init__(
        self,
        positions: Optional[Dict[str, Optional[int]]] = None,
        errors: Optional[Dict[str, List[Exception]]] = None
    ):
        self.positions = positions or {}
        self.errors = errors or {}
        self.calls: List[Tuple[str, int, Device, Optional[str]]] = []

    async def fetch_position(self, keyword, location_code, device, domain=None):
        self.calls.append((keyword, location_code, device, domain))
        pending = self.errors.get(keyword)
        if pending:
            raise pending.pop(0)
        return PositionObservation(
            position=self.positions.get(keyword),
            url=f"https://{domain}/{keyword.replace(' ', '-')}" if domain else None,
            features=["People Also Ask"],
        )


async def no_sleep(seconds: float):
    return None


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def tracking_config() -> TrackingConfig:
    return TrackingConfig(
        batch=BatchSettings(
            batch_size=10,
            batch_delay_seconds=2.0,
            cache_ttl_seconds=3600,
            max_retries=2,
            retry_delay_seconds=1.0,
            keyword_timeout_seconds=30,
        ),
        alerts=AlertThresholds(
            critical_position_drop=10,
            warning_position_drop=5,
            opportunity_top_n=20,
            lookback_days=7,
        ),
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = build_engine(TEST_DATABASE_URL)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    session_maker = build_session_factory(test_engine)

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def repository(db_session, clock) -> Repository:
    return Repository(db_session, clock=clock)


def keyword_spec(keyword: str = "best coffee", **overrides) -> KeywordSpec:
    values = {
        "keyword": keyword,
        "project_id": "acme",
        "project_name": "Acme Coffee",
        "priority": PriorityTier.HIGH,
        "device": Device.DESKTOP,
        "location_code": 2840,
        "domain": "acme.com",
        "search_volume": 1000,
        "target_position": 3,
    }
    values.update(overrides)
    return KeywordSpec(**values)


@pytest.fixture
def make_spec():
    return keyword_spec


@pytest.fixture
def serp_response():
    """DataForSEO live/advanced response with acme.com at rank 4"""
    return {
        "status_code": 20000,
        "status_message": "Ok.",
        "tasks": [
            {
                "status_code": 20000,
                "status_message": "Ok.",
                "result": [
                    {
                        "keyword": "best coffee",
                        "items_count": 5,
                        "items": [
                            {"type": "featured_snippet", "rank_absolute": 1,
                             "domain": "coffeeguide.com", "url": "https://coffeeguide.com/best"},
                            {"type": "organic", "rank_absolute": 2,
                             "domain": "www.beans.io", "url": "https://www.beans.io/"},
                            {"type": "people_also_ask", "rank_absolute": 3},
                            {"type": "organic", "rank_absolute": 4,
                             "domain": "www.acme.com", "url": "https://www.acme.com/coffee"},
                            {"type": "images", "rank_absolute": 5},
                        ],
                    }
                ],
            }
        ],
    }
