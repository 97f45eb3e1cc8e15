"""
Pytest configuration and fixtures for consent engine tests
"""

import os
import sys
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

from consent_engine.database import Base, get_db  # noqa: E402
from consent_engine.models.consent_log import ConsentLog  # noqa: E402, F401
from consent_engine.plugins.registry import HookRegistry  # noqa: E402
from consent_engine.schemas.policy import build_consent_config  # noqa: E402
from consent_engine.services.consent_service import ConsentStore  # noqa: E402
from consent_engine.services.region_service import RegionResolver  # noqa: E402
from consent_engine.utils.cache import TTLCache  # noqa: E402

# Every session shares one in-memory database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

from main import app  # noqa: E402
from consent_engine.routes.consent import get_consent_config, get_region_resolver  # noqa: E402

# Test IPs and the countries the static provider maps them to
IP_GERMANY = "85.214.132.117"
IP_CALIFORNIA = "8.8.8.8"
IP_BRAZIL = "200.147.67.142"
IP_JAPAN = "133.242.0.1"

STATIC_COUNTRIES = {
    IP_GERMANY: "DE",
    IP_CALIFORNIA: "US",
    IP_BRAZIL: "BR",
    IP_JAPAN: "JP",
}


class StaticGeoProvider:
    """Geo provider answering from a fixed IP -> country table."""

    name = "static"

    def __init__(self, countries: dict[str, str] | None = None):
        self.countries = STATIC_COUNTRIES if countries is None else countries
        self.calls: list[str] = []

    async def lookup_country(self, ip: str) -> str:
        self.calls.append(ip)
        return self.countries.get(ip, "")


@pytest.fixture(scope="function")
async def setup_test_database():
    """Create a fresh schema for each test function that needs it."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def consent_config():
    return build_consent_config()


@pytest.fixture
def registry() -> HookRegistry:
    """A registry isolated from the process-wide one."""
    return HookRegistry()


@pytest.fixture
def geo_provider() -> StaticGeoProvider:
    return StaticGeoProvider()


@pytest.fixture
def resolver(consent_config, geo_provider, registry) -> RegionResolver:
    return RegionResolver(consent_config, providers=[geo_provider], cache=TTLCache(), registry=registry)


@pytest.fixture
def store(test_db, consent_config, registry) -> ConsentStore:
    return ConsentStore(test_db, consent_config, registry=registry)


@pytest.fixture
async def client(setup_test_database, consent_config, geo_provider) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app, backed by the test database and static geolocation."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    def override_resolver():
        return RegionResolver(consent_config, providers=[geo_provider], cache=TTLCache(), registry=HookRegistry())

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_consent_config] = lambda: consent_config
    app.dependency_overrides[get_region_resolver] = override_resolver

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()
