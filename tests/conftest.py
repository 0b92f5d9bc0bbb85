"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from models.base import Base
import models.cadastral  # noqa: F401
from typing import AsyncGenerator

REGISTRY_URL = "https://registry.test/api/geoportal/v2/search/geoportal"


def registry_payload(options=None, geometry=None):
    """Registry search response shaped like the real one"""
    if options is None:
        options = {
            "area": 1250.5,
            "declared_area": 1200,
            "specified_area": 1250.5,
            "cost_value": 845000.75,
            "permitted_use_established_by_document": "Для ведения личного подсобного хозяйства",
            "right_type": "Собственность",
            "status": "Учтенный",
            "land_record_type": "Земельный участок",
            "land_record_subtype": "Землепользование",
            "land_record_category_type": "Земли населенных пунктов",
        }
    if geometry is None:
        geometry = {
            "type": "Polygon",
            "coordinates": [[
                [5565974.54, 7361866.11],
                [5566074.54, 7361866.11],
                [5566074.54, 7361966.11],
                [5565974.54, 7361866.11],
            ]],
            "crs": {"type": "name", "properties": {"name": "EPSG:3857"}},
        }
    return {
        "data": {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "id": 413,
                    "geometry": geometry,
                    "properties": {
                        "category": 36368,
                        "descr": "16:50:11:413",
                        "options": options,
                    },
                }
            ],
        }
    }


@pytest.fixture
def database_url(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits"""
    return f"sqlite+aiosqlite:///{tmp_path / 'cadastral_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def test_engine(database_url):
    """Create test database engine"""
    engine = create_async_engine(
        database_url,
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine"""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def sync_database(tmp_path):
    """
    Synchronous handle on a fresh SQLite file, for tests that drive the
    app through TestClient (which runs its own event loop).

    Yields (async_url, sync session factory).
    """
    path = tmp_path / "cadastral_api.db"
    engine = create_engine(f"sqlite:///{path}", poolclass=NullPool)
    Base.metadata.create_all(engine)

    yield f"sqlite+aiosqlite:///{path}", sessionmaker(engine, expire_on_commit=False)

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def make_registry_payload():
    """Factory for registry responses with custom options or geometry"""
    return registry_payload


@pytest.fixture
def mock_registry_payload():
    """Successful registry response"""
    return registry_payload()


@pytest.fixture
def registry_transport(mock_registry_payload):
    """
    Mock registry: object 413 is found, 414 is unknown (404), anything
    else is a server error. Every request is recorded on ``.requests``.
    """
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        query = request.url.params.get("query", "")
        object_code = query.rsplit(":", 1)[-1]
        if object_code == "413":
            return httpx.Response(200, json=mock_registry_payload)
        if object_code == "414":
            return httpx.Response(404, json={"message": "Not found"})
        return httpx.Response(500, text="Internal Server Error")

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport
