"""
Centralized Test Configuration.
"""

import uuid
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.jwt import create_access_token
from backend.app.core.redis_client import get_redis
from backend.app.core.reliability import weather_circuit_breaker, notify_circuit_breaker, storage_circuit_breaker
from backend.app.models.enums import VehicleStatus
from backend.app.models.vehicle import Vehicle
from backend.app.models.spill_kit import SpillKitTemplate, SpillKitTemplateItem
from backend.app.services.edge_functions import get_edge_function_client
from backend.app.services.storage import StorageClient, get_storage_client
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_foreign_keys(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def incr(self, key):
        value = int(self.store.get(key) or 0) + 1
        self.store[key] = str(value)
        return value

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def flushdb(self):
        self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeEdgeFunctions:
    """Records notify calls and returns canned weather."""

    def __init__(self):
        self.notified = []

    async def notify_incident(self, payload):
        self.notified.append(payload)
        return True

    async def get_current_weather(self, latitude, longitude):
        from backend.app.schemas.spill_kit import WeatherResponse
        return WeatherResponse(
            description="clear sky", temp=72, humidity=40, wind_speed=3,
            city="Austin", state="TX", summary="Clear Sky • 72°F • 40% Humidity • Wind 3 MPH - Austin, TX",
        )


class FakeStorage(StorageClient):
    """Stores uploads in memory; content starting with b"fail" is rejected."""

    def __init__(self):
        super().__init__(base_url="http://storage.test", service_key="")
        self.objects = {}

    async def upload(self, bucket, path, content, content_type="application/octet-stream"):
        from backend.app.core.exceptions import ExternalServiceError
        if content.startswith(b"fail"):
            raise ExternalServiceError("storage", "Upload failed")
        self.objects[f"{bucket}/{path}"] = content
        return self.public_url(bucket, path)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def edge_functions():
    return FakeEdgeFunctions()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    for breaker in (weather_circuit_breaker, notify_circuit_breaker, storage_circuit_breaker):
        breaker.reset_state()
    yield


@pytest.fixture
def apply_overrides(session_factory, mock_redis, edge_functions, storage, monkeypatch):
    """Point the app at the per-test database, Redis and fake external services."""
    monkeypatch.setattr(redis_client_module, "redis_client", mock_redis)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_edge_function_client] = lambda: edge_functions
    app.dependency_overrides[get_storage_client] = lambda: storage
    yield

    app.dependency_overrides = {}


@pytest.fixture
async def client(apply_overrides):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


def auth_headers(role: str, user_id: str = None, name: str = None) -> dict:
    token = create_access_token({"sub": user_id or f"user_{role}", "role": role, "name": name or role.title()})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin", "user_admin1", "Office Admin")


@pytest.fixture
def driver_headers():
    return auth_headers("driver", "user_driver1", "Dana Driver")


@pytest.fixture
def other_driver_headers():
    return auth_headers("driver", "user_driver2", "Sam Driver")


@pytest.fixture
async def vehicle(db_session):
    vehicle = Vehicle(
        id=uuid.uuid4(),
        license_plate="TX-4821",
        make="Ford",
        model="F-550",
        nickname="Pumper 3",
        vehicle_type="pump_truck",
        status=VehicleStatus.ACTIVE,
        current_mileage=48200,
        vehicle_image="fleet/pumper-3.jpg",
    )
    db_session.add(vehicle)
    await db_session.commit()
    return vehicle


@pytest.fixture
async def spill_kit_template(db_session):
    """Default template with one critical and two regular items."""
    template = SpillKitTemplate(
        id=uuid.uuid4(),
        name="Standard Truck Kit",
        vehicle_types=["pump_truck", "truck"],
        is_default=True,
        is_active=True,
    )
    template.items = [
        SpillKitTemplateItem(
            id=uuid.uuid4(), item_name="Absorbent pads", required_quantity=20,
            critical_item=True, category="absorbent", expiration_trackable=False, display_order=1,
        ),
        SpillKitTemplateItem(
            id=uuid.uuid4(), item_name="Nitrile gloves", required_quantity=4,
            critical_item=False, category="ppe", expiration_trackable=True, display_order=2,
        ),
        SpillKitTemplateItem(
            id=uuid.uuid4(), item_name="Drain cover", required_quantity=1,
            critical_item=False, category="containment", expiration_trackable=False, display_order=3,
        ),
    ]
    db_session.add(template)
    await db_session.commit()
    return template


@pytest.fixture
def headers_for():
    """Build bearer headers for an arbitrary role and user id."""
    return auth_headers
