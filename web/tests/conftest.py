# Environment must be in place before the application modules are imported
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="tourbook-tests-")
os.environ.setdefault("DB_DSN", f"sqlite+aiosqlite:///{_TMP_DIR}/app.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("RATE_LIMIT_DEFAULT", "10000/minute")
os.environ.setdefault("REDIS_DSN", "redis://localhost:6399/0")

# Imports for testing tools
import pytest
import httpx

# Import your application code
from tourbook.main import app
from tourbook.infrastructure.database import build_engine, build_session_factory, get_session
from tourbook.infrastructure.redis_client import set_redis
from tourbook.models import Activity, Base
from tourbook.security import create_token


# --- Redis double ---
class FakeRedis:
    """In-memory stand-in for the few Redis commands the app issues"""

    def __init__(self):
        self.store = {}
        self.published = []

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, *keys):
        return sum(1 for k in keys if self.store.pop(k, None) is not None)

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    async def ping(self):
        return True

    async def aclose(self):
        return None


@pytest.fixture(autouse=True)
def fake_redis():
    """Replaces the shared Redis client for every test."""
    client = FakeRedis()
    set_redis(client)
    yield client
    set_redis(None)


# --- Test Database Setup ---
@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path}/tourbook.db")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# --- Catalogue fixtures ---
async def add_activity(session, **overrides) -> Activity:
    """Insert and commit an activity with sensible defaults."""
    data = {
        "slug": "city-tour",
        "name": "City Tour",
        "price": 100,
        "currency": "TRY",
        "default_times": [],
        "default_capacity": 10,
        "default_weekdays": [],
    }
    data.update(overrides)
    activity = Activity(**data)
    session.add(activity)
    await session.commit()
    return activity


@pytest.fixture
async def city_tour(session):
    return await add_activity(session)


# --- Auth fixtures ---
@pytest.fixture
def operator_headers():
    """Authorization header carrying an operator token."""
    return {"Authorization": f"Bearer {create_token('1', 'operator')}"}


# --- API Test Client Fixture ---
@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app, using the per-test database."""
    async def override_get_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c

    # Clean up overrides
    app.dependency_overrides.clear()
