# conftest.py
from datetime import date, datetime, time, timedelta, timezone
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from appscope.config import settings
from appscope.db.database import Database, get_database
from appscope.main import app

TODAY = date(2025, 3, 1)


def days_ago(days: int, hour: int = 12, second: int = 0) -> datetime:
    """A UTC timestamp ``days`` before TODAY."""
    return datetime.combine(TODAY - timedelta(days=days), time(hour, 0, second), tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def db(tmp_path):
    database = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'appscope.db'}")
    await database.connect()
    await database.init_db()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def async_client(db):
    app.dependency_overrides[get_database] = lambda: db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def write_headers():
    return {"X-Write-Key": settings.write_key}


@pytest.fixture
def read_headers():
    return {"X-Read-Key": settings.read_key}
