import os
import tempfile

# Must be set before config is imported
_DB_DIR = tempfile.mkdtemp(prefix="studio-booking-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
import structlog  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from database import drop_db, engine, init_db  # noqa: E402
from main import app  # noqa: E402

# capture_logs needs loggers that are not cached
structlog.configure(cache_logger_on_first_use=False)


@pytest_asyncio.fixture
async def client():
    """HTTP client against the app with a fresh schema per test."""
    await init_db()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await drop_db()
    await engine.dispose()


@pytest_asyncio.fixture
async def studio(client):
    response = await client.post(
        "/studios",
        json={"name": "Studio A", "hourlyRate": 50, "openingHour": 9, "closingHour": 22},
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def customer(client):
    response = await client.post(
        "/users",
        json={"firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.com"},
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def engineer(client):
    response = await client.post(
        "/users",
        json={
            "firstName": "Rupert",
            "lastName": "Neve",
            "email": "rupert@example.com",
            "userType": "staff",
        },
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def book(client, studio, customer):
    """Factory posting a booking for the default studio and customer."""

    async def _book(start, end, **extra):
        payload = {
            "studioId": studio["id"],
            "clientId": customer["id"],
            "startTime": start,
            "endTime": end,
        }
        payload.update(extra)
        return await client.post("/bookings", json=payload)

    return _book
