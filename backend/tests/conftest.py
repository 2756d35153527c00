"""
FishLog Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Services, stores and routes are tested against in-memory collaborators
       (no database, object storage or weather API needed).
How:   Environment is set BEFORE any fishlog import: the settings singleton
       and the tenacity retry decorators read it at import time.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── row_store / blob_store: in-memory RowStore / BlobStore fakes
    ├── owner_id / other_owner_id: two principals
    ├── trip / species / lure / groundbait / rod: seeded rows owned by owner_id
    ├── jpeg_bytes: a real (Pillow generated) JPEG photo
    ├── weather_provider: AccuWeatherProvider stand-in with an AsyncMock fetch
    └── test_client: HTTPX AsyncClient wired to the app with the fakes injected
"""

import io
import os
import tempfile
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="fishlog_test_")
os.environ["CURSOR_SECRET"] = "test-cursor-secret"
os.environ["BLOB_SIGNING_SECRET"] = "test-blob-secret"
os.environ["BLOB_BACKEND"] = "local"
os.environ["WEATHER_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MAX_ATTEMPTS"] = "2"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "1"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402

from fakes import InMemoryBlobStore, InMemoryRowStore  # noqa: E402
from fishlog.services.weather_provider import CircuitBreaker  # noqa: E402

TRIP_START = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)
TRIP_END = datetime(2025, 1, 15, 18, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Stores and principals
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def row_store():
    return InMemoryRowStore()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def other_owner_id():
    return uuid4()


# ══════════════════════════════════════════════════════════════════════════
# Seeded rows
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def trip(row_store, owner_id):
    """A closed trip on 2025-01-15, 08:00 to 18:00 UTC, with a location."""
    return row_store.seed(
        "trips",
        user_id=owner_id,
        started_at=TRIP_START,
        ended_at=TRIP_END,
        status="closed",
        location_lat=52.23,
        location_lng=21.01,
        location_label="Vistula, Warsaw",
    )


@pytest.fixture
def species(row_store):
    return row_store.seed("fish_species", name="Pike")


@pytest.fixture
def rod(row_store, owner_id):
    return row_store.seed("rods", user_id=owner_id, name="Shimano Catana 2.7m")


@pytest.fixture
def lure(row_store, owner_id):
    return row_store.seed("lures", user_id=owner_id, name="Rapala Original 9cm")


@pytest.fixture
def groundbait(row_store, owner_id):
    return row_store.seed("groundbaits", user_id=owner_id, name="Sensas 3000 Roach")


@pytest.fixture
def jpeg_bytes():
    """A 640x480 JPEG photo generated with Pillow."""
    image = Image.new("RGB", (640, 480), color=(40, 120, 200))
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


@pytest.fixture
def weather_provider():
    """
    Stand-in for AccuWeatherProvider.

    Usage:
        weather_provider.fetch_hourly.return_value = [WeatherHourInput(...)]
    """
    provider = MagicMock()
    provider.configured = True
    provider.circuit_breaker = CircuitBreaker()
    provider.fetch_hourly = AsyncMock(return_value=[])
    provider.close = AsyncMock()
    return provider


# ══════════════════════════════════════════════════════════════════════════
# API client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(row_store, blob_store, weather_provider, owner_id):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The row store, blob store and weather provider dependencies are replaced
    by the fakes above, and every request carries owner_id in X-User-Id.
    """
    from fishlog.main import app
    from fishlog.routes.deps import get_blob_store, get_row_store, get_weather_provider

    app.dependency_overrides[get_row_store] = lambda: row_store
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_weather_provider] = lambda: weather_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-User-Id": str(owner_id)},
    ) as client:
        yield client

    app.dependency_overrides.clear()
