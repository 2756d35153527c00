"""
FishLog Backend — API Route Integration Tests
===============================================

What:  Tests HTTP endpoints using httpx AsyncClient + ASGITransport.
How:   Services run for real; the row store, blob store and weather provider
       are the in-memory fakes from conftest. No database or network.

What we test:
    ✅ Trip CRUD, close, quick start, includes
    ✅ Error envelope shape, status codes and request_id correlation
    ✅ 401 for missing / malformed X-User-Id
    ✅ Catches, equipment, weather and photo endpoints
    ✅ Equipment catalog and fish species endpoints
    ✅ Local signed-URL file route
    ✅ Health check levels
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import urlparse

import pytest
from httpx import ASGITransport, AsyncClient

from fishlog.main import app
from fishlog.routes.deps import get_blob_store, get_row_store
from fishlog.services.weather_provider import WeatherProviderError
from fishlog.store.local_blob import LocalBlobStore
from conftest import TRIP_END, TRIP_START


class TestTripRoutes:
    """Tests for /api/v1/trips."""

    @pytest.mark.asyncio
    async def test_create_get_list(self, test_client):
        """A created trip can be fetched and appears in the list."""
        created = await test_client.post(
            "/api/v1/trips",
            json={
                "started_at": TRIP_START.isoformat(),
                "location": {"lat": 52.23, "lng": 21.01, "label": "Vistula"},
            },
        )
        assert created.status_code == 201
        trip = created.json()
        assert trip["status"] == "draft"
        assert trip["location"]["label"] == "Vistula"
        assert "user_id" not in trip

        fetched = await test_client.get(f"/api/v1/trips/{trip['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["equipment"] is None

        listed = (await test_client.get("/api/v1/trips", params={"limit": 10})).json()
        assert [item["id"] for item in listed["data"]] == [trip["id"]]
        assert listed["data"][0]["summary"] == {"catch_count": 0}
        assert listed["page"] == {"limit": 10, "next_cursor": None}

    @pytest.mark.asyncio
    async def test_includes_comma_separated(self, test_client, trip, rod, row_store):
        """include=rods,catches fills those collections only."""
        row_store.seed("trip_rods", trip_id=trip["id"], rod_id=rod["id"], rod_name_snapshot="Catana")

        body = (await test_client.get(f"/api/v1/trips/{trip['id']}", params={"include": "rods,catches"})).json()

        assert body["equipment"]["rods"] == [{"id": str(rod["id"]), "name_snapshot": "Catana"}]
        assert body["catches"] == []
        assert body["weather_current"] is None

    @pytest.mark.asyncio
    async def test_unknown_include_is_400(self, test_client, trip):
        """Unsupported includes are rejected with the error envelope."""
        response = await test_client.get(f"/api/v1/trips/{trip['id']}", params={"include": "photos"})

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "include"

    @pytest.mark.asyncio
    async def test_closed_without_end_envelope(self, test_client):
        """Invariant violations return 400 with code, message, details and request_id."""
        response = await test_client.post(
            "/api/v1/trips",
            json={"started_at": TRIP_START.isoformat(), "status": "closed"},
            headers={"X-Request-ID": "rid-closed-1"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == {
            "code": "validation_error",
            "message": "A closed trip requires ended_at",
            "http_status": 400,
            "details": {"field": "ended_at"},
        }
        assert body["request_id"] == "rid-closed-1"
        assert response.headers["X-Request-ID"] == "rid-closed-1"

    @pytest.mark.asyncio
    async def test_request_validation_is_400(self, test_client):
        """Malformed bodies use the same envelope with status 400."""
        response = await test_client.post("/api/v1/trips", json={"status": "draft"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert error["details"]["field"] == "started_at"

    @pytest.mark.asyncio
    async def test_patch_close_delete(self, test_client, trip):
        """PATCH merges, close is idempotent, DELETE hides the trip."""
        trip_url = f"/api/v1/trips/{trip['id']}"

        patched = await test_client.patch(trip_url, json={"status": "active"})
        assert patched.json()["status"] == "active"

        close_body = {"ended_at": (TRIP_END + timedelta(hours=1)).isoformat()}
        assert (await test_client.post(f"{trip_url}/close", json=close_body)).status_code == 200
        assert (await test_client.post(f"{trip_url}/close", json=close_body)).json()["status"] == "closed"

        assert (await test_client.delete(trip_url)).status_code == 204
        missing = await test_client.get(trip_url)
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_quick_start(self, test_client):
        """quick-start returns the trip and the copied equipment ids."""
        response = await test_client.post("/api/v1/trips/quick-start", json={"copy_equipment": True})

        assert response.status_code == 201
        body = response.json()
        assert body["trip"]["status"] == "active"
        assert body["copied_equipment"] == {"rod_ids": [], "lure_ids": [], "groundbait_ids": []}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["", "not-a-uuid"])
    async def test_missing_user_is_401(self, test_client, header):
        """Requests without a valid X-User-Id are rejected."""
        response = await test_client.get("/api/v1/trips", headers={"X-User-Id": header})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_other_users_trip_is_404(self, test_client, row_store, other_owner_id):
        """Another owner's trip looks missing."""
        foreign = row_store.seed("trips", user_id=other_owner_id, started_at=TRIP_START)
        response = await test_client.get(f"/api/v1/trips/{foreign['id']}")
        assert response.status_code == 404


class TestCatchAndEquipmentRoutes:
    """Tests for catch and equipment endpoints."""

    @pytest.mark.asyncio
    async def test_catch_lifecycle(self, test_client, trip, species, lure):
        """Create, list, patch and delete a catch."""
        created = await test_client.post(
            f"/api/v1/trips/{trip['id']}/catches",
            json={
                "caught_at": (TRIP_START + timedelta(hours=1)).isoformat(),
                "species_id": str(species["id"]),
                "lure_id": str(lure["id"]),
                "weight_g": 3200,
            },
        )
        assert created.status_code == 201
        catch = created.json()
        assert catch["lure_name_snapshot"] == "Rapala Original 9cm"

        listed = (await test_client.get(f"/api/v1/trips/{trip['id']}/catches")).json()
        assert [item["id"] for item in listed["data"]] == [catch["id"]]

        patched = await test_client.patch(f"/api/v1/catches/{catch['id']}", json={"length_mm": 780})
        assert patched.json()["length_mm"] == 780

        assert (await test_client.delete(f"/api/v1/catches/{catch['id']}")).status_code == 204
        assert (await test_client.get(f"/api/v1/catches/{catch['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_catch_before_trip_is_400(self, test_client, trip, species):
        """A catch before started_at names caught_at in details."""
        response = await test_client.post(
            f"/api/v1/trips/{trip['id']}/catches",
            json={"caught_at": (TRIP_START - timedelta(hours=1)).isoformat(), "species_id": str(species["id"])},
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "caught_at"}

    @pytest.mark.asyncio
    async def test_replace_add_remove_equipment(self, test_client, trip, rod, lure):
        """PUT reconciles, POST adds (409 on duplicates), DELETE removes."""
        base = f"/api/v1/trips/{trip['id']}/equipment"

        replaced = await test_client.put(f"{base}/lures", json={"equipment_ids": [str(lure["id"])]})
        assert replaced.status_code == 200
        assert [item["equipment_id"] for item in replaced.json()["data"]] == [str(lure["id"])]

        added = await test_client.post(f"{base}/rods", json={"equipment_id": str(rod["id"])})
        assert added.status_code == 201
        duplicate = await test_client.post(f"{base}/rods", json={"equipment_id": str(rod["id"])})
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "conflict"

        removed = await test_client.delete(f"{base}/rods/{added.json()['id']}")
        assert removed.status_code == 204
        assert (await test_client.get(f"{base}/rods")).json() == {"data": []}

    @pytest.mark.asyncio
    async def test_foreign_equipment_is_409(self, test_client, trip, row_store, other_owner_id):
        """Assigning someone else's groundbait is equipment_owner_mismatch."""
        foreign = row_store.seed("groundbaits", user_id=other_owner_id, name="Theirs")
        response = await test_client.put(
            f"/api/v1/trips/{trip['id']}/equipment/groundbaits",
            json={"equipment_ids": [str(foreign["id"])]},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "equipment_owner_mismatch"

    @pytest.mark.asyncio
    async def test_unknown_kind_is_400(self, test_client, trip):
        """Only rods, lures and groundbaits are valid path kinds."""
        response = await test_client.get(f"/api/v1/trips/{trip['id']}/equipment/reels")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_last_used_equipment(self, test_client, trip, rod, row_store):
        """The most recent trip's equipment is returned."""
        row_store.seed("trip_rods", trip_id=trip["id"], rod_id=rod["id"], rod_name_snapshot="Catana")

        body = (await test_client.get("/api/v1/me/last-used-equipment")).json()

        assert body["source_trip_id"] == str(trip["id"])
        assert body["rods"] == [{"id": str(rod["id"]), "name_snapshot": "Catana"}]


class TestEquipmentCatalogRoutes:
    """Tests for /api/v1/{rods,lures,groundbaits} and /api/v1/fish-species."""

    @pytest.mark.asyncio
    async def test_groundbait_lifecycle(self, test_client):
        """Create, rename, list, soft delete; the owner id is never exposed."""
        created = await test_client.post("/api/v1/groundbaits", json={"name": "  Sensas Carp  "})
        assert created.status_code == 201
        body = created.json()
        assert body["name"] == "Sensas Carp"
        assert "user_id" not in body

        renamed = await test_client.patch(f"/api/v1/groundbaits/{body['id']}", json={"name": "Sensas Big Carp"})
        assert renamed.json()["name"] == "Sensas Big Carp"

        listed = (await test_client.get("/api/v1/groundbaits", params={"q": "big"})).json()
        assert [item["id"] for item in listed["data"]] == [body["id"]]

        assert (await test_client.delete(f"/api/v1/groundbaits/{body['id']}")).status_code == 204
        assert (await test_client.delete(f"/api/v1/groundbaits/{body['id']}")).status_code == 404
        assert (await test_client.get("/api/v1/groundbaits")).json()["data"] == []

    @pytest.mark.asyncio
    async def test_duplicate_rod_name_is_409(self, test_client, rod):
        response = await test_client.post("/api/v1/rods", json={"name": rod["name"]})

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Rod with this name already exists"

    @pytest.mark.asyncio
    async def test_blank_name_is_400(self, test_client):
        assert (await test_client.post("/api/v1/lures", json={"name": "   "})).status_code == 400

    @pytest.mark.asyncio
    async def test_other_owners_lure_is_404(self, test_client, row_store, other_owner_id):
        foreign = row_store.seed("lures", user_id=other_owner_id, name="Theirs")
        response = await test_client.get(f"/api/v1/lures/{foreign['id']}")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Lure not found"

    @pytest.mark.asyncio
    async def test_trip_routes_not_shadowed(self, test_client, trip):
        """Per-kind paths leave /api/v1/trips alone."""
        response = await test_client.get("/api/v1/trips")
        assert [item["id"] for item in response.json()["data"]] == [str(trip["id"])]

    @pytest.mark.asyncio
    async def test_fish_species(self, test_client, species, row_store):
        row_store.seed("fish_species", name="Perch")

        listed = (await test_client.get("/api/v1/fish-species")).json()
        assert [item["name"] for item in listed["data"]] == ["Perch", "Pike"]

        detail = await test_client.get(f"/api/v1/fish-species/{species['id']}")
        assert detail.json()["name"] == "Pike"


class TestWeatherRoutes:
    """Tests for weather endpoints."""

    @pytest.mark.asyncio
    async def test_manual_then_current(self, test_client, trip):
        """A manual snapshot becomes the current weather."""
        created = await test_client.post(
            f"/api/v1/trips/{trip['id']}/weather/manual",
            json={
                "period_start": TRIP_START.isoformat(),
                "period_end": TRIP_END.isoformat(),
                "hours": [{"observed_at": (TRIP_START + timedelta(hours=1)).isoformat(), "temperature_c": 3.5}],
            },
        )
        assert created.status_code == 201
        snapshot_id = created.json()["snapshot"]["id"]

        current = (await test_client.get(f"/api/v1/trips/{trip['id']}/weather/current")).json()
        assert current["snapshot"]["id"] == snapshot_id
        assert current["hours"][0]["temperature_c"] == 3.5

        detail = await test_client.get(f"/api/v1/weather/snapshots/{snapshot_id}")
        assert detail.json()["hours"] is None
        assert (await test_client.delete(f"/api/v1/weather/snapshots/{snapshot_id}")).status_code == 204

    @pytest.mark.asyncio
    async def test_refresh_provider_failure_is_502(self, test_client, trip, weather_provider):
        """Provider errors surface as 502 with a generic message."""
        weather_provider.fetch_hourly.side_effect = WeatherProviderError("rate_limited", "429 from provider", 429)

        response = await test_client.post(
            f"/api/v1/trips/{trip['id']}/weather/refresh",
            json={"period_start": TRIP_START.isoformat(), "period_end": TRIP_END.isoformat(), "force": True},
        )

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "bad_gateway"
        assert "429" not in error["message"]
        assert "details" not in error

    @pytest.mark.asyncio
    async def test_no_weather_is_404(self, test_client, trip):
        """A trip without snapshots has no current weather."""
        response = await test_client.get(f"/api/v1/trips/{trip['id']}/weather/current")
        assert response.status_code == 404


class TestPhotoRoutes:
    """Tests for /api/v1/catches/{catch_id}/photo."""

    @pytest.fixture
    def catch(self, row_store, trip, species):
        return row_store.seed("catches", trip_id=trip["id"], caught_at=TRIP_START, species_id=species["id"])

    @pytest.mark.asyncio
    async def test_multipart_upload_and_download_url(self, test_client, catch, blob_store, owner_id, jpeg_bytes):
        """A multipart JPEG is stored as WebP and can be downloaded via a signed URL."""
        response = await test_client.post(
            f"/api/v1/catches/{catch['id']}/photo",
            files={"file": ("pike.jpg", jpeg_bytes, "image/jpeg")},
        )

        assert response.status_code == 201
        path = f"{owner_id}/{catch['id']}.webp"
        assert response.json()["photo_path"] == path
        assert path in blob_store.objects

        url = (await test_client.get(f"/api/v1/catches/{catch['id']}/photo/download-url")).json()["url"]
        assert url.startswith(f"memory://download/{path}")

        assert (await test_client.delete(f"/api/v1/catches/{catch['id']}/photo")).status_code == 204
        assert path not in blob_store.objects

    @pytest.mark.asyncio
    async def test_garbage_upload_is_400(self, test_client, catch):
        """Bytes that are not an image are rejected."""
        response = await test_client.post(
            f"/api/v1/catches/{catch['id']}/photo",
            files={"file": ("pike.jpg", b"definitely not a jpeg", "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid image data"

    @pytest.mark.asyncio
    async def test_direct_upload_flow(self, test_client, catch, blob_store, owner_id):
        """upload-url, then the client uploads, then commit links the path."""
        signed = (
            await test_client.post(f"/api/v1/catches/{catch['id']}/photo/upload-url", json={"extension": "png"})
        ).json()
        blob_store.objects[signed["path"]] = (b"png", "image/png")

        committed = await test_client.post(
            f"/api/v1/catches/{catch['id']}/photo/commit", json={"photo_path": signed["path"]}
        )

        assert committed.status_code == 200
        assert committed.json()["photo_path"] == f"{owner_id}/{catch['id']}.png"


class TestFileRoute:
    """Tests for /api/v1/files with the local blob backend."""

    @pytest.fixture
    def local_store(self, tmp_path):
        store = LocalBlobStore(root=str(tmp_path), bucket="photos", signing_secret="s", public_base_url="http://test")
        app.dependency_overrides[get_blob_store] = lambda: store
        return store

    @pytest.mark.asyncio
    async def test_signed_upload_then_download(self, test_client, local_store):
        """PUT with an upload token stores bytes; GET with a download token serves them."""
        upload_url = urlparse(await local_store.create_signed_upload_url("o/a.webp", 60))
        put = await test_client.put(f"{upload_url.path}?{upload_url.query}", content=b"webp-bytes")
        assert put.status_code == 200
        assert put.json() == {"path": "o/a.webp", "size_bytes": 10}

        download_url = urlparse(await local_store.create_signed_url("o/a.webp", 60))
        got = await test_client.get(f"{download_url.path}?{download_url.query}")
        assert got.status_code == 200
        assert got.content == b"webp-bytes"
        assert got.headers["content-type"] == "image/webp"

    @pytest.mark.asyncio
    async def test_wrong_mode_token_is_404(self, test_client, local_store):
        """A download token cannot be used to upload."""
        download_url = urlparse(await local_store.create_signed_url("o/a.webp", 60))
        response = await test_client.put(f"{download_url.path}?{download_url.query}", content=b"x")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_non_local_backend_is_404(self, test_client):
        """With a non-local blob store the route serves nothing."""
        response = await test_client.get("/api/v1/files/o/a.webp", params={"expires": 1, "token": "t"})
        assert response.status_code == 404


class TestHealthAndUnexpectedErrors:
    """Tests for /health and the catch-all error handler."""

    @pytest.mark.asyncio
    async def test_health_healthy(self, test_client):
        """Reachable database and configured provider → healthy."""
        engine = MagicMock()
        engine.connect.return_value.__aenter__.return_value.execute = AsyncMock()

        with patch("fishlog.routes.health.engine", engine):
            response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["weather_provider"] == "available"

    @pytest.mark.asyncio
    async def test_health_database_down(self, test_client):
        """An unreachable database → 503 unhealthy."""
        engine = MagicMock()
        engine.connect.side_effect = OSError("connection refused")

        with patch("fishlog.routes.health.engine", engine):
            response = await test_client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500_envelope(self, row_store, owner_id):
        """Non-domain exceptions become internal_error without leaking the message."""
        row_store.fetch = AsyncMock(side_effect=RuntimeError("secret connection string"))
        app.dependency_overrides[get_row_store] = lambda: row_store
        try:
            transport = ASGITransport(app=app, raise_app_exceptions=False)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/api/v1/trips", headers={"X-User-Id": str(owner_id)})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "internal_error"
        assert "secret" not in error["message"]
