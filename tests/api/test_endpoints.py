"""
API endpoint tests
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from core.database import create_engine, create_session_factory, create_tables
from ingestion.runtime import PipelineRuntime
from ingestion.storage import LocalBlobStore
from models.property import PropertyEvaluation


async def prepare_database(engine):
    await create_tables(engine)
    async with create_session_factory(engine)() as session:
        session.add_all([
            PropertyEvaluation(matricule="M-001", unit_count=6, latitude=45.52, longitude=-73.58),
            PropertyEvaluation(matricule="M-002", unit_count=8, latitude=45.53, longitude=-73.57),
        ])
        await session.commit()


@pytest.fixture
def client(tmp_path):
    """Test client around an app with a SQLite-backed runtime"""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", echo=False)
    asyncio.run(prepare_database(engine))

    runtime = PipelineRuntime(
        engine=engine,
        session_factory=create_session_factory(engine),
        artifact_store=LocalBlobStore(str(tmp_path / "raw")),
    )

    with TestClient(create_app(runtime=runtime)) as test_client:
        yield test_client

    asyncio.run(engine.dispose())


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["zones"] == "/api/v1/zones"


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database_connected"] is True
    assert data["raw_storage_writable"] is True
    assert data["pending_items"] == 0


def test_request_id_headers(client):
    response = client.get("/health", headers={"X-Request-ID": "req_fromclient"})

    assert response.headers["X-Request-ID"] == "req_fromclient"
    assert int(response.headers["X-API-Latency-ms"]) >= 0

    generated = client.get("/health")
    assert generated.headers["X-Request-ID"].startswith("req_")


# ============================================================================
# Listing pipeline
# ============================================================================

def test_capture_transform_lifecycle(client, facebook_wrapped_payload):
    captured = client.post("/api/v1/facebook/capture", json=facebook_wrapped_payload)
    assert captured.status_code == 200
    assert captured.json()["already_captured"] is False
    assert captured.json()["storage_path"].endswith("/1234567890.json")

    again = client.post("/api/v1/facebook/capture", json=facebook_wrapped_payload)
    assert again.json()["already_captured"] is True

    transformed = client.post("/api/v1/facebook/transform", json={"source_item_id": "1234567890"})
    assert transformed.status_code == 200
    body = transformed.json()
    assert body["status"] == "success"
    assert body["canonical"]["facebook_id"] == "1234567890"
    assert body["canonical"]["bedrooms"] == 2

    repeated = client.post("/api/v1/facebook/transform", json={"source_item_id": "1234567890"})
    assert repeated.status_code == 409
    assert repeated.json()["kind"] == "conflict"

    forced = client.post("/api/v1/facebook/transform", json={"source_item_id": "1234567890", "force": True})
    assert forced.status_code == 200
    assert forced.json()["canonical"]["id"] == body["canonical"]["id"]

    metadata = client.get("/api/v1/facebook/metadata/1234567890")
    assert metadata.status_code == 200
    assert metadata.json()["transform_status"] == "success"
    assert metadata.json()["transform_attempts"] == 2
    assert metadata.json()["source"] == "facebook"


def test_transform_validation_failure(client, facebook_wrapped_payload):
    facebook_wrapped_payload["raw_data"]["title"] = "   "
    client.post("/api/v1/facebook/capture", json=facebook_wrapped_payload)

    response = client.post("/api/v1/facebook/transform", json={"source_item_id": "1234567890"})

    assert response.status_code == 422
    body = response.json()
    assert body["status"] == "failed"
    assert body["kind"] == "validation_error"
    assert body["details"] == ["Missing required field: title"]


def test_transform_unknown_item(client):
    response = client.post("/api/v1/centris/transform", json={"source_item_id": "404"})

    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_transform_requires_item_id(client):
    response = client.post("/api/v1/facebook/transform", json={"source_item_id": "  "})

    assert response.status_code == 422


def test_malformed_capture(client):
    response = client.post("/api/v1/centris/capture", json={"raw_data": {}})

    assert response.status_code == 422
    assert response.json()["kind"] == "capture_error"


def test_unknown_source(client):
    response = client.post("/api/v1/craigslist/transform", json={"source_item_id": "1"})

    assert response.status_code == 422


def test_metadata_not_found(client):
    response = client.get("/api/v1/facebook/metadata/missing")

    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_backfill_endpoint(client, centris_payload):
    client.post("/api/v1/centris/capture", json=centris_payload)

    response = client.post("/api/v1/centris/backfill", json={"limit": 10})

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "centris"
    assert data["total"] == 1
    assert data["succeeded"] == 1

    empty = client.post("/api/v1/centris/backfill")
    assert empty.json()["total"] == 0


def test_stats_endpoint(client, centris_payload):
    client.post("/api/v1/centris/capture", json=centris_payload)
    client.post("/api/v1/centris/transform", json={"source_item_id": "28374651"})

    response = client.get("/stats", headers={"X-Request-ID": "req_stats"})

    assert response.status_code == 200
    data = response.json()
    assert data["total_items"] == 1
    assert data["total_rentals"] == 1
    assert data["geocoded_rentals"] == 1
    assert data["transform_status_by_source"] == {"centris": {"success": 1}}
    assert data["request_id"] == "req_stats"


# ============================================================================
# Zones
# ============================================================================

ZONE = {"name": "Plateau", "min_lat": 45.51, "max_lat": 45.54, "min_lng": -73.60, "max_lng": -73.56}


def test_zone_lifecycle(client):
    created = client.post("/api/v1/zones", json=ZONE)
    assert created.status_code == 201
    zone = created.json()
    assert zone["total_properties"] == 2
    assert zone["scraped_count"] == 0

    assert [z["name"] for z in client.get("/api/v1/zones").json()] == ["Plateau"]

    stats = client.get(f"/api/v1/zones/{zone['id']}/stats").json()
    assert stats["unscraped"] == 2
    assert stats["percentage_complete"] == 0.0

    job = client.post(f"/api/v1/zones/{zone['id']}/jobs", json={"limit": 1})
    assert job.status_code == 201
    assert job.json()["item_keys"] == ["M-001"]
    assert job.json()["status"] == "pending"

    jobs = client.get(f"/api/v1/zones/{zone['id']}/jobs").json()
    assert len(jobs) == 1

    cancelled = client.post(f"/api/v1/zones/jobs/{job.json()['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = client.post(f"/api/v1/zones/jobs/{job.json()['id']}/cancel")
    assert again.status_code == 409


def test_zone_already_complete(client):
    zone = client.post("/api/v1/zones", json={**ZONE, "min_lat": 10.0, "max_lat": 11.0}).json()

    response = client.post(f"/api/v1/zones/{zone['id']}/jobs", json={"limit": 5})

    assert response.status_code == 200
    assert response.json()["already_complete"] is True
    assert response.json()["stats"]["total"] == 0


def test_zone_validation_and_conflicts(client):
    inverted = client.post("/api/v1/zones", json={**ZONE, "min_lat": 45.6})
    assert inverted.status_code == 422

    client.post("/api/v1/zones", json=ZONE)
    duplicate = client.post("/api/v1/zones", json=ZONE)
    assert duplicate.status_code == 409

    assert client.get("/api/v1/zones/999").status_code == 404
