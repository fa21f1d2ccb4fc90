import pytest
from fastapi.testclient import TestClient

from docker_collector.api import create_app
from docker_collector.config import settings
from docker_collector.models import CollectorItem, CollectorRecord


@pytest.fixture
def api(document_store):
    return TestClient(create_app(document_store))


def test_health(api):
    response = api.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_collector_status(api, document_store):
    collector_id = document_store.insert_collector(CollectorRecord(name=settings.collector_name))
    document_store.update_collector_summary(collector_id, 1.25, 9, [])

    body = api.get("/api/v1/collector").json()

    assert body["id"] == collector_id
    assert body["lastExecutionRecordCount"] == 9
    assert body["lastExecutedSeconds"] == 1.25


def test_collector_status_unregistered(api):
    assert api.get("/api/v1/collector", params={"name": "nobody"}).status_code == 404


def test_targets(api, document_store):
    document_store.save_collector_item(CollectorItem(id="a", options={"host": "tcp://a:2375", "apiVersion": "1.41"}))

    assert [t["id"] for t in api.get("/api/v1/targets").json()] == ["a"]
    assert api.get("/api/v1/targets/a").json()["options"]["host"] == "tcp://a:2375"
    assert api.get("/api/v1/targets/missing").status_code == 404


def test_inventory_listing_and_filter(api, document_store):
    document_store.upsert_containers([
        {"Id": "c1", "collectorItemId": "a"},
        {"Id": "c2", "collectorItemId": "b"},
    ])

    assert len(api.get("/api/v1/inventory/containers").json()) == 2
    assert [d["Id"] for d in api.get("/api/v1/inventory/containers", params={"target": "b"}).json()] == ["c2"]
    assert api.get("/api/v1/inventory/collectors").status_code == 404


def test_inventory_counts(api, document_store):
    document_store.upsert_networks([{"Id": "n1"}])

    counts = api.get("/api/v1/inventory").json()

    assert counts["networks"] == 1
    assert counts["containers"] == 0


def test_collector_by_id(api, document_store):
    collector_id = document_store.insert_collector(CollectorRecord(name="Other"))

    assert api.get(f"/api/v1/collectors/{collector_id}").json()["name"] == "Other"
    assert api.get("/api/v1/collectors/missing").status_code == 404
