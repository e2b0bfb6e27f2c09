import pytest
from fastapi.testclient import TestClient

from docflow.api.deps import get_intake
from docflow.main import app
from docflow.pipeline.intake import TriggerIntake


@pytest.fixture
def client(config, store, router, alerts):
    app.dependency_overrides[get_intake] = lambda: TriggerIntake(config, store, router, alerts)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_object_created_dispatches_workflow(client, store, transport):
    store.put("input/claim1.txt", "hello", metadata={"reference_id": "ref-1", "workflow_steps": "translation,pii"})

    response = client.post(
        "/api/v1/events/object-created",
        json={"event_type": "Microsoft.Storage.BlobCreated", "url": "https://acct.blob.core.windows.net/input/claim1.txt"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "status": "dispatched",
        "reference_id": "ref-1",
        "current_step": "translation",
        "reason": None,
    }
    assert transport.dispatched[0].queue == "translation-in"


def test_object_created_rejects_missing_reference(client, store, transport):
    store.put("input/claim1.txt", "hello", metadata={"workflow_steps": "pii"})

    response = client.post(
        "/api/v1/events/object-created",
        json={"event_type": "BlobCreated", "url": "input/claim1.txt"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert transport.alerts[0]["error"] == "missing correlation id"


def test_storage_outage_is_service_unavailable(client, store):
    store.put("input/claim1.txt", "hello")
    store.unavailable = True

    response = client.post(
        "/api/v1/events/object-created",
        json={"event_type": "BlobCreated", "url": "input/claim1.txt", "metadata": {"reference_id": "ref-1"}},
    )

    assert response.status_code == 503


def test_invalid_body_is_unprocessable(client):
    response = client.post("/api/v1/events/object-created", json={"url": "input/claim1.txt"})
    assert response.status_code == 422


def test_s3_notification_handles_each_record(client, store, transport):
    store.put("input/a.pdf", b"%PDF", metadata={"reference_id": "ref-a", "workflow_steps": "documentanalysis"})
    body = {
        "EventName": "s3:ObjectCreated:Put",
        "Records": [
            {"eventName": "s3:ObjectCreated:Put", "s3": {"bucket": {"name": "input"}, "object": {"key": "a.pdf"}}},
            {"eventName": "s3:ObjectCreated:Put", "s3": {"bucket": {"name": "output"}, "object": {"key": "b.json"}}},
        ],
    }

    response = client.post("/api/v1/events/s3", json=body)

    assert response.status_code == 200
    assert [item["status"] for item in response.json()] == ["dispatched", "ignored"]
    assert [m.queue for m in transport.dispatched] == ["documentanalysis-in"]
