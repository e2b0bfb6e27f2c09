from dataclasses import replace

import pytest

from docflow.core.constants import IntakeStatus
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.errors import StorageError
from docflow.pipeline.intake import ObjectCreatedNotification, TriggerIntake


@pytest.fixture
def intake(config, store, router, alerts):
    return TriggerIntake(config, store, router, alerts)


def _created(url="https://account.blob.core.windows.net/input/claim1.txt", **metadata):
    return ObjectCreatedNotification("Microsoft.Storage.BlobCreated", url, metadata)


@pytest.mark.asyncio
async def test_created_object_starts_workflow(intake, store, transport):
    store.put("input/claim1.txt", "bonjour", metadata={"reference_id": "ref-1", "workflow_steps": "translation, PII"})

    result = await intake.handle(_created())

    assert result.status == IntakeStatus.DISPATCHED
    [message] = transport.dispatched
    assert message.queue == "translation-in"
    env = WorkflowEnvelope.from_json(message.payload)
    assert env.reference_id == "ref-1"
    assert env.blob_path == "input/claim1.txt"
    assert env.current_step == "translation"
    assert env.remaining_steps == ("pii",)
    assert env.metadata["Reference_ID"] == "ref-1"
    assert result.to_dict()["current_step"] == "translation"


@pytest.mark.asyncio
async def test_replayed_notification_dispatches_equivalent_envelopes(intake, store, transport):
    store.put("input/claim1.txt", "bonjour", metadata={"reference_id": "ref-1", "workflow_steps": "translation,pii"})

    first = await intake.handle(_created(department="claims"))
    second = await intake.handle(_created(department="claims"))

    assert first.status == second.status == IntakeStatus.DISPATCHED
    assert [m.queue for m in transport.dispatched] == ["translation-in", "translation-in"]
    envelopes = [WorkflowEnvelope.from_json(m.payload) for m in transport.dispatched]
    assert envelopes[0].to_dict() == envelopes[1].to_dict()
    assert transport.dispatched[0].payload == transport.dispatched[1].payload


@pytest.mark.asyncio
async def test_object_metadata_wins_over_tags_and_event(intake, store, transport):
    store.put(
        "input/claim1.txt",
        "x",
        metadata={"workflow_steps": "pii"},
        tags={"reference_id": "from-tag", "workflow_steps": "translation"},
    )

    result = await intake.handle(_created(reference_id="from-event", department="claims"))

    assert result.status == IntakeStatus.DISPATCHED
    env = result.envelope
    assert env.reference_id == "from-tag"
    assert env.current_step == "pii"
    assert env.metadata["department"] == "claims"


@pytest.mark.asyncio
async def test_missing_reference_is_rejected_with_alert(intake, store, transport):
    store.put("input/claim1.txt", "x", metadata={"workflow_steps": "pii"})

    result = await intake.handle(_created())

    assert result.status == IntakeStatus.REJECTED
    assert transport.dispatched == []
    [alert] = transport.alerts
    assert alert["reference_id"] == "unknown"
    assert alert["blob_path"] == "input/claim1.txt"
    assert alert["error"] == "missing correlation id"


@pytest.mark.asyncio
async def test_missing_steps_without_default_is_rejected(intake, store, transport):
    store.put("input/claim1.txt", "x", metadata={"reference_id": "ref-2", "workflow_steps": " , "})

    result = await intake.handle(_created())

    assert result.status == IntakeStatus.REJECTED
    [alert] = transport.alerts
    assert alert["reference_id"] == "ref-2"
    assert alert["error"] == "workflow steps missing"


@pytest.mark.asyncio
async def test_default_steps_apply_when_metadata_has_none(config, store, router, alerts, transport):
    intake = TriggerIntake(replace(config, default_steps=("documentanalysis", "pii")), store, router, alerts)
    store.put("input/scan.pdf", b"%PDF-1.4", metadata={"reference_id": "ref-3"})

    result = await intake.handle(_created("input/scan.pdf"))

    assert result.status == IntakeStatus.DISPATCHED
    assert transport.dispatched[0].queue == "documentanalysis-in"


@pytest.mark.asyncio
async def test_unknown_first_step_is_rejected(intake, store, transport):
    store.put("input/claim1.txt", "x", metadata={"reference_id": "ref-4", "workflow_steps": "foo,pii"})

    result = await intake.handle(_created())

    assert result.status == IntakeStatus.REJECTED
    assert transport.dispatched == []
    assert "no queue configured" in transport.alerts[0]["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "notification",
    [
        ObjectCreatedNotification("Microsoft.Storage.BlobDeleted", "input/claim1.txt"),
        ObjectCreatedNotification("Microsoft.Storage.BlobCreated", "output/translation/claim1.txt_translated.json"),
        ObjectCreatedNotification("s3:ObjectCreated:Put", "input/"),
    ],
)
async def test_irrelevant_events_are_ignored(intake, transport, notification):
    result = await intake.handle(notification)

    assert result.status == IntakeStatus.IGNORED
    assert transport.sent == []


@pytest.mark.asyncio
async def test_metadata_read_failure_alerts_and_raises(intake, store, transport):
    store.put("input/claim1.txt", "x")
    store.unavailable = True

    with pytest.raises(StorageError):
        await intake.handle(_created(reference_id="ref-5"))

    [alert] = transport.alerts
    assert alert["reference_id"] == "ref-5"
    assert transport.dispatched == []


def test_s3_records_are_parsed():
    body = {
        "Records": [
            {
                "eventName": "s3:ObjectCreated:Put",
                "s3": {
                    "bucket": {"name": "input"},
                    "object": {
                        "key": "claims/claim+1%C3%A9.txt",
                        "userMetadata": {"X-Amz-Meta-Reference_id": "ref-6", "content-type": "text/plain"},
                    },
                },
            },
            {"eventName": "ObjectRemoved:Delete", "s3": {"bucket": {"name": "input"}, "object": {"key": "a.txt"}}},
        ]
    }

    created, removed = list(ObjectCreatedNotification.from_s3_records(body))

    assert created.is_created
    assert created.blob_path == "input/claims/claim 1é.txt"
    assert created.metadata == {"Reference_id": "ref-6", "content-type": "text/plain"}
    assert removed.event_type == "s3:ObjectRemoved:Delete"
    assert not removed.is_created


def test_blob_path_from_url_is_unquoted():
    notification = _created("https://host/input/my%20claim.txt?sv=1")
    assert notification.blob_path == "input/my claim.txt"
