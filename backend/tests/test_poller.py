import json
from unittest.mock import AsyncMock

import pytest

from docflow.capabilities.document_analysis import OperationStatus
from docflow.core.constants import PollOutcome
from docflow.pipeline.envelope import AsyncOperationHandle, WorkflowEnvelope
from docflow.pipeline.errors import CapabilityError
from docflow.pipeline.poller import AsyncOperationPoller


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def poller(config, client, store, transport, controller, alerts):
    return AsyncOperationPoller(config, client, store, transport, controller, alerts)


def _handle_message(steps="documentanalysis,pii"):
    env = WorkflowEnvelope.start("ref", "input/scan.pdf", steps)
    return AsyncOperationHandle("documentModels/prebuilt-layout/analyzeResults/op-1", "input/scan.pdf", env).to_json()


@pytest.mark.asyncio
async def test_running_operation_is_requeued_unchanged(poller, client, transport):
    client.get_status.return_value = OperationStatus(done=False)
    message = _handle_message()

    assert await poller.poll(message) == PollOutcome.PENDING

    [resent] = transport.sent
    assert resent.payload == message
    assert resent.queue == "documentanalysis-operations"
    assert resent.task_name == "docflow.operations.poll"
    assert resent.delay_seconds == 30
    client.get_status.assert_awaited_once_with("documentModels/prebuilt-layout/analyzeResults/op-1")


@pytest.mark.asyncio
async def test_completed_operation_writes_output_and_advances(poller, client, store, transport):
    client.get_status.return_value = OperationStatus(done=True, result={"content": "Claim text", "pages": []})

    assert await poller.poll(_handle_message()) == PollOutcome.COMPLETED

    location = "output/documentanalysis/scan.pdf_document_analysis_output.json"
    document = store.json(location)
    assert document["main_content"] == "Claim text"
    assert document["processor"] == "document analysis"
    assert document["origin_file"] == "input/scan.pdf"
    assert document["folderName"] == "documentanalysis"

    [message] = transport.dispatched
    env = WorkflowEnvelope.from_json(message.payload)
    assert message.queue == "pii-in"
    assert env.current_step == "pii"
    assert env.metadata["last-output"] == location
    assert env.output_of("documentanalysis") == location


@pytest.mark.asyncio
async def test_completed_without_result_fails(poller, client, store, transport):
    client.get_status.return_value = OperationStatus(done=True, error="operation failed")

    assert await poller.poll(_handle_message()) == PollOutcome.FAILED

    assert store.objects == {}
    assert transport.dispatched == []
    [alert] = transport.alerts
    assert alert["failed_step"] == "documentanalysis"
    assert alert["error"].startswith("operation completed without a result")


@pytest.mark.asyncio
async def test_handle_missing_operation_id_is_rejected(poller, client, transport):
    data = json.loads(_handle_message())
    data["operation_id"] = ""

    assert await poller.poll(json.dumps(data)) == PollOutcome.REJECTED

    client.get_status.assert_not_called()
    [alert] = transport.alerts
    assert alert["reference_id"] == "ref"


@pytest.mark.asyncio
async def test_polling_error_fails_and_reraises(poller, client, transport):
    client.get_status.side_effect = CapabilityError("service unavailable", status_code=503)

    with pytest.raises(CapabilityError):
        await poller.poll(_handle_message())

    assert transport.dispatched == []
    assert transport.alerts[0]["failed_step"] == "documentanalysis"


@pytest.mark.asyncio
async def test_dispatch_error_after_completion_fails_and_reraises(poller, client, store, transport):
    client.get_status.return_value = OperationStatus(done=True, result={"content": "Claim text"})
    transport.failing_queues["pii-in"] = ConnectionError("broker unreachable")

    with pytest.raises(ConnectionError):
        await poller.poll(_handle_message())

    assert "output/documentanalysis/scan.pdf_document_analysis_output.json" in store.objects
    assert transport.dispatched == []
    [alert] = transport.alerts
    assert alert["failed_step"] == "documentanalysis"
    assert "broker unreachable" in alert["error"]
