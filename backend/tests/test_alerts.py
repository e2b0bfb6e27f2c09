from datetime import datetime

from docflow.pipeline.alerts import AlertPublisher


def test_publish_sends_alert_to_alert_queue(transport):
    publisher = AlertPublisher(transport, "workflow-alerts")

    assert publisher.publish("input/a.txt", "ref", "workflow steps missing") is True

    [message] = transport.sent
    assert message.queue == "workflow-alerts"
    assert message.task_name == "docflow.alerts.record"
    alert = message.json()
    assert alert["reference_id"] == "ref"
    assert alert["blob_path"] == "input/a.txt"
    assert alert["failed_step"] is None
    assert alert["error"] == "workflow steps missing"
    datetime.fromisoformat(alert["timestamp"])


def test_missing_reference_becomes_unknown(transport):
    publisher = AlertPublisher(transport, "workflow-alerts")

    publisher.publish(None, "   ", "missing correlation id")

    assert transport.alerts[0]["reference_id"] == "unknown"


def test_publish_never_raises(transport):
    transport.fail_with = ConnectionError("broker down")
    publisher = AlertPublisher(transport, "workflow-alerts")

    assert publisher.publish("input/a.txt", "ref", "boom", failed_step="pii") is False
