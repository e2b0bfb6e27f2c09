import json
from unittest.mock import AsyncMock, MagicMock, patch

from docflow.core.config import Settings
from docflow.core.constants import POLL_TASK_NAME, PollOutcome, StepName, StepOutcome
from docflow.pipeline.step import StepResult
from docflow.runtime import build_runtime
from docflow.tasks import celery_app
from docflow.tasks.alert_tasks import record_alert
from docflow.tasks.poll_tasks import poll_operation
from docflow.tasks.step_tasks import STEP_TASKS


def test_every_step_has_a_consumer_task():
    for step in StepName:
        assert f"docflow.steps.{step}" in celery_app.tasks
    assert POLL_TASK_NAME in celery_app.tasks


def test_step_task_runs_executor():
    runtime = MagicMock()
    runtime.executor.execute_step = AsyncMock(return_value=StepResult("pii", StepOutcome.ADVANCE))

    with patch("docflow.tasks.step_tasks.get_runtime", return_value=runtime):
        result = STEP_TASKS[StepName.PII].apply(args=['{"reference_id":"r"}']).get()

    runtime.executor.execute_step.assert_awaited_once_with("pii", '{"reference_id":"r"}')
    assert result["step_name"] == "pii"
    assert result["outcome"] == "advance"


def test_dropped_step_message_returns_none():
    runtime = MagicMock()
    runtime.executor.execute_step = AsyncMock(return_value=None)

    with patch("docflow.tasks.step_tasks.get_runtime", return_value=runtime):
        assert STEP_TASKS[StepName.TRANSLATION].apply(args=["{bad"]).get() is None


def test_poll_task_returns_outcome():
    runtime = MagicMock()
    runtime.poller.poll = AsyncMock(return_value=PollOutcome.PENDING)

    with patch("docflow.tasks.poll_tasks.get_runtime", return_value=runtime):
        assert poll_operation.apply(args=["{}"]).get() == "pending"


def test_record_alert_parses_payload():
    payload = json.dumps({"reference_id": "r", "blob_path": "input/a", "failed_step": "pii",
                          "error": "boom", "timestamp": "2026-01-01T00:00:00+00:00"})

    assert record_alert.apply(args=[payload]).get()["error"] == "boom"
    assert record_alert.apply(args=["not json"]).get() is None


def test_build_runtime_registers_every_step():
    runtime = build_runtime(Settings(_env_file=None), MagicMock())

    assert set(runtime.executor.steps) == {str(step) for step in StepName}
    assert runtime.config.poll_delay_seconds == 30
    assert runtime.alerts.queue == runtime.config.alert_queue
