"""
Celery tasks — one consumer per workflow step.

Each step queue carries ``docflow.steps.<step>`` messages whose only
argument is the serialized envelope.  The task runs the async executor
in its own event loop; exceptions propagate so the broker's
rejection / dead-letter policy applies (see celeryconfig).
"""

import asyncio

import structlog

from docflow.core.constants import StepName, step_task_name
from docflow.runtime import get_runtime
from docflow.tasks import celery_app

logger = structlog.get_logger("tasks.steps")


def _make_step_task(step: StepName):
    @celery_app.task(bind=True, name=step_task_name(step))
    def run_step(self, message: str):
        task_log = logger.bind(task_id=self.request.id, step=str(step))
        task_log.debug("Step message received", redelivered=bool((self.request.delivery_info or {}).get("redelivered")))

        result = asyncio.run(get_runtime().executor.execute_step(str(step), message))

        if result is None:
            task_log.info("Step message dropped")
            return None
        return result.to_dict()

    return run_step


STEP_TASKS = {step: _make_step_task(step) for step in StepName}
