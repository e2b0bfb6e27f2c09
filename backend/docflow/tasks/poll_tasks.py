"""
Celery task — long-running operation polling.
"""

import asyncio

import structlog

from docflow.core.constants import POLL_TASK_NAME
from docflow.runtime import get_runtime
from docflow.tasks import celery_app

logger = structlog.get_logger("tasks.poll")


@celery_app.task(bind=True, name=POLL_TASK_NAME)
def poll_operation(self, message: str):
    """Check one operation; re-queues itself (delayed) while it is running."""
    outcome = asyncio.run(get_runtime().poller.poll(message))
    logger.info("Operation polled", task_id=self.request.id, outcome=outcome)
    return str(outcome)
