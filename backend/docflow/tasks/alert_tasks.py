"""
Celery task — alert sink.

Consumes the alert queue and writes each alert to the error log, which
is what the operations channel watches.
"""

import json

import structlog

from docflow.core.constants import ALERT_TASK_NAME
from docflow.tasks import celery_app

logger = structlog.get_logger("tasks.alerts")


@celery_app.task(bind=True, name=ALERT_TASK_NAME)
def record_alert(self, payload: str):
    try:
        alert = json.loads(payload)
    except (TypeError, ValueError):
        logger.error("Workflow alert (unparseable)", task_id=self.request.id, payload=str(payload)[:2000])
        return None

    if not isinstance(alert, dict):
        alert = {"error": str(alert)}

    logger.error(
        "Workflow alert",
        task_id=self.request.id,
        reference_id=alert.get("reference_id"),
        blob_path=alert.get("blob_path"),
        failed_step=alert.get("failed_step"),
        reason=alert.get("error"),
        alerted_at=alert.get("timestamp"),
    )
    return alert
