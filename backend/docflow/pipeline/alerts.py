"""
AlertPublisher — best-effort failure notifications.

Alerts go to a dedicated queue consumed by ``docflow.alerts.record``.
Publishing must never mask the error being reported, so every
exception raised while sending is logged and swallowed here.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from docflow.core.constants import ALERT_TASK_NAME, UNKNOWN_REFERENCE
from docflow.core.logging import get_logger
from docflow.pipeline.transport import QueueTransport

logger = get_logger(__name__)


def build_alert(
    blob_path: str | None,
    reference_id: str | None,
    reason: str,
    failed_step: str | None = None,
) -> dict[str, str | None]:
    """Alert message body."""
    return {
        "reference_id": (reference_id or "").strip() or UNKNOWN_REFERENCE,
        "blob_path": blob_path,
        "failed_step": failed_step,
        "error": reason,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class AlertPublisher:
    """Publishes workflow alerts to the alert queue."""

    def __init__(self, transport: QueueTransport, queue: str) -> None:
        self._transport = transport
        self._queue = queue

    @property
    def queue(self) -> str:
        return self._queue

    def publish(
        self,
        blob_path: str | None,
        reference_id: str | None,
        reason: str,
        failed_step: str | None = None,
    ) -> bool:
        """Send one alert.  Returns False (never raises) if sending fails."""
        alert = build_alert(blob_path, reference_id, reason, failed_step)
        try:
            self._transport.send(
                self._queue,
                ALERT_TASK_NAME,
                json.dumps(alert, ensure_ascii=False),
            )
        except Exception as exc:
            logger.error(
                "Alert publish failed",
                queue=self._queue,
                alert=alert,
                error=str(exc),
            )
            return False

        logger.warning(
            "Alert published",
            reference_id=alert["reference_id"],
            blob_path=blob_path,
            failed_step=failed_step,
            reason=reason,
        )
        return True
