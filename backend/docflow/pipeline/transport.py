"""
QueueTransport — thin producer over the Celery app.

Every workflow hop is a Celery task sent to a named queue.  Queues are
declared on first use (create-if-absent) and then remembered for the
lifetime of the process; the remembered set only saves round-trips,
nothing depends on it for correctness.
"""

from __future__ import annotations

import threading

from celery import Celery
from kombu import Exchange, Queue

from docflow.core.logging import get_logger

logger = get_logger(__name__)


class QueueTransport:
    """Sends serialized payloads to named queues as Celery tasks."""

    def __init__(self, celery_app: Celery) -> None:
        self._app = celery_app
        self._declared: set[str] = set()
        self._lock = threading.Lock()

    def ensure_queue(self, queue: str) -> None:
        """Declare ``queue`` on the broker if this process has not yet."""
        if queue in self._declared:
            return

        with self._lock:
            if queue in self._declared:
                return
            with self._app.connection_for_write() as conn:
                Queue(
                    queue,
                    Exchange(queue, type="direct"),
                    routing_key=queue,
                ).bind(conn.default_channel).declare()
            self._declared.add(queue)
            logger.debug("Queue declared", queue=queue)

    def send(
        self,
        queue: str,
        task_name: str,
        payload: str,
        delay_seconds: int = 0,
    ) -> str:
        """
        Send ``payload`` as the single argument of ``task_name`` on ``queue``.

        Returns the Celery task id.  Broker errors propagate.
        """
        self.ensure_queue(queue)
        result = self._app.send_task(
            task_name,
            args=[payload],
            queue=queue,
            exchange=queue,
            routing_key=queue,
            countdown=delay_seconds or None,
        )
        logger.debug(
            "Message sent",
            queue=queue,
            task=task_name,
            task_id=result.id,
            delay_seconds=delay_seconds,
        )
        return result.id
