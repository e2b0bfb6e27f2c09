"""
WorkflowController — the two transitions every step ends in.

    advance(envelope)  →  rotate to the next step and route, or end
    fail(envelope, ...) → stamp the failure and alert; never dispatch
"""

from __future__ import annotations

from datetime import datetime, timezone

from docflow.core.logging import get_logger
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.envelope import FailureInfo, WorkflowEnvelope
from docflow.pipeline.routing import QueueRouter

logger = get_logger(__name__)


class WorkflowController:

    def __init__(self, router: QueueRouter, alerts: AlertPublisher) -> None:
        self._router = router
        self._alerts = alerts

    def advance(self, envelope: WorkflowEnvelope) -> bool:
        """
        Move the workflow to its next step.

        Returns True if the envelope was dispatched.  False means either the
        workflow is complete (no remaining steps) or routing refused it.
        """
        log = logger.bind(**envelope.log_context())

        if envelope.is_failed:
            log.warning("Refusing to advance failed envelope")
            return False

        if envelope.is_last_step:
            log.info("Workflow completed", last_step=envelope.current_step)
            return False

        finished = envelope.current_step
        envelope.rotate()
        log.info("Advancing workflow", finished_step=finished, next_step=envelope.current_step)
        return self._router.route(envelope)

    def fail(self, envelope: WorkflowEnvelope, step: str, error: str) -> None:
        """Mark the workflow failed and raise an alert."""
        envelope.failure = FailureInfo(
            step=step,
            error=error,
            timestamp=datetime.now(timezone.utc),
        )
        logger.error(
            "Workflow failed",
            reference_id=envelope.reference_id,
            blob_path=envelope.blob_path,
            step=step,
            error=error,
        )
        self._alerts.publish(
            envelope.blob_path,
            envelope.reference_id,
            error,
            failed_step=step,
        )
