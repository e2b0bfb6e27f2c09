"""
StepExecutor — runs one queued step message end to end.

Responsibilities:
    - Parse the queue payload into a WorkflowEnvelope
    - Drop (with an alert) anything that cannot or must not run here
    - Execute the registered step with timing and structured logging
    - Translate the StepResult into the next transition
    - On any step error: fail the workflow, alert, then re-raise so
      broker-level redelivery / dead-lettering still applies
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from docflow.core.constants import ALERT_UNPARSEABLE, StepOutcome
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.controller import WorkflowController
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.errors import EnvelopeParseError, StepExecutionError
from docflow.pipeline.step import StepResult, WorkflowStep


class StepExecutor:
    """
    Executes a single step message against a registry of steps.

    Usage::

        executor = StepExecutor(steps=build_step_registry(...),
                                controller=controller, alerts=alerts)
        await executor.execute_step("translation", message_body)
    """

    def __init__(
        self,
        steps: Mapping[str, WorkflowStep],
        controller: WorkflowController,
        alerts: AlertPublisher,
    ) -> None:
        self.steps = steps
        self.controller = controller
        self.alerts = alerts
        self.logger = structlog.get_logger("pipeline.executor")

    async def execute_step(self, expected_step: str, message: str | bytes) -> StepResult | None:
        """
        Process one message from ``expected_step``'s queue.

        Returns the StepResult, or None when the message was dropped.
        """
        log = self.logger.bind(queue_step=expected_step)

        # ── Parse ─────────────────────────────────────
        try:
            envelope = WorkflowEnvelope.from_json(message)
        except EnvelopeParseError as exc:
            log.error("Dropping unparseable message", error=str(exc))
            self.alerts.publish(
                None,
                exc.reference_id,
                f"{ALERT_UNPARSEABLE}: {exc}",
                failed_step=expected_step,
            )
            return None

        log = log.bind(**envelope.log_context())

        # ── Guards ────────────────────────────────────
        if envelope.is_failed:
            log.warning("Dropping already-failed envelope", failed_step=envelope.failure.step)
            return None

        if envelope.current_step != expected_step:
            reason = (
                f"misrouted message: envelope is at step '{envelope.current_step}' "
                f"but was consumed from '{expected_step}'"
            )
            log.error("Dropping misrouted envelope")
            self.alerts.publish(
                envelope.blob_path,
                envelope.reference_id,
                reason,
                failed_step=envelope.current_step,
            )
            return None

        step = self.steps.get(expected_step)
        if step is None:
            log.error("No implementation registered for step")
            self.alerts.publish(
                envelope.blob_path,
                envelope.reference_id,
                f"no implementation registered for step '{expected_step}'",
                failed_step=expected_step,
            )
            return None

        # ── Execute ───────────────────────────────────
        log.info("Step started", step_description=step.description)
        try:
            result = await step.execute(envelope)
            if result.outcome == StepOutcome.ADVANCE and not envelope.output_of(step.name):
                raise StepExecutionError(
                    f"Step '{step.name}' advanced without recording '{step.name}-output'",
                    reference_id=envelope.reference_id,
                    step_name=step.name,
                )

            log.info(
                "Step finished",
                outcome=result.outcome,
                duration_ms=result.duration_ms,
                **result.metadata,
            )

            # ── Transition ────────────────────────────
            if result.outcome == StepOutcome.ADVANCE:
                self.controller.advance(envelope)
        except Exception as exc:
            log.exception("Step failed", error=str(exc))
            self.controller.fail(envelope, expected_step, f"{type(exc).__name__}: {exc}")
            raise

        return result
