"""
AsyncOperationPoller — checks a long-running analysis once per message.

    Started ──► poll ──► running    → re-send the same message, delayed
                    ├──► succeeded  → write output, advance the workflow
                    └──► no result  → fail the workflow

No thread ever sleeps waiting for the operation: "waiting" is the delayed
re-delivery of the identical payload to the operation queue.
"""

from __future__ import annotations

import structlog

from docflow.capabilities.document_analysis import DocumentAnalysisClient, OperationStatus
from docflow.core.constants import (
    ALERT_NO_OPERATION_RESULT,
    ALERT_UNPARSEABLE,
    POLL_TASK_NAME,
    PollOutcome,
    StepName,
)
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.artifacts import build_output_document, original_filename, output_path
from docflow.pipeline.controller import WorkflowController
from docflow.pipeline.envelope import AsyncOperationHandle
from docflow.pipeline.errors import EnvelopeParseError
from docflow.pipeline.routing import WorkflowConfig
from docflow.pipeline.transport import QueueTransport
from docflow.storage.blob_store import BlobStore

OUTPUT_FOLDER = "documentanalysis"
OUTPUT_SUFFIX = "_document_analysis_output.json"


class AsyncOperationPoller:
    """Polls document analysis operations carried on the operation queue."""

    step_name = StepName.DOCUMENT_ANALYSIS

    def __init__(
        self,
        config: WorkflowConfig,
        client: DocumentAnalysisClient,
        store: BlobStore,
        transport: QueueTransport,
        controller: WorkflowController,
        alerts: AlertPublisher,
    ) -> None:
        self.config = config
        self.client = client
        self.store = store
        self.transport = transport
        self.controller = controller
        self.alerts = alerts
        self.logger = structlog.get_logger("pipeline.poller")

    async def poll(self, message: str) -> PollOutcome:
        # ── Parse ─────────────────────────────────────
        try:
            handle = AsyncOperationHandle.from_json(message)
        except EnvelopeParseError as exc:
            self.logger.error("Dropping invalid operation message", error=str(exc))
            self.alerts.publish(
                None,
                exc.reference_id,
                f"{ALERT_UNPARSEABLE}: {exc}",
                failed_step=str(self.step_name),
            )
            return PollOutcome.REJECTED

        envelope = handle.envelope
        log = self.logger.bind(
            reference_id=envelope.reference_id,
            operation_id=handle.operation_id,
            target_blob=handle.target_blob,
        )

        if envelope.is_failed:
            log.warning("Dropping operation for failed envelope")
            return PollOutcome.REJECTED

        # ── Query ─────────────────────────────────────
        try:
            status = await self.client.get_status(handle.operation_id)

            if not status.done:
                self.transport.send(
                    self.config.operation_queue,
                    POLL_TASK_NAME,
                    message,
                    delay_seconds=self.config.poll_delay_seconds,
                )
                log.info("Operation not ready, re-queued", delay_seconds=self.config.poll_delay_seconds)
                return PollOutcome.PENDING

            if status.content is None:
                reason = ALERT_NO_OPERATION_RESULT
                if status.error:
                    reason = f"{reason}: {status.error}"
                log.error("Operation completed without a result", error=status.error)
                self.controller.fail(envelope, str(self.step_name), reason)
                return PollOutcome.FAILED

            location = await self._write_output(handle, status)
            envelope.record_output(str(self.step_name), location)
            log.info("Operation completed", output=location)
            self.controller.advance(envelope)
        except Exception as exc:
            log.exception("Polling failed", error=str(exc))
            self.controller.fail(envelope, str(self.step_name), f"{type(exc).__name__}: {exc}")
            raise

        return PollOutcome.COMPLETED

    async def _write_output(self, handle: AsyncOperationHandle, status: OperationStatus) -> str:
        original = original_filename(handle.envelope.blob_path)
        location = output_path(
            self.config.output_container,
            OUTPUT_FOLDER,
            f"{original}{OUTPUT_SUFFIX}",
        )
        document = build_output_document(
            reference_id=handle.envelope.reference_id,
            processor="document analysis",
            main_content=status.content or "",
            message=status.result,
            original_filename=original,
            origin_file=handle.target_blob,
            folder=OUTPUT_FOLDER,
        )
        await self.store.write_json(location, document)
        return location
