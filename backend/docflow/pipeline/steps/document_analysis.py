"""
DocumentAnalysisStep — start an OCR/layout analysis and hand it to the poller.

The analysis runs for seconds to minutes, so this step never waits for
it: it streams the document to the service, wraps the returned operation
id in an AsyncOperationHandle and enqueues that on the operation queue
with an initial delay.  The poller writes the output and advances the workflow.
"""

from __future__ import annotations

from docflow.capabilities.document_analysis import DocumentAnalysisClient
from docflow.core.constants import META_DOCUMENT_MODEL, POLL_TASK_NAME, StepName
from docflow.core.logging import get_logger
from docflow.pipeline.envelope import AsyncOperationHandle, CaseInsensitiveDict, WorkflowEnvelope
from docflow.pipeline.errors import StorageError
from docflow.pipeline.routing import WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep
from docflow.pipeline.transport import QueueTransport
from docflow.storage.blob_store import BlobStore

logger = get_logger(__name__)


class DocumentAnalysisStep(WorkflowStep):

    name = StepName.DOCUMENT_ANALYSIS
    description = "Start document analysis (OCR / layout)"

    def __init__(
        self,
        config: WorkflowConfig,
        store: BlobStore,
        client: DocumentAnalysisClient,
        transport: QueueTransport,
    ) -> None:
        super().__init__(config, store)
        self.client = client
        self.transport = transport

    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        started_at = self._now()

        model = await self._resolve_model(envelope)
        async with self.store.open_stream(envelope.blob_path) as stream:
            operation_id = await self.client.start_analysis(
                stream.chunks, model, content_length=stream.content_length
            )

        handle = AsyncOperationHandle(
            operation_id=operation_id,
            target_blob=envelope.blob_path,
            envelope=envelope,
        )
        self.transport.send(
            self.config.operation_queue,
            POLL_TASK_NAME,
            handle.to_json(),
            delay_seconds=self.config.initial_delay_seconds,
        )

        logger.info(
            "Document analysis started",
            reference_id=envelope.reference_id,
            blob_path=envelope.blob_path,
            model=model,
            operation_id=operation_id,
            queue=self.config.operation_queue,
        )
        return self._suspend(started_at, {"operation_id": operation_id, "model": model})

    async def _resolve_model(self, envelope: WorkflowEnvelope) -> str:
        """Object tag, then envelope metadata, then the configured default."""
        try:
            tags = CaseInsensitiveDict(await self.store.get_tags(envelope.blob_path))
        except StorageError as exc:
            logger.warning(
                "Could not read object tags, using default model",
                blob_path=envelope.blob_path,
                error=str(exc),
            )
            tags = CaseInsensitiveDict()

        model = (
            tags.get(META_DOCUMENT_MODEL)
            or envelope.metadata.get(META_DOCUMENT_MODEL)
            or self.config.default_document_model
        )
        return model.strip()
