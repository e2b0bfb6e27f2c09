"""
PdfImagesStep — fan-out: one PDF in, one workflow per embedded image out.

Every extracted image is uploaded under
``{output}/pdfimages/{stem}/page{p}-image{i}.{ext}`` and, when steps
remain, gets its own sibling envelope that starts at the next step.
Siblings run independently; nothing waits for or joins them.
"""

from __future__ import annotations

import asyncio
from posixpath import splitext

from docflow.core.constants import (
    ALERT_NO_IMAGES,
    META_LAST_OUTPUT,
    META_SOURCE_BLOB,
    META_SOURCE_INDEX,
    META_SOURCE_PAGE,
    StepName,
)
from docflow.core.logging import get_logger
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.envelope import ExtractedArtifact, WorkflowEnvelope
from docflow.pipeline.errors import StepExecutionError
from docflow.pipeline.routing import QueueRouter, WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep
from docflow.processing.pdf_images import extract_images, is_pdf
from docflow.storage.blob_store import BlobStore

logger = get_logger(__name__)

FOLDER = "pdfimages"


class PdfImagesStep(WorkflowStep):

    name = StepName.PDF_IMAGES
    description = "Extract embedded images from a PDF and fan out"

    def __init__(
        self,
        config: WorkflowConfig,
        store: BlobStore,
        router: QueueRouter,
        alerts: AlertPublisher,
    ) -> None:
        super().__init__(config, store)
        self.router = router
        self.alerts = alerts

    def image_prefix(self, envelope: WorkflowEnvelope) -> str:
        stem = splitext(self.original_filename(envelope))[0] or "document"
        return f"{self.config.output_container}/{FOLDER}/{stem}/"

    def image_path(self, envelope: WorkflowEnvelope, artifact: ExtractedArtifact) -> str:
        return (
            f"{self.image_prefix(envelope)}"
            f"page{artifact.page_index}-image{artifact.index_in_page}.{artifact.extension}"
        )

    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        started_at = self._now()
        log = logger.bind(reference_id=envelope.reference_id, blob_path=envelope.blob_path)

        data = await self.store.read_bytes(envelope.blob_path)
        if not is_pdf(data):
            raise StepExecutionError(
                f"'{envelope.blob_path}' is not a PDF",
                reference_id=envelope.reference_id,
                step_name=self.name,
            )

        artifacts = await asyncio.to_thread(extract_images, data)
        if not artifacts:
            log.warning("No images extracted from PDF")
            self.alerts.publish(
                envelope.blob_path,
                envelope.reference_id,
                ALERT_NO_IMAGES,
                failed_step=self.name,
            )
            return self._halt(started_at, {"images": 0})

        # ── Upload ────────────────────────────────────
        uploaded: list[tuple[str, ExtractedArtifact]] = []
        for artifact in artifacts:
            path = self.image_path(envelope, artifact)
            await self.store.write_bytes(
                path,
                artifact.data,
                content_type=artifact.content_type,
                tags={
                    "source_page": artifact.page_index,
                    "source_index": artifact.index_in_page,
                    "reference_id": envelope.reference_id,
                },
            )
            uploaded.append((path, artifact))

        envelope.record_output(self.name, self.image_prefix(envelope))
        log.info("PDF images uploaded", images=len(uploaded), prefix=self.image_prefix(envelope))

        if envelope.is_last_step:
            return self._advance(started_at, {"images": len(uploaded)})

        # ── Fan out ───────────────────────────────────
        dispatched = 0
        for path, artifact in uploaded:
            sibling = envelope.spawn(path, {
                META_SOURCE_BLOB: envelope.blob_path,
                META_SOURCE_PAGE: artifact.page_index,
                META_SOURCE_INDEX: artifact.index_in_page,
                f"{self.name}-output": path,
                META_LAST_OUTPUT: path,
            })
            if self.router.route(sibling):
                dispatched += 1

        log.info("Fan-out dispatched", siblings=dispatched, next_step=envelope.remaining_steps[0])
        return self._fan_out(started_at, {"images": len(uploaded), "siblings": dispatched})
