"""ImageAnalysisStep — tags, caption, objects and read results for an image."""

from __future__ import annotations

from docflow.capabilities.vision import VisionClient, summarize_tags
from docflow.core.constants import StepName
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.routing import WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep
from docflow.storage.blob_store import BlobStore


class ImageAnalysisStep(WorkflowStep):

    name = StepName.IMAGE_ANALYSIS
    description = "Analyze image (tags, caption, read)"

    def __init__(self, config: WorkflowConfig, store: BlobStore, client: VisionClient) -> None:
        super().__init__(config, store)
        self.client = client

    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        started_at = self._now()

        image = await self.store.read_bytes(envelope.blob_path)
        result = await self.client.analyze(image)
        tags = summarize_tags(result)

        location = await self.write_output(
            envelope,
            folder="imageanalysis",
            suffix="_image_analysis_output.json",
            processor="image analysis",
            main_content=tags,
            message=result,
            origin_file=envelope.blob_path,
        )
        return self._advance(started_at, {"output": location, "size": len(image)})
