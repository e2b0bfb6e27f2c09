"""
ImageDescribeStep — free-text description of an image by a multimodal LLM.

The prompt asks for claim-relevant details; the model's answer becomes
both ``main_content`` and ``message`` of the output document.
"""

from __future__ import annotations

import mimetypes

from docflow.capabilities.multimodal import MultimodalClient
from docflow.core.constants import StepName
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.routing import WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep
from docflow.storage.blob_store import BlobStore

DEFAULT_IMAGE_TYPE = "image/png"


class ImageDescribeStep(WorkflowStep):

    name = StepName.IMAGE_DESCRIBE
    description = "Describe image with a multimodal model"

    def __init__(self, config: WorkflowConfig, store: BlobStore, client: MultimodalClient) -> None:
        super().__init__(config, store)
        self.client = client

    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        started_at = self._now()

        image = await self.store.read_bytes(envelope.blob_path)
        content_type = mimetypes.guess_type(envelope.blob_path)[0] or DEFAULT_IMAGE_TYPE
        description = await self.client.describe(image, content_type)

        location = await self.write_output(
            envelope,
            folder="imagedescribe",
            suffix="_image_description_output.json",
            processor="image describe",
            main_content=description,
            message=description,
            origin_file=envelope.blob_path,
        )
        return self._advance(started_at, {"output": location, "content_type": content_type})
