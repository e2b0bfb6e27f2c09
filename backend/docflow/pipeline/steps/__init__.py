"""
Workflow step implementations, keyed by the name used in ``workflow_steps``.
"""

from __future__ import annotations

from docflow.capabilities import (
    DocumentAnalysisClient,
    LanguageClient,
    MultimodalClient,
    TranslatorClient,
    VisionClient,
)
from docflow.pipeline.alerts import AlertPublisher
from docflow.pipeline.routing import QueueRouter, WorkflowConfig
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.steps.document_analysis import DocumentAnalysisStep
from docflow.pipeline.steps.image_analysis import ImageAnalysisStep
from docflow.pipeline.steps.image_describe import ImageDescribeStep
from docflow.pipeline.steps.pdf_images import PdfImagesStep
from docflow.pipeline.steps.pii_redaction import PiiRedactionStep
from docflow.pipeline.steps.translation import TranslationStep
from docflow.pipeline.transport import QueueTransport
from docflow.storage.blob_store import BlobStore


def build_step_registry(
    *,
    config: WorkflowConfig,
    store: BlobStore,
    transport: QueueTransport,
    router: QueueRouter,
    alerts: AlertPublisher,
    language: LanguageClient,
    translator: TranslatorClient,
    vision: VisionClient,
    document_analysis: DocumentAnalysisClient,
    multimodal: MultimodalClient,
) -> dict[str, WorkflowStep]:
    steps: list[WorkflowStep] = [
        TranslationStep(config, store, language, translator),
        DocumentAnalysisStep(config, store, document_analysis, transport),
        ImageAnalysisStep(config, store, vision),
        ImageDescribeStep(config, store, multimodal),
        PiiRedactionStep(config, store, language),
        PdfImagesStep(config, store, router, alerts),
    ]
    return {str(step.name): step for step in steps}


__all__ = [
    "DocumentAnalysisStep",
    "ImageAnalysisStep",
    "ImageDescribeStep",
    "PdfImagesStep",
    "PiiRedactionStep",
    "TranslationStep",
    "build_step_registry",
]
