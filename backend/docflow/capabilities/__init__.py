"""Clients for the external analysis services the workflow steps call."""

from docflow.capabilities.document_analysis import DocumentAnalysisClient, OperationStatus
from docflow.capabilities.language import LanguageClient, PiiResult
from docflow.capabilities.multimodal import MultimodalClient
from docflow.capabilities.translator import TranslatorClient
from docflow.capabilities.vision import VisionClient

__all__ = [
    "DocumentAnalysisClient",
    "LanguageClient",
    "MultimodalClient",
    "OperationStatus",
    "PiiResult",
    "TranslatorClient",
    "VisionClient",
]
