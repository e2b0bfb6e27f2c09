"""
Document analysis (OCR / layout) client.

Analysis is a long-running operation:

    start_analysis(content, model)  →  operation id
    get_status(operation id)        →  OperationStatus

The operation id is the path of the ``Operation-Location`` URL below the
service root, so status polling only ever talks to the configured
endpoint.
"""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from docflow.capabilities.base import CapabilityClient
from docflow.core.logging import get_logger
from docflow.core.tracing import traceable_step
from docflow.pipeline.errors import CapabilityError

logger = get_logger(__name__)

_PATH_ROOT = "/documentintelligence/"
_RUNNING = {"notstarted", "running"}
_SUCCEEDED = "succeeded"


@dataclass
class OperationStatus:
    """Snapshot of a long-running analysis."""

    done: bool
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def content(self) -> str | None:
        if not self.result:
            return None
        return self.result.get("content")


class DocumentAnalysisClient(CapabilityClient):
    service_name = "document analysis"
    endpoint_setting = "DOCUMENT_ANALYSIS_ENDPOINT"

    def __init__(self, endpoint: str, api_key: str = "", api_version: str = "2024-11-30", **kwargs) -> None:
        super().__init__(endpoint, api_key, **kwargs)
        self.api_version = api_version

    @traceable_step(name="start_document_analysis", run_type="tool", tags=["document-analysis"])
    async def start_analysis(
        self,
        content: bytes | AsyncIterable[bytes],
        model: str,
        content_length: int | None = None,
    ) -> str:
        """
        Post the document and return the operation id.

        ``content`` may be an async byte stream, sent as the request body
        while it is read.  Pass ``content_length`` when the size is known;
        without it a stream goes out chunked.
        """
        headers = {"Content-Type": "application/octet-stream"}
        if content_length is not None:
            headers["Content-Length"] = str(content_length)
        response = await self._request(
            "POST",
            f"{_PATH_ROOT}documentModels/{model}:analyze",
            "analyze",
            expected=(202,),
            params={"api-version": self.api_version},
            content=content,
            headers=headers,
        )
        location = response.headers.get("Operation-Location")
        if not location:
            raise CapabilityError("document analysis did not return an Operation-Location")
        return operation_id_from_location(location)

    @traceable_step(name="get_document_analysis", run_type="tool", tags=["document-analysis"])
    async def get_status(self, operation_id: str) -> OperationStatus:
        path = _operation_path(operation_id)
        response = await self._request(
            "GET",
            path,
            "get operation",
            params={"api-version": self.api_version},
        )
        payload = response.json()
        status = str(payload.get("status", "")).lower()

        if status in _RUNNING:
            return OperationStatus(done=False)
        if status == _SUCCEEDED:
            return OperationStatus(done=True, result=payload.get("analyzeResult"))

        error = payload.get("error") or {}
        return OperationStatus(
            done=True,
            error=error.get("message") or f"operation {status or 'unknown'}",
        )


def operation_id_from_location(location: str) -> str:
    """
    ``https://host/documentintelligence/documentModels/m/analyzeResults/abc?api-version=x``
    → ``documentModels/m/analyzeResults/abc``
    """
    path = urlsplit(location).path
    _, marker, operation_id = path.partition(_PATH_ROOT)
    if not marker or not operation_id:
        raise CapabilityError(f"unrecognized Operation-Location '{location}'")
    return operation_id


def _operation_path(operation_id: str) -> str:
    operation_id = operation_id.strip().lstrip("/")
    if "://" in operation_id or ".." in operation_id.split("/"):
        raise CapabilityError(f"invalid operation id '{operation_id}'")
    return f"{_PATH_ROOT}{operation_id}"
