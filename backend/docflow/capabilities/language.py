"""
Language service client: language detection and PII recognition.

Both use the ``language/:analyze-text`` API with a single document per
request; callers chunk text to the service's character limit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from docflow.capabilities.base import CapabilityClient
from docflow.core.logging import get_logger
from docflow.core.tracing import traceable_step
from docflow.pipeline.errors import CapabilityError

logger = get_logger(__name__)


@dataclass
class PiiResult:
    """Redacted text and detected entities for one chunk."""

    redacted_text: str
    entities: list[dict[str, Any]] = field(default_factory=list)


class LanguageClient(CapabilityClient):
    service_name = "language service"
    endpoint_setting = "LANGUAGE_ENDPOINT"

    def __init__(self, endpoint: str, api_key: str = "", api_version: str = "2023-04-01", **kwargs) -> None:
        super().__init__(endpoint, api_key, **kwargs)
        self.api_version = api_version

    async def _analyze(self, kind: str, text: str, parameters: dict[str, Any] | None = None,
                       language: str | None = None) -> dict[str, Any]:
        document: dict[str, Any] = {"id": "1", "text": text}
        if language:
            document["language"] = language
        body = {
            "kind": kind,
            "analysisInput": {"documents": [document]},
            "parameters": parameters or {},
        }
        response = await self._request(
            "POST",
            "/language/:analyze-text",
            kind,
            params={"api-version": self.api_version},
            json=body,
        )
        results = response.json().get("results", {})
        errors = results.get("errors") or []
        if errors:
            raise CapabilityError(
                f"{kind} rejected the document: {errors[0].get('error', errors[0])}",
                response_body=str(errors)[:2000],
            )
        documents = results.get("documents") or []
        if not documents:
            raise CapabilityError(f"{kind} returned no documents")
        return documents[0]

    @traceable_step(name="detect_language", run_type="tool", tags=["language"])
    async def detect_language(self, text: str) -> str:
        """ISO 639-1 code of the dominant language (lowercase)."""
        document = await self._analyze("LanguageDetection", text)
        language = (document.get("detectedLanguage") or {}).get("iso6391Name") or ""
        if not language:
            raise CapabilityError("LanguageDetection returned no language")
        logger.debug("Language detected", language=language,
                     confidence=document["detectedLanguage"].get("confidenceScore"))
        return language.lower()

    @traceable_step(name="recognize_pii", run_type="tool", tags=["language", "pii"])
    async def recognize_pii(self, text: str, language: str = "en") -> PiiResult:
        document = await self._analyze(
            "PiiEntityRecognition",
            text,
            parameters={"modelVersion": "latest"},
            language=language,
        )
        return PiiResult(
            redacted_text=document.get("redactedText", ""),
            entities=list(document.get("entities") or []),
        )
