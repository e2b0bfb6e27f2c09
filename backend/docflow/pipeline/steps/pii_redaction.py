"""
PiiRedactionStep — detect and redact personal data in the previous output.

PII always runs on text produced by an earlier step, so ``last-output``
is required.  The text is chunked to the service limit; redacted chunks
are concatenated back in order and all entities are collected.
"""

from __future__ import annotations

import json
from typing import Any

from docflow.capabilities.language import LanguageClient
from docflow.core.constants import META_LAST_OUTPUT, StepName
from docflow.core.logging import get_logger
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.errors import StepExecutionError
from docflow.pipeline.routing import WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep
from docflow.processing.text import chunk_text
from docflow.storage.blob_store import BlobStore

logger = get_logger(__name__)


class PiiRedactionStep(WorkflowStep):

    name = StepName.PII
    description = "Detect and redact PII"

    def __init__(self, config: WorkflowConfig, store: BlobStore, language: LanguageClient) -> None:
        super().__init__(config, store)
        self.language = language

    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        started_at = self._now()

        source_path = envelope.metadata.get(META_LAST_OUTPUT)
        if not source_path:
            raise StepExecutionError(
                "PII step requires output from a previous step",
                reference_id=envelope.reference_id,
                step_name=self.name,
            )

        content = self._main_content(await self.store.read_text(source_path), envelope, source_path)
        chunks = chunk_text(content, self.config.pii_max_chars)

        logger.info(
            "Recognizing PII",
            reference_id=envelope.reference_id,
            source_path=source_path,
            chunks=len(chunks),
        )

        redacted: list[str] = []
        entities: list[dict[str, Any]] = []
        for chunk in chunks:
            result = await self.language.recognize_pii(chunk, self.config.pii_language)
            redacted.append(result.redacted_text)
            entities.extend(result.entities)

        location = await self.write_output(
            envelope,
            folder="pii",
            suffix="_pii_redaction_result.json",
            processor="pii redaction",
            main_content="".join(redacted),
            message={"chunks": len(chunks), "entities": entities},
            origin_file=source_path,
        )
        return self._advance(started_at, {
            "output": location,
            "chunks": len(chunks),
            "entities": len(entities),
        })

    def _main_content(self, raw: str, envelope: WorkflowEnvelope, source_path: str) -> str:
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise StepExecutionError(
                f"Previous output '{source_path}' is not valid JSON",
                reference_id=envelope.reference_id,
                step_name=self.name,
            ) from exc

        content = document.get("main_content") if isinstance(document, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise StepExecutionError(
                f"Previous output '{source_path}' has no main_content",
                reference_id=envelope.reference_id,
                step_name=self.name,
            )
        return content
